import pytest

from tabchat import protocol
from tabchat.registry import Client, ClientRegistry, LoginError


class FakeConnection:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    def sendall(self, data):
        if self.fail:
            raise OSError("connection reset")
        self.sent.append(data)


def make_client(username="", logged_in=False, receiving=False, fail=False):
    return Client(
        FakeConnection(fail),
        "127.0.0.1",
        50000,
        username=username,
        logged_in=logged_in,
        sending_allowed=logged_in,
        receiving_allowed=receiving,
    )


@pytest.fixture
def registry(tmp_path):
    users = tmp_path / "users.txt"
    users.write_text("alice\tpassword\nbob\tpassword\ncarol\n", encoding="latin-1")
    return ClientRegistry(users)


def test_login_success(registry):
    assert registry.login("alice", "password") == "alice"


def test_login_wrong_password(registry):
    with pytest.raises(LoginError) as info:
        registry.login("alice", "secret")
    assert info.value.code == protocol.USER_NOT_FOUND


def test_login_missing_file(tmp_path):
    registry = ClientRegistry(tmp_path / "absent.txt")
    with pytest.raises(LoginError) as info:
        registry.login("alice", "password")
    assert info.value.code == protocol.USER_NOT_FOUND


def test_login_already_logged_in(registry):
    registry.add(make_client("alice", logged_in=True, receiving=True))
    with pytest.raises(LoginError) as info:
        registry.login("alice", "password")
    assert info.value.code == protocol.USER_ALREADY_IN


def test_login_line_without_separator(registry):
    assert registry.login("carol", "carol") == "carol"


def test_clients_prunes_exited(registry):
    live = make_client("alice")
    gone = make_client("bob")
    registry.add(live)
    registry.add(gone)
    gone.exited = True
    assert registry.clients() == [live]
    assert registry.has_user("bob") is False


def test_has_user_sees_exited_until_pruned(registry):
    gone = make_client("bob")
    registry.add(gone)
    gone.exited = True
    assert registry.has_user("bob") is True


def test_find_and_is_logged_in(registry):
    alice = make_client("alice", logged_in=True)
    registry.add(alice)
    registry.add(make_client("bob", logged_in=True))
    assert registry.find("alice") == [alice]
    assert registry.is_logged_in("alice") is True
    assert registry.is_logged_in("dave") is False


def test_remove(registry):
    alice = make_client("alice")
    registry.add(alice)
    registry.remove(alice)
    registry.remove(alice)
    assert registry.clients() == []


def test_client_send_encodes_text():
    client = make_client("alice")
    client.send("hi\tthere")
    assert client.connection.sent == [b"hi\tthere"]


def test_client_send_propagates_error():
    client = make_client("alice", fail=True)
    with pytest.raises(OSError):
        client.send(b"x")


def test_send_client_list(registry):
    alice = make_client("alice", logged_in=True, receiving=True)
    bob = make_client("bob", logged_in=True, receiving=False)
    anonymous = make_client("", logged_in=False, receiving=True)
    for client in (alice, bob, anonymous):
        registry.add(client)
    message = registry.send_client_list()
    assert protocol.field(message, 4).split(",") == ["alice", "bob"]
    assert protocol.declared_length(message) == len(message)
    assert alice.connection.sent == [message.encode("latin-1")]
    assert bob.connection.sent == []
    assert anonymous.connection.sent == []


def test_send_client_list_survives_failed_client(registry):
    broken = make_client("alice", logged_in=True, receiving=True, fail=True)
    bob = make_client("bob", logged_in=True, receiving=True)
    registry.add(broken)
    registry.add(bob)
    message = registry.send_client_list()
    assert bob.connection.sent == [message.encode("latin-1")]


def test_send_client_list_skips_exited(registry):
    alice = make_client("alice", logged_in=True, receiving=True)
    gone = make_client("bob", logged_in=True, receiving=True)
    registry.add(alice)
    registry.add(gone)
    gone.exited = True
    message = registry.send_client_list()
    assert protocol.field(message, 4) == "alice"
    assert gone.connection.sent == []