# tabchat

A small multi-client TCP chat server. Clients log in with a username and
password, see who else is online, send messages to everyone or to a single
user, and relay files to one another through the server.

## Installation

```
pip install .
```

## Running the server

```
tabchat-server
```

Options:

| Option | Default | Meaning |
|--------|---------|---------|
| `--host` | `127.0.0.1` | address to listen on |
| `--port` | `27095` | port to listen on (0 to 65535) |
| `--users` | `users.txt` | file of tab-separated usernames and passwords |

The server logs connections, logins, disconnections and failures at INFO
level and above to standard error. Each connected client is served on its
own thread. Stop it with Ctrl-C. If the address cannot be bound, the command
logs the error and exits with status 1.

Each line of the users file holds a username and a password separated by a
tab:

```
alice	password
bob	password
```

The file is read afresh on every login attempt. If it is missing, every
login is refused with `E404`.

## The protocol

A message is a run of tab-separated fields:

```
<total length>\t<type>\t<from>\t<to>\t<body>
```

The first field is the length in bytes of the whole message, including the
length field itself. The server keeps reading until that many bytes have
arrived; a message whose length field is not a number, or that does not end
up at exactly the declared length, is dropped.

| Type | Meaning |
|------|---------|
| `1`  | Login. The body is `<username>\t<password>`. |
| `2`  | Message to every client that is allowed to receive. |
| `3`  | Private message, delivered to the recipient and echoed to the sender. |
| `4`  | Client list, sent by the server as `4\tServer\tEverybody\t<name>,<name>,...` |
| `5`, `6` | File-transfer requests and answers, forwarded to the recipient. |
| `7`  | File header. The raw file parts that follow are relayed to the recipient until a part ends with `*EOF*`. |

Login answers are `E200` (logged in), `E403` (that user is already logged in)
and `E404` (unknown user or wrong password), each followed by a NUL byte.
After `E403` or `E404` the connection is closed. Messages of types `2`, `3`,
`5`, `6` are only handled from a client that has logged in.

While a file is being relayed, the sender and recipient neither send nor
receive other messages. When the transfer completes, the sender receives
`7\t6\t\t\t2`. If the sender disconnects part-way, the recipient receives
`*ERR*` padded with NUL bytes to 8192 bytes, and after a three-second pause
the client list is sent again.

The client list is sent to every logged-in client that is allowed to receive
whenever someone logs in, disconnects, or an interrupted transfer is cleaned
up. Messages that name a sender or recipient that no connected client carries
are dropped.

## Using it as a library

```python
from tabchat.registry import ClientRegistry
from tabchat.server import ChatServer

registry = ClientRegistry("users.txt")
with ChatServer("127.0.0.1", 27095, registry) as server:
    print(server.address)
    server.serve_forever()
```

- `tabchat.protocol` holds pure functions for reading and building messages:
  `field`, `message_type`, `declared_length`, `is_full_message`,
  `has_suffix`, `sender_of`, `recipient_of`, `parse_login` and
  `client_list_message`.
- `tabchat.registry` has `Client`, the state kept for one connection, and
  `ClientRegistry`, a thread-safe list of clients with `add`, `remove`,
  `clients`, `find`, `has_user`, `is_logged_in`, `login` (which returns the
  username or raises `LoginError` carrying the response code) and
  `send_client_list` (which returns the list message it sent).
- `tabchat.handler.ClientHandler` is the thread that serves one connection.
- `tabchat.server.ChatServer` binds on construction, accepts clients in
  `serve_forever` and stops with `close`.

## What it does not do

There is no chat client in this package; clients must speak the protocol
above themselves. Accounts live only in the plain-text users file, with
passwords stored as written; the package offers no way to create or change
accounts.

## Running the tests

```
pip install ".[test]"
pytest
```