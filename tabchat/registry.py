"""Registry of connected clients and of the users allowed to log in."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from os import PathLike
from pathlib import Path
from typing import Any

from tabchat import protocol

log = logging.getLogger(__name__)


class LoginError(Exception):
    """A login was refused; ``code`` holds the protocol's response code."""

    def __init__(self, code: str) -> None:
        super().__init__(code)
        self.code = code


@dataclass(eq=False)
class Client:
    """One connected client and the state the server keeps for it."""

    connection: Any
    ip: str
    port: int
    username: str = ""
    logged_in: bool = False
    sending_allowed: bool = False
    receiving_allowed: bool = False
    exited: bool = False

    @property
    def address(self) -> str:
        return f"{self.ip}:{self.port}"

    def send(self, data: bytes | str) -> None:
        """Send all of ``data``; raises OSError on failure."""
        if isinstance(data, str):
            data = data.encode(protocol.ENCODING)
        self.connection.sendall(data)


class ClientRegistry:
    """Thread-safe list of clients. ``lock`` is re-entrant and may be held by callers."""

    def __init__(self, users_file: str | PathLike[str]) -> None:
        self.users_file = Path(users_file)
        self.lock = threading.RLock()
        self._clients: list[Client] = []

    def add(self, client: Client) -> None:
        with self.lock:
            self._clients.append(client)

    def remove(self, client: Client) -> None:
        """Drop ``client``; a client that is not registered is ignored."""
        with self.lock:
            self._clients = [c for c in self._clients if c is not client]

    def _prune(self) -> None:
        self._clients = [c for c in self._clients if not c.exited]

    def clients(self) -> list[Client]:
        """Return the clients still running, dropping those that have exited."""
        with self.lock:
            self._prune()
            return list(self._clients)

    def find(self, username: str) -> list[Client]:
        """Return every running client with this username."""
        return [c for c in self.clients() if c.username == username]

    def has_user(self, username: str) -> bool:
        """Tell whether any registered client carries this username."""
        with self.lock:
            return any(c.username == username for c in self._clients)

    def is_logged_in(self, username: str) -> bool:
        return bool(self.find(username))

    def login(self, username: str, password: str) -> str:
        """Check credentials against the users file and return the username."""
        try:
            text = self.users_file.read_text(encoding=protocol.ENCODING)
        except OSError:
            raise LoginError(protocol.USER_NOT_FOUND) from None
        for line in text.split("\n"):
            if protocol.field(line, 0) == username and protocol.field(line, 1) == password:
                if self.is_logged_in(username):
                    raise LoginError(protocol.USER_ALREADY_IN)
                return username
        raise LoginError(protocol.USER_NOT_FOUND)

    def send_client_list(self) -> str:
        """Send the list of logged-in users to every client able to receive it."""
        with self.lock:
            self._prune()
            message = protocol.client_list_message(
                c.username for c in self._clients if c.logged_in
            )
            data = message.encode(protocol.ENCODING)
            log.info("client list: %s", message)
            for client in self._clients:
                if not (client.receiving_allowed and client.logged_in):
                    continue
                try:
                    client.send(data)
                except OSError as exc:
                    log.warning("failed sending client list to %s: %s", client.address, exc)
            return message