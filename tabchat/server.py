"""TCP listener that accepts chat clients and hands each one to a handler thread."""

from __future__ import annotations

import argparse
import logging
import socket
import threading
from collections.abc import Sequence

from tabchat.handler import ClientHandler
from tabchat.registry import Client, ClientRegistry

log = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 27095
DEFAULT_USERS_FILE = "users.txt"
BACKLOG = 2

_POLL_INTERVAL = 0.2


class ChatServer:
    """Listening socket bound to ``host``:``port`` that serves clients of ``registry``.

    Binding happens on construction; an ``OSError`` is raised if it fails.
    """

    def __init__(self, host: str, port: int, registry: ClientRegistry) -> None:
        self.registry = registry
        self._closed = threading.Event()
        self._socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM, socket.IPPROTO_TCP)
        try:
            self._socket.bind((host, port))
            self._socket.listen(BACKLOG)
        except OSError:
            self._socket.close()
            raise
        self._socket.settimeout(_POLL_INTERVAL)
        self.handlers: list[ClientHandler] = []

    @property
    def address(self) -> tuple[str, int]:
        """The host and port the server listens on."""
        host, port = self._socket.getsockname()[:2]
        return host, port

    def __enter__(self) -> ChatServer:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def serve_forever(self) -> None:
        """Accept clients until the server is closed or accepting fails."""
        log.info("accepting clients on %s:%d", *self.address)
        while not self._closed.is_set():
            try:
                connection, (ip, port) = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as exc:
                if not self._closed.is_set():
                    log.error("could not accept a client: %s", exc)
                return
            connection.settimeout(None)
            log.info("new client connected from %s:%d", ip, port)
            client = Client(connection=connection, ip=ip, port=port)
            self.registry.add(client)
            handler = ClientHandler(client, self.registry)
            self.handlers.append(handler)
            handler.start()

    def close(self) -> None:
        """Stop accepting clients and close the listening socket."""
        self._closed.set()
        try:
            self._socket.close()
        except OSError as exc:
            log.warning("could not close the listening socket: %s", exc)


def _port(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port: {value!r}") from None
    if not 0 <= number <= 65535:
        raise argparse.ArgumentTypeError(f"port out of range: {number}")
    return number


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tabchat", description="Run the chat server.")
    parser.add_argument("--host", default=DEFAULT_HOST, help="address to listen on")
    parser.add_argument("--port", type=_port, default=DEFAULT_PORT, help="port to listen on")
    parser.add_argument(
        "--users", default=DEFAULT_USERS_FILE, help="file of tab-separated usernames and passwords"
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Start the server and serve until interrupted; returns the exit status."""
    args = _parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    registry = ClientRegistry(args.users)
    try:
        server = ChatServer(args.host, args.port, registry)
    except OSError as exc:
        log.error("could not bind to %s:%d: %s", args.host, args.port, exc)
        return 1
    log.info("server started")
    with server:
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            log.info("server stopped")
    return 0