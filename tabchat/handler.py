"""Per-connection worker that reads frames from one client and relays them."""

from __future__ import annotations

import logging
import threading
import time

from tabchat import protocol
from tabchat.registry import Client, ClientRegistry, LoginError

log = logging.getLogger(__name__)

_TARGETED_TYPES = (protocol.FILE_REQUEST, protocol.FILE_ANSWER, protocol.FILE_TRANSFER)


class ClientHandler(threading.Thread):
    """Thread serving one connected client until it disconnects."""

    restore_delay = 3.0

    def __init__(self, client: Client, registry: ClientRegistry) -> None:
        super().__init__(name=f"client-{client.address}", daemon=True)
        self.client = client
        self.registry = registry

    def run(self) -> None:
        """Serve the client; marks it as exited when the connection ends."""
        try:
            self._serve()
        finally:
            self.client.exited = True

    def _serve(self) -> None:
        while True:
            chunk = self._receive()
            if not chunk:
                self._disconnect()
                return
            text = chunk.decode(protocol.ENCODING)
            log.debug("received %d bytes from %s: %s", len(chunk), self.client.address, text)
            if protocol.message_type(text) == protocol.FILE_TRANSFER:
                self._relay_file(chunk, text)
                continue
            message = self._read_frame(chunk, text)
            if message is None:
                continue
            if not self._dispatch(message):
                self._disconnect()
                return

    def _receive(self) -> bytes:
        try:
            return self.client.connection.recv(protocol.BUFFER_SIZE)
        except OSError as exc:
            log.debug("receive from %s failed: %s", self.client.address, exc)
            return b""

    def _disconnect(self) -> None:
        self.client.logged_in = False
        with self.registry.lock:
            self.registry.send_client_list()
        try:
            self.client.connection.close()
        except OSError as exc:
            log.warning("could not close connection of %s: %s", self.client.address, exc)
        else:
            log.info("client %s with address %s disconnected", self.client.username, self.client.address)

    def _read_frame(self, chunk: bytes, text: str) -> str | None:
        try:
            full_length = protocol.declared_length(text)
        except ValueError:
            log.warning("dropping frame with invalid length field from %s", self.client.address)
            return None
        data = bytearray(chunk)
        while len(data) < full_length:
            more = self._receive()
            if not more:
                self.client.logged_in = False
                break
            data += more
        message = data.decode(protocol.ENCODING)
        if not protocol.is_full_message(message, len(data)):
            log.warning("could not receive the whole frame from %s", self.client.address)
            return None
        return message

    def _dispatch(self, message: str) -> bool:
        """Handle one complete frame; returns False when the client must be dropped."""
        kind = protocol.message_type(message)
        if kind == protocol.LOGIN:
            return self._login(message)
        allowed = self.client.logged_in and self.client.sending_allowed
        if not allowed:
            return True
        if kind == protocol.BROADCAST:
            self._broadcast(message)
        elif kind == protocol.PRIVATE:
            self._send_private(message, include_self=True)
        elif kind in _TARGETED_TYPES:
            self._send_private(message, include_self=False)
        return True

    def _login(self, message: str) -> bool:
        username, password = protocol.parse_login(message)
        try:
            name = self.registry.login(username, password)
        except LoginError as exc:
            self._reply(exc.code)
            log.info("login refused for %s: %s", self.client.address, exc.code)
            return False
        self.client.username = name
        self.client.logged_in = True
        self.client.sending_allowed = True
        self.client.receiving_allowed = True
        if not self._reply(protocol.LOGIN_OK):
            return True
        log.info("client %s logged in from %s", name, self.client.address)
        with self.registry.lock:
            self.registry.send_client_list()
        return True

    def _reply(self, code: str) -> bool:
        try:
            self.client.send(code.encode(protocol.ENCODING) + b"\0")
        except OSError as exc:
            log.warning("failed sending login response to %s: %s", self.client.address, exc)
            return False
        return True

    def _from_known_user(self, message: str) -> bool:
        if self.registry.has_user(protocol.sender_of(message)):
            return True
        log.warning("frame from unknown user; not forwarded")
        return False

    def _to_known_user(self, message: str) -> bool:
        if self.registry.has_user(protocol.recipient_of(message)):
            return True
        log.warning("frame to unknown user; not forwarded")
        return False

    @staticmethod
    def _deliver(target: Client, data: bytes) -> bool:
        try:
            target.send(data)
        except OSError as exc:
            log.warning("failed sending to %s: %s", target.address, exc)
            return False
        return True

    def _broadcast(self, message: str) -> None:
        if not self._from_known_user(message):
            return
        data = message.encode(protocol.ENCODING)
        with self.registry.lock:
            for target in self.registry.clients():
                if target.receiving_allowed:
                    self._deliver(target, data)

    def _send_private(self, message: str, include_self: bool) -> None:
        if not (self._from_known_user(message) and self._to_known_user(message)):
            return
        recipient = protocol.recipient_of(message)
        wanted = {recipient, self.client.username} if include_self else {recipient}
        data = message.encode(protocol.ENCODING)
        with self.registry.lock:
            for target in self.registry.clients():
                if target.receiving_allowed and target.username in wanted:
                    self._deliver(target, data)

    def _relay_file(self, header: bytes, text: str) -> None:
        if not (self._from_known_user(text) and self._to_known_user(text)):
            return
        recipient = protocol.recipient_of(text)
        sender = protocol.sender_of(text)
        with self.registry.lock:
            for target in self.registry.find(recipient):
                target.receiving_allowed = False
                target.sending_allowed = False
                if not self._deliver(target, header):
                    break
            for target in self.registry.find(sender):
                target.sending_allowed = False
                target.receiving_allowed = False
        while True:
            part = self._receive()
            if not part:
                self._abort_transfer(sender, recipient)
                return
            for target in self.registry.find(recipient):
                self._deliver(target, part)
            if protocol.has_suffix(part.decode(protocol.ENCODING), protocol.EOF_MARKER):
                self._finish_transfer(sender, recipient)
                return

    def _restore(self, sender: str, recipient: str) -> None:
        for target in self.registry.clients():
            if target.username in (sender, recipient):
                target.receiving_allowed = True
                target.sending_allowed = True

    def _finish_transfer(self, sender: str, recipient: str) -> None:
        notice = protocol.TRANSFER_COMPLETE.encode(protocol.ENCODING)
        with self.registry.lock:
            self._restore(sender, recipient)
            for target in self.registry.find(sender):
                self._deliver(target, notice)

    def _abort_transfer(self, sender: str, recipient: str) -> None:
        log.warning("sender %s disconnected during file transfer", sender)
        error = protocol.ERROR_MARKER.encode(protocol.ENCODING).ljust(protocol.BUFFER_SIZE, b"\0")
        for target in self.registry.find(recipient):
            self._deliver(target, error)
        with self.registry.lock:
            self._restore(sender, recipient)
            time.sleep(self.restore_delay)
            self.registry.send_client_list()