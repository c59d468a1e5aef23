"""Wire format of the chat protocol.

A frame is a run of tab-separated fields::

    <total length>\t<type>\t<from>\t<to>\t<payload...>

The first field holds the length of the whole frame, itself included.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

ENCODING = "latin-1"
SEPARATOR = "\t"
BUFFER_SIZE = 8192

LOGIN = "1"
BROADCAST = "2"
PRIVATE = "3"
CLIENT_LIST = "4"
FILE_REQUEST = "5"
FILE_ANSWER = "6"
FILE_TRANSFER = "7"
INVALID_TYPE = "z"

SERVER_NAME = "Server"
EVERYBODY = "Everybody"

LOGIN_OK = "E200"
USER_NOT_FOUND = "E404"
USER_ALREADY_IN = "E403"

EOF_MARKER = "*EOF*"
ERROR_MARKER = "*ERR*"
TRANSFER_COMPLETE = "7\t6\t\t\t2"

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def field(message: str, index: int) -> str:
    """Return field ``index`` of a frame.

    When the frame has fewer fields, the last one is returned.
    """
    if index < 0:
        raise ValueError("field index must not be negative")
    parts = message.split(SEPARATOR)
    return parts[min(index, len(parts) - 1)]


def message_type(message: str) -> str:
    """Return the one-character type of a frame, or ``"z"`` if it has none."""
    kind = field(message, 1)
    return kind if len(kind) == 1 else INVALID_TYPE


def declared_length(message: str) -> int:
    """Return the total length a frame declares in its first field."""
    head = field(message, 0)
    match = _LEADING_INT.match(head)
    if match is None:
        raise ValueError(f"invalid length field: {head!r}")
    return int(match.group(1))


def is_full_message(message: str, length: int) -> bool:
    """Tell whether ``length`` equals the length the frame declares."""
    try:
        return declared_length(message) == length
    except ValueError:
        return False


def has_suffix(text: str, suffix: str) -> bool:
    """Tell whether ``text`` ends with ``suffix``."""
    return text.endswith(suffix)


def sender_of(message: str) -> str:
    """Return the user a frame comes from."""
    return field(message, 2)


def recipient_of(message: str) -> str:
    """Return the user a frame is addressed to."""
    return field(message, 3)


def parse_login(message: str) -> tuple[str, str]:
    """Return the username and password carried by a login frame."""
    return field(message, 4), field(message, 5)


def client_list_message(usernames: Iterable[str]) -> str:
    """Build the frame that tells clients who is logged in."""
    body = SEPARATOR.join((CLIENT_LIST, SERVER_NAME, EVERYBODY, ",".join(usernames)))
    base = len(body) + len(SEPARATOR)
    total = base + len(str(base))
    while base + len(str(total)) != total:
        total = base + len(str(total))
    return f"{total}{SEPARATOR}{body}"