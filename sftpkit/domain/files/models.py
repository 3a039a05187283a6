"""
File handle domain models
"""
from enum import Enum
from typing import Tuple, Union

from paramiko.sftp import (
    SFTP_FLAG_READ,
    SFTP_FLAG_WRITE,
    SFTP_FLAG_CREATE,
    SFTP_FLAG_TRUNC,
    SFTP_FLAG_APPEND,
)

from ...core.exceptions import InvalidArgumentError


class OpenMode(str, Enum):
    """Access mode of a remote file handle"""
    READ = "read"
    WRITE = "write"
    READ_WRITE = "read_write"

    @property
    def readable(self) -> bool:
        return self in (OpenMode.READ, OpenMode.READ_WRITE)

    @property
    def writable(self) -> bool:
        return self in (OpenMode.WRITE, OpenMode.READ_WRITE)

    @classmethod
    def from_flags(cls, flags: str) -> "OpenMode":
        return parse_mode(flags)[0]


class HandleState(str, Enum):
    """Remote file handle lifecycle"""
    OPENING = "opening"
    OPEN = "open"
    CLOSED = "closed"
    FAILED = "failed"


# mode -> (OpenMode, SFTP pflags, append)
_FLAG_TABLE = {
    "r": (OpenMode.READ, SFTP_FLAG_READ, False),
    "w": (OpenMode.WRITE, SFTP_FLAG_WRITE | SFTP_FLAG_CREATE | SFTP_FLAG_TRUNC, False),
    "a": (OpenMode.WRITE, SFTP_FLAG_WRITE | SFTP_FLAG_CREATE | SFTP_FLAG_APPEND, True),
    "r+": (OpenMode.READ_WRITE, SFTP_FLAG_READ | SFTP_FLAG_WRITE, False),
    "w+": (
        OpenMode.READ_WRITE,
        SFTP_FLAG_READ | SFTP_FLAG_WRITE | SFTP_FLAG_CREATE | SFTP_FLAG_TRUNC,
        False,
    ),
    "a+": (
        OpenMode.READ_WRITE,
        SFTP_FLAG_READ | SFTP_FLAG_WRITE | SFTP_FLAG_CREATE | SFTP_FLAG_APPEND,
        True,
    ),
}

_MODE_DEFAULT_FLAGS = {
    OpenMode.READ: "r",
    OpenMode.WRITE: "w",
    OpenMode.READ_WRITE: "r+",
}


def parse_mode(mode: Union[str, OpenMode]) -> Tuple[OpenMode, int, bool]:
    """
    Translate a file mode into (OpenMode, SFTP open flags, append).

    Accepts OpenMode values and Python style mode strings; ``b`` and ``t``
    are ignored since remote handles always move bytes.

    Raises:
        InvalidArgumentError: If the mode is not recognised
    """
    if isinstance(mode, OpenMode):
        mode = _MODE_DEFAULT_FLAGS[mode]

    normalized = mode.replace("b", "").replace("t", "")
    if normalized not in _FLAG_TABLE:
        raise InvalidArgumentError(f"invalid file mode {mode!r}", operation="open")
    return _FLAG_TABLE[normalized]
