"""
Transfer data models
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, Any

from ...core.constants import DEFAULT_CHUNK_SIZE
from ...core.exceptions import (
    InvalidArgumentError,
    ConnectionError,
    AuthenticationError,
    SessionClosedError,
    SessionNotReadyError,
    NotFoundError,
    PermissionError,
    ProtocolError,
    RemoteIOError,
)


class TransferDirection(str, Enum):
    """Transfer direction"""
    DOWNLOAD = "download"  # remote → local
    UPLOAD = "upload"      # local → remote


class TransferOutcome(str, Enum):
    """How a transfer ended"""
    SUCCESS = "success"
    PARTIAL_FAILURE = "partial_failure"
    FAILURE = "failure"


class ErrorKind(str, Enum):
    """Error category carried by a TransferResult"""
    CONNECTION = "connection"
    AUTHENTICATION = "authentication"
    SESSION_CLOSED = "session_closed"
    NOT_FOUND = "not_found"
    PERMISSION = "permission"
    PROTOCOL = "protocol"
    IO = "io"
    INVALID_ARGUMENT = "invalid_argument"

    @classmethod
    def from_exception(cls, error: BaseException) -> "ErrorKind":
        # Order matters: subclasses before their bases
        mapping = (
            (AuthenticationError, cls.AUTHENTICATION),
            (ConnectionError, cls.CONNECTION),
            (SessionNotReadyError, cls.SESSION_CLOSED),
            (NotFoundError, cls.NOT_FOUND),
            (PermissionError, cls.PERMISSION),
            (ProtocolError, cls.PROTOCOL),
            (InvalidArgumentError, cls.INVALID_ARGUMENT),
            (RemoteIOError, cls.IO),
        )
        for error_cls, kind in mapping:
            if isinstance(error, error_cls):
                return kind
        return cls.IO


@dataclass
class TransferConfig:
    """Transfer configuration"""
    chunk_size: int = DEFAULT_CHUNK_SIZE

    def __post_init__(self):
        validate_chunk_size(self.chunk_size)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {"chunk_size": self.chunk_size}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TransferConfig":
        """Create from dictionary"""
        valid_fields = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**valid_fields)


@dataclass
class TransferResult:
    """Transfer result"""
    bytes_transferred: int
    outcome: TransferOutcome
    error: Optional[ErrorKind] = None
    remote_path: Optional[str] = None
    direction: Optional[TransferDirection] = None
    duration: float = 0.0
    cause: Optional[BaseException] = field(default=None, repr=False, compare=False)

    @property
    def success(self) -> bool:
        return self.outcome == TransferOutcome.SUCCESS

    @property
    def average_speed(self) -> float:
        """bytes/s"""
        if self.duration <= 0:
            return 0.0
        return self.bytes_transferred / self.duration

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "bytes_transferred": self.bytes_transferred,
            "outcome": self.outcome.value,
            "error": self.error.value if self.error else None,
            "remote_path": self.remote_path,
            "direction": self.direction.value if self.direction else None,
            "duration": self.duration,
            "cause": str(self.cause) if self.cause else None,
        }


def validate_chunk_size(chunk_size: int) -> int:
    """
    Raises:
        InvalidArgumentError: Unless chunk_size is a positive integer
    """
    if isinstance(chunk_size, bool) or not isinstance(chunk_size, int) or chunk_size <= 0:
        raise InvalidArgumentError(f"chunk size must be a positive integer, got {chunk_size!r}")
    return chunk_size
