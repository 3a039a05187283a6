"""
Session domain models
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, Dict, Any
from urllib.parse import urlsplit, unquote

from ...core.constants import DEFAULT_SSH_PORT, DEFAULT_SSH_TIMEOUT, URL_SCHEMES
from ...core.exceptions import InvalidArgumentError


class SessionState(str, Enum):
    """Session lifecycle state"""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"
    CLOSED = "closed"
    FAILED = "failed"


@dataclass(frozen=True)
class ConnectionParameters:
    """Where and how to connect"""
    host: str
    user: str
    port: int = DEFAULT_SSH_PORT
    password: Optional[str] = field(default=None, repr=False)
    private_key_paths: Tuple[str, ...] = ()
    allow_agent_auth: bool = True
    timeout: float = DEFAULT_SSH_TIMEOUT

    def __post_init__(self):
        if not self.host:
            raise InvalidArgumentError("host must not be empty")
        if not self.user:
            raise InvalidArgumentError("user must not be empty")
        if isinstance(self.port, bool) or not isinstance(self.port, int):
            raise InvalidArgumentError(f"port must be an integer, got {self.port!r}")
        if not 1 <= self.port <= 65535:
            raise InvalidArgumentError(f"port out of range: {self.port}")
        if self.timeout <= 0:
            raise InvalidArgumentError(f"timeout must be positive, got {self.timeout}")
        # Accept any iterable of paths but store a tuple
        object.__setattr__(self, "private_key_paths", tuple(self.private_key_paths))

    @classmethod
    def from_url(
        cls,
        url: str,
        private_key_paths: Tuple[str, ...] = (),
        allow_agent_auth: bool = True,
        timeout: float = DEFAULT_SSH_TIMEOUT,
    ) -> "ConnectionParameters":
        """
        Parse ``scheme://[user[:password]@]host[:port]``.

        User and password are percent-decoded. A missing password leaves
        key and agent authentication to the auth plan.

        Raises:
            InvalidArgumentError: If the URL is malformed or has no user
        """
        if not url:
            raise InvalidArgumentError("connection URL is empty")

        parts = urlsplit(url)
        if parts.scheme.lower() not in URL_SCHEMES:
            raise InvalidArgumentError(
                f"unsupported URL scheme {parts.scheme!r}, expected one of {', '.join(URL_SCHEMES)}"
            )

        try:
            port = parts.port
        except ValueError as e:
            raise InvalidArgumentError(f"invalid port in URL: {e}") from e

        if not parts.hostname:
            raise InvalidArgumentError("connection URL has no host")
        if not parts.username:
            raise InvalidArgumentError("connection URL has no user")

        password = unquote(parts.password) if parts.password is not None else None

        return cls(
            host=parts.hostname,
            user=unquote(parts.username),
            port=port if port is not None else DEFAULT_SSH_PORT,
            password=password or None,
            private_key_paths=tuple(private_key_paths),
            allow_agent_auth=allow_agent_auth,
            timeout=timeout,
        )

    @property
    def address(self) -> str:
        """user@host:port, for messages"""
        return f"{self.user}@{self.host}:{self.port}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (password masked)"""
        return {
            "host": self.host,
            "port": self.port,
            "user": self.user,
            "password": "***" if self.password else None,
            "private_key_paths": list(self.private_key_paths),
            "allow_agent_auth": self.allow_agent_auth,
            "timeout": self.timeout,
        }
