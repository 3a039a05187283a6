"""
Unified exception definitions
"""
from typing import Optional


class SftpError(Exception):
    """Base exception class"""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        path: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        self.message = message
        self.operation = operation
        self.path = path
        self.cause = cause
        super().__init__(self._format())

    def _format(self) -> str:
        parts = [self.message]
        context = []
        if self.operation:
            context.append(f"operation={self.operation}")
        if self.path is not None:
            context.append(f"path={self.path}")
        if context:
            parts.append(f"[{', '.join(context)}]")
        if self.cause is not None:
            parts.append(f"(cause: {self.cause})")
        return " ".join(parts)


class ConfigError(SftpError):
    """Configuration error"""
    pass


class InvalidArgumentError(SftpError, ValueError):
    """Bad caller input"""
    pass


class ConnectionError(SftpError):
    """Transport unreachable, reset or timed out"""
    pass


class AuthenticationError(SftpError):
    """All credential methods exhausted"""
    pass


class SessionNotReadyError(SftpError):
    """Operation attempted on a session that is not ready"""
    pass


class SessionClosedError(SessionNotReadyError):
    """Operation attempted after close or failure"""
    pass


class NotFoundError(SftpError):
    """Remote path absent"""
    pass


class PermissionError(SftpError):
    """Server denied the operation"""
    pass


class ProtocolError(SftpError):
    """Malformed or unmatched response"""
    pass


class RemoteIOError(SftpError):
    """Read/write fault on a remote file"""
    pass
