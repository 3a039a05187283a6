"""
sftpkit - SFTP client library

Provides a small client for the SSH File Transfer Protocol (version 3), supporting:
- Session management (password, key and agent authentication)
- Lazy directory listing
- Stream-like remote file handles
- Chunked uploads and downloads with partial-failure reporting
"""

__version__ = "0.1.0"

# Export client entry points
from .client import SftpClient, connect

# Export core components
from .core import (
    SftpError,
    ConfigError,
    InvalidArgumentError,
    ConnectionError,
    AuthenticationError,
    SessionNotReadyError,
    SessionClosedError,
    NotFoundError,
    PermissionError,
    ProtocolError,
    RemoteIOError,
    setup_logging,
)

# Export domain models
from .domain.session import (
    ConnectionParameters,
    SessionState,
    Session,
    FileAttributes,
    AuthPlan,
    build_auth_plan,
)

from .domain.listing import (
    DirectoryEntry,
    DirectoryLister,
    DirectoryListing,
    list_directory,
)

from .domain.files import (
    OpenMode,
    RemoteFileHandle,
    open_file,
)

from .domain.transfer import (
    TransferConfig,
    TransferResult,
    TransferOutcome,
    TransferEngine,
    download,
    upload,
)

__all__ = [
    # Version
    "__version__",
    # Client
    "SftpClient",
    "connect",
    # Errors
    "SftpError",
    "ConfigError",
    "InvalidArgumentError",
    "ConnectionError",
    "AuthenticationError",
    "SessionNotReadyError",
    "SessionClosedError",
    "NotFoundError",
    "PermissionError",
    "ProtocolError",
    "RemoteIOError",
    # Logging
    "setup_logging",
    # Session
    "ConnectionParameters",
    "SessionState",
    "Session",
    "FileAttributes",
    "AuthPlan",
    "build_auth_plan",
    # Listing
    "DirectoryEntry",
    "DirectoryLister",
    "DirectoryListing",
    "list_directory",
    # Files
    "OpenMode",
    "RemoteFileHandle",
    "open_file",
    # Transfer
    "TransferConfig",
    "TransferResult",
    "TransferOutcome",
    "TransferEngine",
    "download",
    "upload",
]
