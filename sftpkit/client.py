from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Union, List, BinaryIO, Callable

from .adapters.transport.paramiko_transport import ParamikoTransportProvider
from .core.interfaces import TransportProvider
from .domain.files import RemoteFileHandle, OpenMode
from .domain.listing import DirectoryLister, DirectoryListing
from .domain.session import ConnectionParameters, Session, SessionState, FileAttributes
from .domain.transfer import TransferEngine, TransferConfig, TransferResult

PathLike = Union[str, os.PathLike]
ProgressCallback = Callable[[int, Optional[int]], None]


def connect(
    params: Union[ConnectionParameters, str],
    transport: Optional[TransportProvider] = None,
) -> Session:
    """
    Build and connect a session.

    Args:
        params: ConnectionParameters or an ``sftp://`` URL
        transport: Transport provider (paramiko by default)

    Returns:
        A READY session
    """
    if isinstance(params, str):
        params = ConnectionParameters.from_url(params)
    return Session(params, transport or ParamikoTransportProvider()).connect()


class SftpClient:
    """
    High-level SFTP client over one session:
    - list, open, upload and download in one object
    - local paths or file objects on the local side
    - `with` connects on entry and closes on exit
    """

    def __init__(
        self,
        params: Union[ConnectionParameters, str],
        transport: Optional[TransportProvider] = None,
        config: Optional[TransferConfig] = None,
    ) -> None:
        if isinstance(params, str):
            params = ConnectionParameters.from_url(params)

        self.params = params
        self.config = config or TransferConfig()
        self.session = Session(params, transport or ParamikoTransportProvider())
        self.lister = DirectoryLister(self.session)
        self.engine = TransferEngine(self.session, self.config)

    # --------------------
    # Connection management
    # --------------------
    @property
    def state(self) -> SessionState:
        return self.session.state

    def connect(self) -> SftpClient:
        self.session.connect()
        return self

    def close(self) -> None:
        self.session.close()

    # --------------------
    # Listing
    # --------------------
    def entries(self, remote_dir: str = ".") -> DirectoryListing:
        """
        Lazy listing of a remote directory.

        Use it in a ``with`` block or read it to the end; either releases
        the server-side directory handle.
        """
        return self.lister.list(remote_dir)

    def list_files(self, remote_dir: str = ".") -> List[str]:
        """Long names (ls -l style lines) of a remote directory"""
        with self.entries(remote_dir) as listing:
            return [entry.long_name for entry in listing]

    # --------------------
    # Files
    # --------------------
    def open(
        self,
        remote_file: str,
        mode: Union[str, OpenMode] = "r",
        buffer_size: int = 0,
    ) -> RemoteFileHandle:
        """Open a remote file as a stream-like handle"""
        return RemoteFileHandle.open(self.session, remote_file, mode, buffer_size)

    def stat(self, remote_path: str) -> FileAttributes:
        return self.session.stat(remote_path)

    def remove(self, remote_file: str) -> None:
        self.session.remove(remote_file)

    def mkdir(self, remote_dir: str, mode: int = 0o755) -> None:
        self.session.mkdir(remote_dir, mode)

    # --------------------
    # Transfers
    # --------------------
    def upload(
        self,
        local_file: Union[PathLike, BinaryIO],
        remote_file: str,
        chunk_size: Optional[int] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> TransferResult:
        """Upload a local path or readable binary object"""
        if isinstance(local_file, (str, os.PathLike)):
            return self.engine.upload_file(Path(local_file), remote_file, chunk_size, progress_callback)
        return self.engine.upload(local_file, remote_file, chunk_size, progress_callback)

    def download(
        self,
        remote_file: str,
        local_file: Union[PathLike, BinaryIO],
        chunk_size: Optional[int] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> TransferResult:
        """Download into a local path or writable binary object"""
        if isinstance(local_file, (str, os.PathLike)):
            return self.engine.download_file(remote_file, Path(local_file), chunk_size, progress_callback)
        return self.engine.download(remote_file, local_file, chunk_size, progress_callback)

    # --------------------
    # Context manager
    # --------------------
    def __enter__(self) -> SftpClient:
        if self.session.state == SessionState.DISCONNECTED:
            self.connect()
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()
