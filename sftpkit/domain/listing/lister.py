"""
Directory listing
"""
from collections import deque
from typing import Iterator, List, TYPE_CHECKING

from paramiko import Message
from paramiko.sftp import CMD_OPENDIR, CMD_READDIR, CMD_CLOSE, CMD_HANDLE, CMD_NAME

from ...core.exceptions import SftpError
from ...core.logging import get_logger
from ..session.protocol import ResponseMessage, read_handle
from .models import DirectoryEntry

if TYPE_CHECKING:
    from ..session.session import Session

logger = get_logger(__name__)

_SKIPPED_NAMES = (".", "..")


def _read_names(msg: ResponseMessage) -> List[DirectoryEntry]:
    """Decode the entries of a NAME reply, without "." and ".." """
    entries = []
    for _ in range(msg.get_int()):
        entry = DirectoryEntry.from_message(msg)
        if entry.name not in _SKIPPED_NAMES:
            entries.append(entry)
    return entries


class DirectoryListing:
    """
    Lazy, single-pass iterator over one directory.

    READDIR is only sent when the current batch is used up. The server-side
    handle is released at end of listing, on a READDIR error, or by close()
    (also on leaving a ``with`` block). A listing that is dropped before
    either keeps its handle until the session closes, so use it as a
    context manager unless it is read to the end.
    """

    def __init__(self, session: "Session", path: str, handle: bytes):
        self.session = session
        self.path = path
        self._handle = handle
        self._released = False
        self._batch: deque = deque()

    def __iter__(self) -> Iterator[DirectoryEntry]:
        return self

    def __next__(self) -> DirectoryEntry:
        while not self._batch:
            if self._released:
                raise StopIteration
            try:
                entries = self._read_batch()
            except SftpError:
                self.close()
                raise
            if entries is None:
                self.close()
                raise StopIteration
            self._batch.extend(entries)
        return self._batch.popleft()

    @property
    def closed(self) -> bool:
        return self._released

    def close(self) -> None:
        """Stop the listing and release the directory handle; idempotent"""
        self._batch.clear()
        if self._released:
            return
        self._released = True

        if not self.session.is_ready:
            return

        msg = Message()
        msg.add_string(self._handle)
        try:
            self.session.request(CMD_CLOSE, msg, operation="closedir", path=self.path)
        except SftpError as e:
            logger.warning(f"Failed to release directory handle for {self.path}: {e}")

    def _read_batch(self):
        msg = Message()
        msg.add_string(self._handle)
        return self.session.request(
            CMD_READDIR,
            msg,
            operation="readdir",
            path=self.path,
            expect=CMD_NAME,
            decode=_read_names,
        )

    def __enter__(self) -> "DirectoryListing":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()


class DirectoryLister:
    """Issues listing requests against a session"""

    def __init__(self, session: "Session"):
        self.session = session

    def list(self, path: str = ".") -> DirectoryListing:
        """
        Open a directory for listing.

        The directory is opened immediately; entries are fetched lazily.
        The listing holds a server-side handle until it is read to the end
        or closed, so prefer ``with lister.list(path) as listing:``.

        Args:
            path: Remote directory path

        Returns:
            DirectoryListing over the entries, in server order

        Raises:
            NotFoundError: If the directory does not exist
            PermissionError: If the server refuses to open it
            SessionNotReadyError: If the session is not ready
        """
        msg = Message()
        msg.add_string(path)
        handle = self.session.request(
            CMD_OPENDIR,
            msg,
            operation="opendir",
            path=path,
            expect=CMD_HANDLE,
            decode=read_handle,
        )
        logger.debug(f"Opened directory {path}")
        return DirectoryListing(self.session, path, handle)

    def list_all(self, path: str = ".") -> List[DirectoryEntry]:
        """List a directory into a list"""
        with self.list(path) as listing:
            return list(listing)


def list_directory(session: "Session", path: str = ".") -> DirectoryListing:
    """Shortcut for DirectoryLister(session).list(path); close or exhaust the result"""
    return DirectoryLister(session).list(path)
