"""
Remote file handle
"""
from typing import Optional, Union, TYPE_CHECKING

from paramiko import Message
from paramiko.sftp import (
    CMD_OPEN,
    CMD_CLOSE,
    CMD_READ,
    CMD_WRITE,
    CMD_FSTAT,
    CMD_HANDLE,
    CMD_DATA,
    CMD_ATTRS,
)

from ...core.constants import MAX_REQUEST_SIZE
from ...core.exceptions import SftpError, InvalidArgumentError, RemoteIOError
from ...core.logging import get_logger
from ..session.attributes import FileAttributes, pack_empty_attrs
from ..session.protocol import read_data, read_handle
from .models import OpenMode, HandleState, parse_mode

if TYPE_CHECKING:
    from ..session.session import Session

logger = get_logger(__name__)


class RemoteFileHandle:
    """
    Stream-like cursor over one open remote file.

    Reads and writes are strictly sequential and move the cursor. Every
    operation fails with SessionClosedError, without touching the network,
    once the owning session is no longer ready.
    """

    def __init__(
        self,
        session: "Session",
        remote_path: str,
        mode: Union[str, OpenMode] = "r",
        buffer_size: int = 0,
    ):
        """
        Initialize handle (not yet opened; see open()).

        Args:
            session: Owning session (not owned by the handle)
            remote_path: Remote file path
            mode: OpenMode or mode string ("r", "w", "a", "r+", "w+")
            buffer_size: Bytes of writes to accumulate before sending; 0 sends immediately
        """
        if buffer_size < 0:
            raise InvalidArgumentError("buffer_size must not be negative", operation="open", path=remote_path)

        self.session = session
        self.remote_path = remote_path
        self.mode, self._pflags, self._append = parse_mode(mode)
        self.buffer_size = buffer_size

        self._state = HandleState.OPENING
        self._handle: Optional[bytes] = None
        self._offset = 0
        self._buffer = bytearray()

    @classmethod
    def open(
        cls,
        session: "Session",
        remote_path: str,
        mode: Union[str, OpenMode] = "r",
        buffer_size: int = 0,
    ) -> "RemoteFileHandle":
        """
        Open a remote file.

        Raises:
            NotFoundError: If the file (or its parent, for writes) is missing
            PermissionError: If the server refuses access
            SessionNotReadyError: If the session is not ready
        """
        handle = cls(session, remote_path, mode, buffer_size)
        handle._open()
        return handle

    def __repr__(self) -> str:
        return f"<RemoteFileHandle {self.remote_path!r} {self.mode.value} {self._state.value}>"

    # --------------------
    # State
    # --------------------
    @property
    def state(self) -> HandleState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._state != HandleState.OPEN

    @property
    def cursor_offset(self) -> int:
        """Logical position, including buffered writes"""
        return self._offset + len(self._buffer)

    def tell(self) -> int:
        return self.cursor_offset

    def readable(self) -> bool:
        return self.mode.readable

    def writable(self) -> bool:
        return self.mode.writable

    def invalidate(self) -> None:
        """Mark closed because the owning session went away"""
        if self._buffer:
            logger.warning(
                f"Discarding {len(self._buffer)} unflushed bytes for {self.remote_path}"
            )
            self._buffer.clear()
        if self._state in (HandleState.OPENING, HandleState.OPEN):
            self._state = HandleState.CLOSED

    def _check(self, operation: str) -> None:
        self.session.ensure_ready(operation, self.remote_path)
        if self._state != HandleState.OPEN:
            raise RemoteIOError(
                f"file handle is {self._state.value}",
                operation=operation,
                path=self.remote_path,
            )

    # --------------------
    # Open / close
    # --------------------
    def _open(self) -> None:
        msg = Message()
        msg.add_string(self.remote_path)
        msg.add_int(self._pflags)
        pack_empty_attrs(msg)

        try:
            self._handle = self.session.request(
                CMD_OPEN,
                msg,
                operation="open",
                path=self.remote_path,
                expect=CMD_HANDLE,
                decode=read_handle,
            )
        except SftpError:
            self._state = HandleState.FAILED
            raise

        self._state = HandleState.OPEN
        self.session.register_handle(self)
        logger.debug(f"Opened {self.remote_path} ({self.mode.value})")

        if self._append:
            try:
                self._offset = self.fstat().size
            except SftpError:
                self.close()
                raise

    def close(self) -> None:
        """Flush buffered writes and release the remote file; idempotent"""
        if self._state != HandleState.OPEN:
            self._state = HandleState.CLOSED
            return

        try:
            if self.session.is_ready:
                self.flush()
        except BaseException:
            self._release(quiet=True)
            raise
        self._release()

    def _release(self, quiet: bool = False) -> None:
        self._state = HandleState.CLOSED
        self._buffer.clear()
        self.session.unregister_handle(self)
        if not self.session.is_ready:
            return

        msg = Message()
        msg.add_string(self._handle)
        try:
            self.session.request(CMD_CLOSE, msg, operation="close", path=self.remote_path)
        except SftpError as e:
            if not quiet:
                raise
            logger.warning(f"Failed to close {self.remote_path} after a flush error: {e}")
            return
        logger.debug(f"Closed {self.remote_path}")

    # --------------------
    # I/O
    # --------------------
    def write(self, data: bytes) -> int:
        """
        Write bytes at the cursor and advance it.

        Returns:
            Number of bytes accepted

        Raises:
            RemoteIOError: If the server rejects a write
            SessionClosedError: If the session is closed
        """
        self._check("write")
        if not self.writable():
            raise InvalidArgumentError("file not opened for writing", operation="write", path=self.remote_path)
        if isinstance(data, str):
            raise InvalidArgumentError("write() takes bytes, not str", operation="write", path=self.remote_path)

        data = bytes(data)
        if self.buffer_size > 0:
            self._buffer += data
            if len(self._buffer) >= self.buffer_size:
                self.flush()
        else:
            self._send(data)
        return len(data)

    def flush(self) -> None:
        """Send buffered writes"""
        self._check("flush")
        if not self._buffer:
            return
        data = bytes(self._buffer)
        self._buffer.clear()
        self._send(data)

    def _send(self, data: bytes) -> None:
        view = memoryview(data)
        for start in range(0, len(view), MAX_REQUEST_SIZE):
            piece = view[start:start + MAX_REQUEST_SIZE]
            msg = Message()
            msg.add_string(self._handle)
            msg.add_int64(self._offset)
            msg.add_string(bytes(piece))
            self.session.request(CMD_WRITE, msg, operation="write", path=self.remote_path)
            self._offset += len(piece)

    def read(self, max_bytes: int = -1) -> bytes:
        """
        Read up to max_bytes from the cursor.

        Fewer bytes come back only at end of file or on a short read from
        the server; b"" means end of file. A negative max_bytes reads to
        end of file. On error the cursor stays where it was.

        Raises:
            RemoteIOError: If the server rejects a read
            SessionClosedError: If the session is closed
        """
        self._check("read")
        if not self.readable():
            raise InvalidArgumentError("file not opened for reading", operation="read", path=self.remote_path)

        if self._buffer:
            self.flush()

        if max_bytes == 0:
            return b""

        # The cursor moves only after every request of this call succeeded
        to_eof = max_bytes < 0
        position = self._offset
        remaining = max_bytes
        chunks = []
        while to_eof or remaining > 0:
            wanted = MAX_REQUEST_SIZE if to_eof else min(remaining, MAX_REQUEST_SIZE)
            data = self._read_request(position, wanted)
            if not data:
                break
            chunks.append(data)
            position += len(data)
            if not to_eof:
                remaining -= len(data)
                if len(data) < wanted:
                    break

        self._offset = position
        return b"".join(chunks)

    def _read_request(self, offset: int, length: int) -> bytes:
        msg = Message()
        msg.add_string(self._handle)
        msg.add_int64(offset)
        msg.add_int(length)
        reply = self.session.request(
            CMD_READ,
            msg,
            operation="read",
            path=self.remote_path,
            expect=CMD_DATA,
            decode=read_data,
        )
        if reply is None:
            return b""
        return reply

    def fstat(self) -> FileAttributes:
        """Attributes of the open file"""
        self._check("fstat")
        msg = Message()
        msg.add_string(self._handle)
        return self.session.request(
            CMD_FSTAT,
            msg,
            operation="fstat",
            path=self.remote_path,
            expect=CMD_ATTRS,
            decode=FileAttributes.from_message,
        )

    # --------------------
    # Context manager
    # --------------------
    def __enter__(self) -> "RemoteFileHandle":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()


def open_file(
    session: "Session",
    remote_path: str,
    mode: Union[str, OpenMode] = "r",
    buffer_size: int = 0,
) -> RemoteFileHandle:
    """Shortcut for RemoteFileHandle.open()"""
    return RemoteFileHandle.open(session, remote_path, mode, buffer_size)
