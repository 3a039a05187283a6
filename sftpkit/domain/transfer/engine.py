"""
Chunked upload/download engine
"""
import time
from pathlib import Path
from typing import Optional, Callable, BinaryIO, Union, TYPE_CHECKING

from ...core.constants import PART_SUFFIX
from ...core.exceptions import (
    InvalidArgumentError,
    ConnectionError,
    ProtocolError,
    RemoteIOError,
    SessionNotReadyError,
)
from ...core.logging import get_logger
from ...core.telemetry import Telemetry, get_telemetry
from ..files import RemoteFileHandle, OpenMode
from .models import (
    TransferConfig,
    TransferResult,
    TransferOutcome,
    TransferDirection,
    ErrorKind,
    validate_chunk_size,
)

if TYPE_CHECKING:
    from ..session.session import Session

logger = get_logger(__name__)

ProgressCallback = Callable[[int, Optional[int]], None]

# Faults that end a transfer with a result instead of an exception
CHUNK_FAULTS = (RemoteIOError, ConnectionError, ProtocolError, SessionNotReadyError, OSError)


class TransferEngine:
    """
    Whole-file transfers over a single session.

    Data moves sequentially in chunks of ``chunk_size`` bytes. A fault after
    the remote file was opened is reported in the TransferResult together
    with the bytes already moved; the remote handle is closed on every path.
    """

    def __init__(
        self,
        session: "Session",
        config: Optional[TransferConfig] = None,
        telemetry: Optional[Telemetry] = None,
    ):
        """
        Initialize transfer engine.

        Args:
            session: Session to transfer over
            config: Transfer configuration
            telemetry: Metrics sink (defaults to the global collector)
        """
        self.session = session
        self.config = config or TransferConfig()
        self.telemetry = telemetry or get_telemetry()

    def _chunk_size(self, chunk_size: Optional[int]) -> int:
        if chunk_size is None:
            return self.config.chunk_size
        return validate_chunk_size(chunk_size)

    # --------------------
    # Download
    # --------------------
    def download(
        self,
        remote_path: str,
        sink: BinaryIO,
        chunk_size: Optional[int] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> TransferResult:
        """
        Stream a remote file into a writable binary sink.

        Args:
            remote_path: Remote file path
            sink: Object with a write(bytes) method
            chunk_size: Bytes per read (defaults to config)
            progress_callback: Called with (bytes_so_far, total_bytes)

        Returns:
            TransferResult

        Raises:
            InvalidArgumentError: If chunk_size is not positive
            NotFoundError: If the remote file does not exist
            PermissionError: If the server refuses to open it
            SessionClosedError: If the session is closed
        """
        size = self._chunk_size(chunk_size)
        started = time.time()
        handle = RemoteFileHandle.open(self.session, remote_path, OpenMode.READ)
        return self._pump_download(handle, sink, size, progress_callback, started)

    def _pump_download(
        self,
        handle: RemoteFileHandle,
        sink: BinaryIO,
        chunk_size: int,
        progress_callback: Optional[ProgressCallback],
        started: float,
    ) -> TransferResult:
        transferred = 0
        error: Optional[BaseException] = None

        try:
            try:
                total = handle.fstat().size if progress_callback else None
                while True:
                    data = handle.read(chunk_size)
                    if not data:
                        break
                    sink.write(data)
                    transferred += len(data)
                    if progress_callback:
                        progress_callback(transferred, total)
            finally:
                handle.close()
        except CHUNK_FAULTS as e:
            error = e

        return self._finish(
            TransferDirection.DOWNLOAD,
            handle.remote_path,
            transferred,
            error,
            started,
        )

    def download_file(
        self,
        remote_path: str,
        local_path: Union[str, Path],
        chunk_size: Optional[int] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> TransferResult:
        """
        Download into a local file.

        Data goes to ``<local_path>.part`` first and replaces the target
        only when the transfer succeeds; the part file is removed otherwise.
        The remote file is opened before anything is created locally.
        """
        size = self._chunk_size(chunk_size)
        started = time.time()
        local_file = Path(local_path).expanduser()

        handle = RemoteFileHandle.open(self.session, remote_path, OpenMode.READ)

        temp_file = local_file.with_name(local_file.name + PART_SUFFIX)
        try:
            local_file.parent.mkdir(parents=True, exist_ok=True)
            f = open(temp_file, 'wb')
        except OSError:
            handle.close()
            raise

        with f:
            result = self._pump_download(handle, f, size, progress_callback, started)

        if result.success:
            temp_file.replace(local_file)
        else:
            temp_file.unlink(missing_ok=True)
        return result

    # --------------------
    # Upload
    # --------------------
    def upload(
        self,
        source: BinaryIO,
        remote_path: str,
        chunk_size: Optional[int] = None,
        progress_callback: Optional[ProgressCallback] = None,
        total_bytes: Optional[int] = None,
    ) -> TransferResult:
        """
        Stream a readable binary source into a remote file.

        The remote file is created or truncated. An empty source produces
        an empty remote file.

        Args:
            source: Object with a read(n) method returning bytes
            remote_path: Remote file path
            chunk_size: Bytes per write (defaults to config)
            progress_callback: Called with (bytes_so_far, total_bytes)
            total_bytes: Source size, if known, for progress reporting

        Returns:
            TransferResult

        Raises:
            InvalidArgumentError: If chunk_size is not positive
            NotFoundError: If the remote parent directory does not exist
            PermissionError: If the server refuses to create the file
            SessionClosedError: If the session is closed
        """
        size = self._chunk_size(chunk_size)
        started = time.time()
        handle = RemoteFileHandle.open(self.session, remote_path, OpenMode.WRITE)

        transferred = 0
        error: Optional[BaseException] = None

        try:
            try:
                while True:
                    data = source.read(size)
                    if not data:
                        break
                    handle.write(data)
                    transferred += len(data)
                    if progress_callback:
                        progress_callback(transferred, total_bytes)
            finally:
                handle.close()
        except CHUNK_FAULTS as e:
            error = e

        return self._finish(
            TransferDirection.UPLOAD,
            remote_path,
            transferred,
            error,
            started,
        )

    def upload_file(
        self,
        local_path: Union[str, Path],
        remote_path: str,
        chunk_size: Optional[int] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> TransferResult:
        """
        Upload a local file.

        Raises:
            InvalidArgumentError: If the local file does not exist
        """
        self._chunk_size(chunk_size)
        local_file = Path(local_path).expanduser()
        if not local_file.is_file():
            raise InvalidArgumentError(
                f"local file not found: {local_file}",
                operation="upload",
                path=remote_path,
            )

        with open(local_file, 'rb') as f:
            return self.upload(
                f,
                remote_path,
                chunk_size=chunk_size,
                progress_callback=progress_callback,
                total_bytes=local_file.stat().st_size,
            )

    # --------------------
    # Result
    # --------------------
    def _finish(
        self,
        direction: TransferDirection,
        remote_path: str,
        transferred: int,
        error: Optional[BaseException],
        started: float,
    ) -> TransferResult:
        if error is None:
            outcome = TransferOutcome.SUCCESS
        elif transferred > 0:
            outcome = TransferOutcome.PARTIAL_FAILURE
        else:
            outcome = TransferOutcome.FAILURE

        result = TransferResult(
            bytes_transferred=transferred,
            outcome=outcome,
            error=ErrorKind.from_exception(error) if error else None,
            remote_path=remote_path,
            direction=direction,
            duration=time.time() - started,
            cause=error,
        )

        tags = {"direction": direction.value, "outcome": outcome.value}
        self.telemetry.record_metric("transfer.bytes", transferred, tags)
        self.telemetry.record_metric("transfer.duration", result.duration, tags)
        self.telemetry.record_event("transfer.finished", result.to_dict())

        if result.success:
            logger.info(f"{direction.value} {remote_path}: {transferred} bytes")
        else:
            logger.warning(
                f"{direction.value} {remote_path} ended with {outcome.value} "
                f"after {transferred} bytes: {error}"
            )
        return result


def download(
    session: "Session",
    remote_path: str,
    sink: BinaryIO,
    chunk_size: Optional[int] = None,
) -> TransferResult:
    """Shortcut for TransferEngine(session).download()"""
    return TransferEngine(session).download(remote_path, sink, chunk_size)


def upload(
    session: "Session",
    source: BinaryIO,
    remote_path: str,
    chunk_size: Optional[int] = None,
) -> TransferResult:
    """Shortcut for TransferEngine(session).upload()"""
    return TransferEngine(session).upload(source, remote_path, chunk_size)
