"""
SFTP session: lifecycle and request/response correlation
"""
import weakref
from typing import Any, Callable, Optional, Dict

from paramiko import Message
from paramiko.sftp import (
    CMD_STAT,
    CMD_REMOVE,
    CMD_MKDIR,
    CMD_RMDIR,
    CMD_RENAME,
    CMD_REALPATH,
    CMD_STATUS,
    CMD_DATA,
    CMD_NAME,
    CMD_ATTRS,
    SFTP_OK,
    SFTP_EOF,
)

from ...core.constants import SFTP_PROTOCOL_VERSION
from ...core.exceptions import (
    SftpError,
    ProtocolError,
    ConnectionError,
    SessionNotReadyError,
    SessionClosedError,
)
from ...core.interfaces import TransportProvider, Channel
from ...core.logging import get_logger
from .attributes import FileAttributes, pack_empty_attrs
from .auth import build_auth_plan
from .models import ConnectionParameters, SessionState
from .protocol import (
    command_name,
    encode_init,
    encode_request,
    decode_packet,
    decode_version,
    read_status,
    ResponseMessage,
    status_error,
)

logger = get_logger(__name__)


class Session:
    """
    One logical SFTP connection over one transport channel.

    Requests are strictly sequential: each request is sent and its response
    read before the next one goes out. A session must not be shared between
    threads without external locking.
    """

    def __init__(self, params: ConnectionParameters, transport: TransportProvider):
        """
        Initialize session.

        Args:
            params: Connection parameters
            transport: Provider used to open the authenticated channel
        """
        self.params = params
        self.transport = transport
        self.server_version: Optional[int] = None

        self._state = SessionState.DISCONNECTED
        self._channel: Optional[Channel] = None
        self._pending: Dict[int, str] = {}
        self._next_request_id = 0
        self._handles: "weakref.WeakSet" = weakref.WeakSet()

    def __repr__(self) -> str:
        return f"<Session {self.params.address} {self._state.value}>"

    # --------------------
    # Lifecycle
    # --------------------
    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state == SessionState.READY

    @property
    def pending_requests(self) -> Dict[int, str]:
        """Outstanding request ids mapped to their operation"""
        return dict(self._pending)

    def connect(self) -> "Session":
        """
        Open the channel, authenticate and run the SFTP handshake.

        Returns:
            This session, now READY

        Raises:
            AuthenticationError: If every credential was rejected
            ConnectionError: If the server cannot be reached
            ProtocolError: If the handshake reply is malformed
            SessionNotReadyError: If the session was already used
        """
        if self._state != SessionState.DISCONNECTED:
            raise SessionNotReadyError(
                f"cannot connect a session in state {self._state.value}",
                operation="connect",
            )

        self._state = SessionState.CONNECTING
        logger.info(f"Connecting to {self.params.address}")

        try:
            plan = build_auth_plan(self.params)
            logger.debug(f"Authentication order: {plan.describe()}")

            self._channel = self.transport.open_channel(
                self.params.host,
                self.params.port,
                plan,
                self.params.timeout,
            )

            self._channel.send(encode_init())
            version = decode_version(self._channel.receive())
            if version != SFTP_PROTOCOL_VERSION:
                raise ProtocolError(
                    f"unsupported SFTP version {version}",
                    operation="init",
                )
            self.server_version = version
        except Exception as e:
            logger.warning(f"Connection to {self.params.address} failed: {e}")
            self._release_channel()
            self._state = SessionState.FAILED
            raise

        self._state = SessionState.READY
        logger.info(f"Connected to {self.params.address} (SFTP v{self.server_version})")
        return self

    def close(self) -> None:
        """Close the session; idempotent"""
        if self._state == SessionState.CLOSED:
            return

        self._invalidate_handles()
        self._release_channel()
        self._pending.clear()
        self._state = SessionState.CLOSED
        logger.info(f"Closed session to {self.params.address}")

    def ensure_ready(self, operation: str, path: Optional[str] = None) -> None:
        """
        Raise unless the session can issue requests.

        Raises:
            SessionClosedError: After close or failure
            SessionNotReadyError: Before connect has completed
        """
        if self._state == SessionState.READY:
            return
        if self._state in (SessionState.CLOSED, SessionState.FAILED):
            raise SessionClosedError(
                f"session is {self._state.value}",
                operation=operation,
                path=path,
            )
        raise SessionNotReadyError(
            f"session is {self._state.value}",
            operation=operation,
            path=path,
        )

    def register_handle(self, handle) -> None:
        """Track a handle so close() can invalidate it"""
        self._handles.add(handle)

    def unregister_handle(self, handle) -> None:
        self._handles.discard(handle)

    def _invalidate_handles(self) -> None:
        for handle in list(self._handles):
            handle.invalidate()
        self._handles.clear()

    def _release_channel(self) -> None:
        if self._channel is None:
            return
        channel, self._channel = self._channel, None
        try:
            channel.close()
        except (SftpError, OSError) as e:
            logger.debug(f"Error while closing channel: {e}")

    def _fail(self, error: SftpError) -> None:
        """Move to FAILED; request/response correlation is no longer trusted"""
        logger.error(f"Session to {self.params.address} failed: {error}")
        self._invalidate_handles()
        self._release_channel()
        self._pending.clear()
        self._state = SessionState.FAILED

    # --------------------
    # Requests
    # --------------------
    def _allocate_request_id(self) -> int:
        request_id = self._next_request_id
        self._next_request_id = (self._next_request_id + 1) & 0xFFFFFFFF
        return request_id

    def request(
        self,
        cmd: int,
        payload: Optional[Message] = None,
        operation: Optional[str] = None,
        path: Optional[str] = None,
        expect: int = CMD_STATUS,
        decode: Optional[Callable[[ResponseMessage], Any]] = None,
    ) -> Any:
        """
        Send one request and wait for its response.

        Args:
            cmd: SFTP request type
            payload: Request fields after the request id
            operation: Operation name for error context
            path: Remote path for error context
            expect: Expected response type
            decode: Reads the reply payload after the request id; the whole
                payload must be consumed

        Returns:
            The decoded reply, or None for a STATUS OK reply and when the
            server reports end-of-file for a DATA/NAME request

        Raises:
            SessionClosedError: If the session is closed or failed
            ProtocolError: On unmatched or malformed responses (session fails)
            ConnectionError: On transport failure (session fails)
            NotFoundError, PermissionError, RemoteIOError: From STATUS replies
        """
        operation = operation or command_name(cmd)
        self.ensure_ready(operation, path)

        request_id = self._allocate_request_id()
        self._pending[request_id] = operation
        logger.debug(f"-> {command_name(cmd)} #{request_id} {path or ''}")

        status = None
        result = None
        try:
            self._channel.send(encode_request(cmd, request_id, payload))
            resp_type, msg = self._read_response(request_id, operation, path)
            if resp_type == CMD_STATUS:
                status = read_status(msg)
            elif resp_type != expect:
                raise ProtocolError(
                    f"expected {command_name(expect)} reply, got {command_name(resp_type)}"
                )
            else:
                if decode is not None:
                    result = decode(msg)
                msg.expect_end()
        except (ProtocolError, ConnectionError) as e:
            self._fail(e)
            if e.operation is None:
                raise type(e)(e.message, operation=operation, path=path, cause=e.cause) from e
            raise
        finally:
            self._pending.pop(request_id, None)

        logger.debug(f"<- {command_name(resp_type)} #{request_id}")
        if status is None:
            return result

        code, text = status
        if code == SFTP_OK and expect == CMD_STATUS:
            return None
        if code == SFTP_EOF and expect in (CMD_DATA, CMD_NAME):
            return None
        raise status_error(code, text, operation=operation, path=path)

    def _read_response(self, request_id: int, operation: str, path: Optional[str]):
        resp_type, msg = decode_packet(self._channel.receive())
        resp_id = msg.get_int()

        if resp_id not in self._pending:
            raise ProtocolError(
                f"response for unknown request id {resp_id}",
                operation=operation,
                path=path,
            )
        if resp_id != request_id:
            raise ProtocolError(
                f"response for request {resp_id} arrived while waiting for {request_id}",
                operation=operation,
                path=path,
            )
        return resp_type, msg

    # --------------------
    # Path operations
    # --------------------
    def stat(self, path: str) -> FileAttributes:
        """Return attributes of a remote path"""
        msg = Message()
        msg.add_string(path)
        return self.request(
            CMD_STAT,
            msg,
            operation="stat",
            path=path,
            expect=CMD_ATTRS,
            decode=FileAttributes.from_message,
        )

    def remove(self, path: str) -> None:
        """Delete a remote file"""
        msg = Message()
        msg.add_string(path)
        self.request(CMD_REMOVE, msg, operation="remove", path=path)

    def mkdir(self, path: str, mode: int = 0o755) -> None:
        """Create a remote directory"""
        msg = Message()
        msg.add_string(path)
        pack_empty_attrs(msg, permissions=mode)
        self.request(CMD_MKDIR, msg, operation="mkdir", path=path)

    def rmdir(self, path: str) -> None:
        """Remove an empty remote directory"""
        msg = Message()
        msg.add_string(path)
        self.request(CMD_RMDIR, msg, operation="rmdir", path=path)

    def rename(self, old_path: str, new_path: str) -> None:
        msg = Message()
        msg.add_string(old_path)
        msg.add_string(new_path)
        self.request(CMD_RENAME, msg, operation="rename", path=old_path)

    def normalize(self, path: str) -> str:
        """Resolve a remote path to its absolute form"""
        msg = Message()
        msg.add_string(path)
        name = self.request(
            CMD_REALPATH,
            msg,
            operation="realpath",
            path=path,
            expect=CMD_NAME,
            decode=_read_single_name,
        )
        if name is None:
            raise ProtocolError("realpath returned no name", operation="realpath", path=path)
        return name

    # --------------------
    # Context manager
    # --------------------
    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()


def _read_single_name(msg: ResponseMessage) -> str:
    """Decode a NAME reply that must carry exactly one entry"""
    count = msg.get_int()
    if count != 1:
        raise ProtocolError(f"expected one name, got {count}")
    name = msg.get_string().decode("utf-8", "replace")
    msg.get_string()  # long name
    FileAttributes.from_message(msg)
    return name
