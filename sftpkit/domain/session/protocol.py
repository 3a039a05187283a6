"""
SFTP v3 packet codec

A packet body is one type byte followed by the payload; requests carry a
32-bit request id as the first payload field. Field encoding uses
paramiko's Message.
"""
from typing import Optional, Tuple

from paramiko import Message
from paramiko.sftp import (
    CMD_INIT,
    CMD_VERSION,
    CMD_NAMES,
    SFTP_DESC,
    SFTP_NO_SUCH_FILE,
    SFTP_PERMISSION_DENIED,
    SFTP_BAD_MESSAGE,
    SFTP_NO_CONNECTION,
    SFTP_CONNECTION_LOST,
)

from ...core.constants import SFTP_PROTOCOL_VERSION
from ...core.exceptions import (
    SftpError,
    NotFoundError,
    PermissionError,
    ProtocolError,
    ConnectionError,
    RemoteIOError,
)


def command_name(cmd: int) -> str:
    return CMD_NAMES.get(cmd, f"cmd-{cmd}")


def encode_packet(cmd: int, payload: Optional[Message] = None) -> bytes:
    """Build a packet body from a type byte and payload"""
    body = payload.asbytes() if payload is not None else b""
    return bytes([cmd]) + body


def encode_request(cmd: int, request_id: int, payload: Optional[Message] = None) -> bytes:
    """Build a request packet body"""
    msg = Message()
    msg.add_int(request_id)
    if payload is not None:
        msg.add_bytes(payload.asbytes())
    return encode_packet(cmd, msg)


class ResponseMessage(Message):
    """
    Message over a received packet that refuses to read past its end.

    paramiko's Message pads short reads with zero bytes; a response that
    is shorter than its fields claim is malformed and must not decode.
    """

    def get_bytes(self, n):
        b = self.packet.read(n)
        if len(b) < n:
            raise ProtocolError(f"truncated packet: field needs {n} bytes, {len(b)} left")
        return b

    @property
    def remaining(self) -> int:
        return len(self.packet.getvalue()) - self.packet.tell()

    def expect_end(self) -> None:
        """Raise ProtocolError if undecoded bytes are left"""
        if self.remaining:
            raise ProtocolError(f"{self.remaining} unexpected trailing bytes in packet")


def decode_packet(packet: bytes) -> Tuple[int, ResponseMessage]:
    """Split a packet body into (type, payload message)"""
    if not packet:
        raise ProtocolError("empty packet")
    return packet[0], ResponseMessage(packet[1:])


def encode_init(version: int = SFTP_PROTOCOL_VERSION) -> bytes:
    msg = Message()
    msg.add_int(version)
    return encode_packet(CMD_INIT, msg)


def decode_version(packet: bytes) -> int:
    """Read the server version from a VERSION packet"""
    cmd, msg = decode_packet(packet)
    if cmd != CMD_VERSION:
        raise ProtocolError(f"expected version packet, got {command_name(cmd)}", operation="init")
    return msg.get_int()


def read_status(msg: ResponseMessage) -> Tuple[int, str]:
    """
    Read (code, message) from a STATUS payload positioned after the id.

    Some v3 servers omit the message and language tag, so both are
    optional; anything after them is malformed.
    """
    code = msg.get_int()
    text = ""
    if msg.remaining:
        text = msg.get_string().decode("utf-8", "replace")
    if msg.remaining:
        msg.get_string()  # language tag
    msg.expect_end()
    return code, text


def read_handle(msg: ResponseMessage) -> bytes:
    """Read the handle string of a HANDLE reply"""
    return msg.get_binary()


def read_data(msg: ResponseMessage) -> bytes:
    """Read the data string of a DATA reply"""
    return msg.get_binary()


def status_error(
    code: int,
    text: str,
    operation: Optional[str] = None,
    path: Optional[str] = None,
) -> SftpError:
    """Translate an SFTP status code into the matching exception"""
    description = text or (SFTP_DESC[code] if 0 <= code < len(SFTP_DESC) else f"status {code}")

    if code == SFTP_NO_SUCH_FILE:
        error_cls = NotFoundError
    elif code == SFTP_PERMISSION_DENIED:
        error_cls = PermissionError
    elif code == SFTP_BAD_MESSAGE:
        error_cls = ProtocolError
    elif code in (SFTP_NO_CONNECTION, SFTP_CONNECTION_LOST):
        error_cls = ConnectionError
    else:
        error_cls = RemoteIOError

    return error_cls(description, operation=operation, path=path)
