"""
In-memory SFTP v3 server and transport used by the tests.

The server decodes real request packets and answers with real response
packets, so the client code paths run unchanged.
"""
from __future__ import annotations

import posixpath
import stat
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set

from paramiko import Message
from paramiko.sftp import (
    CMD_INIT,
    CMD_VERSION,
    CMD_OPEN,
    CMD_CLOSE,
    CMD_READ,
    CMD_WRITE,
    CMD_FSTAT,
    CMD_STAT,
    CMD_OPENDIR,
    CMD_READDIR,
    CMD_REMOVE,
    CMD_MKDIR,
    CMD_RMDIR,
    CMD_RENAME,
    CMD_REALPATH,
    CMD_STATUS,
    CMD_HANDLE,
    CMD_DATA,
    CMD_NAME,
    CMD_ATTRS,
    SFTP_OK,
    SFTP_EOF,
    SFTP_NO_SUCH_FILE,
    SFTP_PERMISSION_DENIED,
    SFTP_FAILURE,
    SFTP_OP_UNSUPPORTED,
    SFTP_FLAG_READ,
    SFTP_FLAG_WRITE,
    SFTP_FLAG_CREATE,
    SFTP_FLAG_TRUNC,
    SFTP_FLAG_APPEND,
)

from sftpkit.core.exceptions import AuthenticationError, ConnectionError
from sftpkit.core.interfaces import Channel, TransportProvider
from sftpkit.domain.session.attributes import FileAttributes


def _norm(path) -> str:
    if isinstance(path, bytes):
        path = path.decode("utf-8")
    return posixpath.normpath(path)


def _parent(path: str) -> str:
    return posixpath.dirname(path) or "."


@dataclass
class OpenFile:
    path: str
    flags: int


@dataclass
class OpenDir:
    path: str
    pending: deque = field(default_factory=deque)


class FakeSftpServer:
    """
    Minimal SFTP v3 server over an in-memory tree.

    Fault knobs:
        fail_reads_after: answer READ with FAILURE once this many reads succeeded
        fail_writes_after: same for WRITE
        drop_after_requests: close the channel after this many requests
        wrong_id_on: command type answered with an unknown request id
        raw_replies: command type mapped to a function building the raw reply
            packet from the request id
        denied: paths that get PERMISSION_DENIED on open
    """

    def __init__(self, files: Optional[Dict[str, bytes]] = None, version: int = 3, batch_size: int = 2):
        self.version = version
        self.batch_size = batch_size
        self.files: Dict[str, bytearray] = {}
        self.dirs: Set[str] = {"."}
        for path, data in (files or {}).items():
            self.add_file(path, data)

        self.handles: Dict[bytes, object] = {}
        self.requests: List[int] = []
        self.closed_handles = 0
        self._next_handle = 0

        self.fail_reads_after: Optional[int] = None
        self.fail_writes_after: Optional[int] = None
        self.drop_after_requests: Optional[int] = None
        self.wrong_id_on: Optional[int] = None
        self.raw_replies: Dict[int, Callable[[int], bytes]] = {}
        self.max_read: Optional[int] = None
        self.denied: Set[str] = set()
        self.reads_served = 0
        self.writes_served = 0

    # --------------------
    # Tree helpers
    # --------------------
    def add_file(self, path: str, data: bytes) -> None:
        path = _norm(path)
        self.dirs.add(_parent(path))
        self.files[path] = bytearray(data)

    def read_file(self, path: str) -> bytes:
        return bytes(self.files[_norm(path)])

    def count(self, cmd: int) -> int:
        return self.requests.count(cmd)

    def _new_handle(self, obj) -> bytes:
        self._next_handle += 1
        handle = f"h{self._next_handle}".encode()
        self.handles[handle] = obj
        return handle

    # --------------------
    # Packets
    # --------------------
    def handle_packet(self, packet: bytes) -> Optional[bytes]:
        """Answer one request packet; None means the connection dropped"""
        cmd = packet[0]
        msg = Message(packet[1:])

        if cmd == CMD_INIT:
            reply = Message()
            reply.add_int(self.version)
            return bytes([CMD_VERSION]) + reply.asbytes()

        request_id = msg.get_int()
        self.requests.append(cmd)
        if self.drop_after_requests is not None and len(self.requests) > self.drop_after_requests:
            return None

        if self.wrong_id_on == cmd:
            request_id += 1000
        if cmd in self.raw_replies:
            return self.raw_replies[cmd](request_id)

        handler = {
            CMD_OPEN: self._open,
            CMD_CLOSE: self._close,
            CMD_READ: self._read,
            CMD_WRITE: self._write,
            CMD_FSTAT: self._fstat,
            CMD_STAT: self._stat,
            CMD_OPENDIR: self._opendir,
            CMD_READDIR: self._readdir,
            CMD_REMOVE: self._remove,
            CMD_MKDIR: self._mkdir,
            CMD_RMDIR: self._rmdir,
            CMD_RENAME: self._rename,
            CMD_REALPATH: self._realpath,
        }.get(cmd)

        if handler is None:
            reply_type, reply = self._status(SFTP_OP_UNSUPPORTED)
        else:
            reply_type, reply = handler(msg)

        out = Message()
        out.add_int(request_id)
        out.add_bytes(reply.asbytes())
        return bytes([reply_type]) + out.asbytes()

    def _status(self, code: int, text: str = ""):
        msg = Message()
        msg.add_int(code)
        msg.add_string(text)
        msg.add_string("")
        return CMD_STATUS, msg

    def _handle_reply(self, handle: bytes):
        msg = Message()
        msg.add_string(handle)
        return CMD_HANDLE, msg

    def _attrs(self, path: str):
        msg = Message()
        if path in self.files:
            FileAttributes(size=len(self.files[path]), permissions=stat.S_IFREG | 0o644).pack(msg)
        else:
            FileAttributes(size=4096, permissions=stat.S_IFDIR | 0o755).pack(msg)
        return CMD_ATTRS, msg

    # --------------------
    # Requests
    # --------------------
    def _open(self, msg: Message):
        path = _norm(msg.get_string())
        flags = msg.get_int()
        if path in self.denied:
            return self._status(SFTP_PERMISSION_DENIED, "Permission denied")
        if path not in self.files:
            if not flags & SFTP_FLAG_CREATE or _parent(path) not in self.dirs:
                return self._status(SFTP_NO_SUCH_FILE, "No such file")
            self.files[path] = bytearray()
        if flags & SFTP_FLAG_TRUNC:
            self.files[path] = bytearray()
        return self._handle_reply(self._new_handle(OpenFile(path, flags)))

    def _close(self, msg: Message):
        handle = msg.get_binary()
        if self.handles.pop(handle, None) is None:
            return self._status(SFTP_FAILURE, "Invalid handle")
        self.closed_handles += 1
        return self._status(SFTP_OK)

    def _file(self, msg: Message) -> Optional[OpenFile]:
        obj = self.handles.get(msg.get_binary())
        return obj if isinstance(obj, OpenFile) else None

    def _read(self, msg: Message):
        f = self._file(msg)
        offset = msg.get_int64()
        length = msg.get_int()
        if f is None or not f.flags & SFTP_FLAG_READ:
            return self._status(SFTP_FAILURE, "Invalid handle")
        if self.fail_reads_after is not None and self.reads_served >= self.fail_reads_after:
            return self._status(SFTP_FAILURE, "Read error")

        data = self.files[f.path]
        if offset >= len(data):
            return self._status(SFTP_EOF, "End of file")
        if self.max_read is not None:
            length = min(length, self.max_read)
        self.reads_served += 1
        reply = Message()
        reply.add_string(bytes(data[offset:offset + length]))
        return CMD_DATA, reply

    def _write(self, msg: Message):
        f = self._file(msg)
        offset = msg.get_int64()
        chunk = msg.get_binary()
        if f is None or not f.flags & SFTP_FLAG_WRITE:
            return self._status(SFTP_FAILURE, "Invalid handle")
        if self.fail_writes_after is not None and self.writes_served >= self.fail_writes_after:
            return self._status(SFTP_FAILURE, "Write error")

        data = self.files[f.path]
        if f.flags & SFTP_FLAG_APPEND:
            offset = len(data)
        if len(data) < offset:
            data.extend(b"\x00" * (offset - len(data)))
        data[offset:offset + len(chunk)] = chunk
        self.writes_served += 1
        return self._status(SFTP_OK)

    def _fstat(self, msg: Message):
        f = self._file(msg)
        if f is None:
            return self._status(SFTP_FAILURE, "Invalid handle")
        return self._attrs(f.path)

    def _stat(self, msg: Message):
        path = _norm(msg.get_string())
        if path not in self.files and path not in self.dirs:
            return self._status(SFTP_NO_SUCH_FILE, "No such file")
        return self._attrs(path)

    def _opendir(self, msg: Message):
        path = _norm(msg.get_string())
        if path in self.denied:
            return self._status(SFTP_PERMISSION_DENIED, "Permission denied")
        if path not in self.dirs:
            return self._status(SFTP_NO_SUCH_FILE, "No such directory")

        names = [".", ".."]
        names += sorted(
            posixpath.basename(p)
            for p in list(self.files) + list(self.dirs)
            if p != path and p != "." and _parent(p) == path
        )
        pending = deque(
            (name, posixpath.normpath(posixpath.join(path, name))) for name in names
        )
        return self._handle_reply(self._new_handle(OpenDir(path, pending)))

    def _readdir(self, msg: Message):
        obj = self.handles.get(msg.get_binary())
        if not isinstance(obj, OpenDir):
            return self._status(SFTP_FAILURE, "Invalid handle")
        if not obj.pending:
            return self._status(SFTP_EOF, "End of directory")

        batch = [obj.pending.popleft() for _ in range(min(self.batch_size, len(obj.pending)))]
        reply = Message()
        reply.add_int(len(batch))
        for name, full in batch:
            is_dir = full not in self.files
            reply.add_string(name)
            reply.add_string(f"{'d' if is_dir else '-'}rw-r--r--  1 alice alice  0 Jan  1 00:00 {name}")
            if is_dir:
                FileAttributes(size=4096, permissions=stat.S_IFDIR | 0o755).pack(reply)
            else:
                FileAttributes(size=len(self.files[full]), permissions=stat.S_IFREG | 0o644).pack(reply)
        return CMD_NAME, reply

    def _remove(self, msg: Message):
        path = _norm(msg.get_string())
        if self.files.pop(path, None) is None:
            return self._status(SFTP_NO_SUCH_FILE, "No such file")
        return self._status(SFTP_OK)

    def _mkdir(self, msg: Message):
        path = _norm(msg.get_string())
        if _parent(path) not in self.dirs:
            return self._status(SFTP_NO_SUCH_FILE, "No such directory")
        if path in self.dirs or path in self.files:
            return self._status(SFTP_FAILURE, "File exists")
        self.dirs.add(path)
        return self._status(SFTP_OK)

    def _rmdir(self, msg: Message):
        path = _norm(msg.get_string())
        if path not in self.dirs:
            return self._status(SFTP_NO_SUCH_FILE, "No such directory")
        self.dirs.discard(path)
        return self._status(SFTP_OK)

    def _rename(self, msg: Message):
        old = _norm(msg.get_string())
        new = _norm(msg.get_string())
        if old not in self.files:
            return self._status(SFTP_NO_SUCH_FILE, "No such file")
        self.files[new] = self.files.pop(old)
        return self._status(SFTP_OK)

    def _realpath(self, msg: Message):
        path = _norm(msg.get_string())
        full = "/home/alice" if path == "." else posixpath.join("/home/alice", path)
        reply = Message()
        reply.add_int(1)
        reply.add_string(full)
        reply.add_string(full)
        reply.add_int(0)
        return CMD_NAME, reply


class FakeChannel(Channel):
    """Channel delivering packets to and from a FakeSftpServer"""

    def __init__(self, server: FakeSftpServer):
        self.server = server
        self.inbox: deque = deque()
        self.sent: List[bytes] = []
        self.closed = False

    def send(self, packet: bytes) -> None:
        if self.closed:
            raise ConnectionError("channel is closed", operation="send")
        self.sent.append(packet)
        reply = self.server.handle_packet(packet)
        if reply is None:
            self.closed = True
        else:
            self.inbox.append(reply)

    def receive(self) -> bytes:
        if not self.inbox:
            raise ConnectionError("channel closed by server", operation="receive")
        return self.inbox.popleft()

    def close(self) -> None:
        self.closed = True


class FakeTransportProvider(TransportProvider):
    """
    Transport provider handing out FakeChannels.

    Records every open_channel call; rejects credentials other than
    ``accept_password`` when set, and refuses everything when ``reject``.
    """

    def __init__(self, server: Optional[FakeSftpServer] = None, accept_password: Optional[str] = None):
        self.server = server or FakeSftpServer()
        self.accept_password = accept_password
        self.reject = False
        self.calls: List[tuple] = []
        self.channels: List[FakeChannel] = []

    def open_channel(self, host, port, auth, timeout) -> Channel:
        self.calls.append((host, port, auth, timeout))
        if self.reject:
            raise AuthenticationError(f"authentication failed (tried: {auth.describe()})", operation="connect")
        if self.accept_password is not None and auth.password != self.accept_password:
            raise AuthenticationError("authentication failed (tried: password)", operation="connect")
        channel = FakeChannel(self.server)
        self.channels.append(channel)
        return channel
