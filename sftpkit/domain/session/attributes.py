"""
SFTP file attributes
"""
import stat
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from paramiko import Message, SFTPAttributes


@dataclass(frozen=True)
class FileAttributes:
    """Snapshot of a remote file's ATTRS block"""
    size: int = 0
    permissions: int = 0
    modified_time: Optional[datetime] = None
    uid: Optional[int] = None
    gid: Optional[int] = None

    @property
    def is_directory(self) -> bool:
        return stat.S_ISDIR(self.permissions)

    @property
    def is_file(self) -> bool:
        return stat.S_ISREG(self.permissions)

    @classmethod
    def from_message(cls, msg: Message) -> "FileAttributes":
        """Decode an ATTRS block at the message's current position"""
        flags = msg.get_int()
        size = 0
        permissions = 0
        modified_time = None
        uid = gid = None

        if flags & SFTPAttributes.FLAG_SIZE:
            size = msg.get_int64()
        if flags & SFTPAttributes.FLAG_UIDGID:
            uid = msg.get_int()
            gid = msg.get_int()
        if flags & SFTPAttributes.FLAG_PERMISSIONS:
            permissions = msg.get_int()
        if flags & SFTPAttributes.FLAG_AMTIME:
            msg.get_int()  # atime
            modified_time = datetime.fromtimestamp(msg.get_int(), tz=timezone.utc)
        if flags & SFTPAttributes.FLAG_EXTENDED:
            for _ in range(msg.get_int()):
                msg.get_string()
                msg.get_string()

        return cls(
            size=size,
            permissions=permissions,
            modified_time=modified_time,
            uid=uid,
            gid=gid,
        )

    def pack(self, msg: Message) -> None:
        """Encode as an ATTRS block"""
        flags = SFTPAttributes.FLAG_SIZE
        if self.uid is not None and self.gid is not None:
            flags |= SFTPAttributes.FLAG_UIDGID
        if self.permissions:
            flags |= SFTPAttributes.FLAG_PERMISSIONS
        if self.modified_time is not None:
            flags |= SFTPAttributes.FLAG_AMTIME

        msg.add_int(flags)
        msg.add_int64(self.size)
        if flags & SFTPAttributes.FLAG_UIDGID:
            msg.add_int(self.uid)
            msg.add_int(self.gid)
        if flags & SFTPAttributes.FLAG_PERMISSIONS:
            msg.add_int(self.permissions)
        if flags & SFTPAttributes.FLAG_AMTIME:
            mtime = int(self.modified_time.timestamp())
            msg.add_int(mtime)
            msg.add_int(mtime)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "size": self.size,
            "permissions": self.permissions,
            "modified_time": self.modified_time.isoformat() if self.modified_time else None,
            "uid": self.uid,
            "gid": self.gid,
            "is_directory": self.is_directory,
        }


def pack_empty_attrs(msg: Message, permissions: Optional[int] = None) -> None:
    """Encode an ATTRS block carrying at most permissions"""
    if permissions is None:
        msg.add_int(0)
    else:
        msg.add_int(SFTPAttributes.FLAG_PERMISSIONS)
        msg.add_int(permissions)
