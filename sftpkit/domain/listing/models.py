"""
Listing domain models
"""
from dataclasses import dataclass
from typing import Dict, Any

from paramiko import Message

from ..session.attributes import FileAttributes


@dataclass(frozen=True)
class DirectoryEntry:
    """One directory entry as the server reported it"""
    name: str
    long_name: str
    attributes: FileAttributes

    @property
    def is_directory(self) -> bool:
        return self.attributes.is_directory

    @classmethod
    def from_message(cls, msg: Message) -> "DirectoryEntry":
        """Decode one NAME record (filename, longname, attrs)"""
        name = msg.get_string().decode("utf-8", "replace")
        long_name = msg.get_string().decode("utf-8", "replace")
        attributes = FileAttributes.from_message(msg)
        return cls(name=name, long_name=long_name, attributes=attributes)

    def __str__(self) -> str:
        return self.long_name or self.name

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "name": self.name,
            "long_name": self.long_name,
            "attributes": self.attributes.to_dict(),
        }
