"""
Remote file domain module
"""
from .models import OpenMode, HandleState, parse_mode
from .handle import RemoteFileHandle, open_file

__all__ = [
    "OpenMode",
    "HandleState",
    "parse_mode",
    "RemoteFileHandle",
    "open_file",
]
