"""
Transfer domain module
"""
from .models import (
    TransferConfig,
    TransferResult,
    TransferOutcome,
    TransferDirection,
    ErrorKind,
)
from .engine import TransferEngine, download, upload

__all__ = [
    "TransferConfig",
    "TransferResult",
    "TransferOutcome",
    "TransferDirection",
    "ErrorKind",
    "TransferEngine",
    "download",
    "upload",
]
