"""
Listing domain module
"""
from .models import DirectoryEntry
from .lister import DirectoryLister, DirectoryListing, list_directory

__all__ = [
    "DirectoryEntry",
    "DirectoryLister",
    "DirectoryListing",
    "list_directory",
]
