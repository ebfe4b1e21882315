"""
Storage layer: blob store interfaces and the filesystem implementation.
"""

from .interfaces import BlobStore, RemoteStore, StoredBlob
from .file_store import FileBlobStore

__all__ = ['BlobStore', 'RemoteStore', 'StoredBlob', 'FileBlobStore']
