"""
Abstract interfaces for the storage layer.

BlobStore is the primitive key-value store the emulator serves from.
RemoteStore is the HTTP surface the client sync layer talks to; the aiohttp
client implements it, and tests substitute an in-memory version.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional

from FlowChat.core.message.protocol import (
    CatalogEntry,
    ConversationIndex,
    index_from_value,
)
from FlowChat.core.utils.constants import CATALOG_KEY
from FlowChat.core.utils.exceptions import NotFoundError, ParseError


@dataclass
class StoredBlob:
    """Bytes and content type of a stored object."""
    data: bytes
    content_type: str


class BlobStore(ABC):
    """
    Key-value store of opaque byte payloads.

    No transactions and no atomicity across keys: every call touches one
    object, except list() which only reads.
    """

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: Optional[str] = None) -> None:
        """Store ``data`` under ``key``, replacing any previous value."""
        ...

    @abstractmethod
    async def get(self, key: str) -> Optional[StoredBlob]:
        """Return the stored object, or None when the key is absent."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete ``key``; returns False when nothing was stored there."""
        ...

    @abstractmethod
    async def list(self, prefix: str = "") -> List[str]:
        """Sorted keys starting with ``prefix``."""
        ...

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None


class RemoteStore(ABC):
    """
    Client-side view of the blob store HTTP shim.

    Implementations raise NotFoundError for absent keys, TransportError for
    network/HTTP failures and ParseError for malformed documents.
    """

    @abstractmethod
    async def upload(self, key: str, data: bytes, content_type: Optional[str] = None) -> Optional[str]:
        """Store raw bytes; returns the public retrieval URL when the server gives one."""
        ...

    @abstractmethod
    async def get_bytes(self, key: str) -> bytes:
        ...

    @abstractmethod
    async def get_json(self, key: str) -> Any:
        ...

    @abstractmethod
    async def put_json(self, key: str, value: Any) -> None:
        ...

    @abstractmethod
    async def list_conversations(self) -> List[CatalogEntry]:
        ...

    @abstractmethod
    async def delete_conversation(self, conv_id: str) -> None:
        ...

    @abstractmethod
    async def delete_file(self, key: str) -> None:
        ...

    @abstractmethod
    async def export(self, conv_id: str) -> str:
        ...

    @abstractmethod
    async def rename_conversation(self, old_id: str, new_id: str) -> None:
        ...

    async def get_index(self, key: str) -> ConversationIndex:
        """Fetch and decode a conversation index (NotFoundError / ParseError)."""
        value = await self.get_json(key)
        if value is None:
            raise NotFoundError(f"no document at {key}", {"key": key})
        return index_from_value(value)

    async def put_index(self, key: str, index: ConversationIndex) -> None:
        await self.put_json(key, index.to_dict())

    async def get_catalog(self) -> List[Any]:
        """
        Read the catalog document itself, rows untouched, so a read-modify-write
        keeps rows this client cannot interpret (see catalog_from_value()).

        Raises:
            NotFoundError: no catalog stored
            ParseError: the stored catalog is not a list
        """
        value = await self.get_json(CATALOG_KEY)
        if value is None:
            raise NotFoundError("no catalog", {"key": CATALOG_KEY})
        if not isinstance(value, list):
            raise ParseError("catalog is not a list", {"key": CATALOG_KEY})
        return value

    async def put_catalog(self, entries: List[Any]) -> None:
        rows = [e.to_dict() if isinstance(e, CatalogEntry) else e for e in entries]
        await self.put_json(CATALOG_KEY, rows)
