"""
Filesystem-backed blob store.

Each key maps to a file under the storage directory; the content type lives
in a ``{key}.meta.json`` sidecar holding ``{"contentType": ...}``. Uses async
file I/O so the emulator's event loop is never blocked on disk.
"""
import asyncio
import json
import logging
import os
from typing import List, Optional

import aiofiles
import aiofiles.os

from FlowChat.core.storage.interfaces import BlobStore, StoredBlob
from FlowChat.core.utils.constants import DEFAULT_CONTENT_TYPE, META_SUFFIX
from FlowChat.core.utils.exceptions import ValidationError

logger = logging.getLogger(__name__)


class FileBlobStore(BlobStore):
    """Blob store rooted at a local directory."""

    def __init__(self, root: str):
        self._root = os.path.abspath(root)

    @property
    def root(self) -> str:
        return self._root

    def path_for(self, key: str) -> str:
        """
        Resolve ``key`` to a path inside the storage directory.

        Raises:
            ValidationError: for empty keys or keys escaping the directory
        """
        if not key or key.startswith("/"):
            raise ValidationError("invalid key", {"key": key})
        path = os.path.normpath(os.path.join(self._root, key))
        if os.path.commonpath([self._root, path]) != self._root or path == self._root:
            raise ValidationError("key escapes storage directory", {"key": key})
        return path

    async def put(self, key: str, data: bytes, content_type: Optional[str] = None) -> None:
        path = self.path_for(key)
        await aiofiles.os.makedirs(os.path.dirname(path), exist_ok=True)
        async with aiofiles.open(path, "wb") as f:
            await f.write(data)
        meta = {"contentType": content_type or DEFAULT_CONTENT_TYPE}
        async with aiofiles.open(path + META_SUFFIX, "w", encoding="utf-8") as f:
            await f.write(json.dumps(meta))

    async def get(self, key: str) -> Optional[StoredBlob]:
        path = self.path_for(key)
        if not await aiofiles.os.path.isfile(path):
            return None
        async with aiofiles.open(path, "rb") as f:
            data = await f.read()
        return StoredBlob(data=data, content_type=await self._read_content_type(path))

    async def _read_content_type(self, path: str) -> str:
        meta_path = path + META_SUFFIX
        if not await aiofiles.os.path.isfile(meta_path):
            return DEFAULT_CONTENT_TYPE
        try:
            async with aiofiles.open(meta_path, "r", encoding="utf-8") as f:
                meta = json.loads(await f.read())
            return meta.get("contentType") or DEFAULT_CONTENT_TYPE
        except (OSError, ValueError, AttributeError) as e:
            logger.warning("Unreadable metadata sidecar %s: %s", meta_path, e)
            return DEFAULT_CONTENT_TYPE

    async def delete(self, key: str) -> bool:
        """Delete the object and its sidecar; True when the object existed."""
        path = self.path_for(key)
        if not await aiofiles.os.path.isfile(path):
            return False
        await aiofiles.os.remove(path)
        if await aiofiles.os.path.isfile(path + META_SUFFIX):
            await aiofiles.os.remove(path + META_SUFFIX)
        await self._prune_empty_dirs(os.path.dirname(path))
        return True

    async def _prune_empty_dirs(self, directory: str) -> None:
        while directory != self._root and directory.startswith(self._root):
            try:
                if await aiofiles.os.listdir(directory):
                    return
                await aiofiles.os.rmdir(directory)
            except OSError:
                return
            directory = os.path.dirname(directory)

    async def list(self, prefix: str = "") -> List[str]:
        return await asyncio.to_thread(self._list_sync, prefix)

    def _list_sync(self, prefix: str) -> List[str]:
        keys = []
        if not os.path.isdir(self._root):
            return keys
        for dirpath, _dirnames, filenames in os.walk(self._root):
            for name in filenames:
                if name.endswith(META_SUFFIX):
                    continue
                rel = os.path.relpath(os.path.join(dirpath, name), self._root)
                key = rel.replace(os.sep, "/")
                if key.startswith(prefix):
                    keys.append(key)
        return sorted(keys)
