"""
HTTP client for the FlowChat blob store (worker or local emulator).
Provides a typed interface over the shim's endpoints.
Uses singleton pattern for aiohttp.ClientSession to enable connection pooling.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from FlowChat.config import config
from FlowChat.core.message.protocol import CatalogEntry, catalog_from_value
from FlowChat.core.storage.interfaces import RemoteStore
from FlowChat.core.utils.constants import DEFAULT_CONTENT_TYPE
from FlowChat.core.utils.exceptions import NotFoundError, ParseError, TransportError

logger = logging.getLogger(__name__)


class SessionManager:
    """
    Singleton manager for aiohttp.ClientSession.

    Provides a shared session across all client instances, enabling
    connection pooling. A session is bound to the event loop that created
    it, so a new one is opened when the running loop changes.
    """

    _instance: Optional['SessionManager'] = None
    _session: Optional[aiohttp.ClientSession] = None
    _loop: Optional[asyncio.AbstractEventLoop] = None
    _lock: Optional[asyncio.Lock] = None

    def __new__(cls) -> 'SessionManager':
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    async def get_session(self) -> aiohttp.ClientSession:
        """Get or create the shared aiohttp session."""
        loop = asyncio.get_running_loop()
        if self._loop is not loop:
            self._session = None
            self._lock = asyncio.Lock()
            self._loop = loop
        if self._session is None or self._session.closed:
            async with self._lock:
                if self._session is None or self._session.closed:
                    connector = aiohttp.TCPConnector(
                        limit=0,
                        limit_per_host=0,
                        ttl_dns_cache=300,
                        enable_cleanup_closed=True
                    )
                    timeout = aiohttp.ClientTimeout(
                        total=config.HTTP_TIMEOUT,
                        connect=config.HTTP_CONNECT_TIMEOUT
                    )
                    self._session = aiohttp.ClientSession(
                        connector=connector,
                        timeout=timeout,
                        trust_env=False
                    )
        return self._session

    async def close(self) -> None:
        """Close the shared session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    @property
    def is_closed(self) -> bool:
        return self._session is None or self._session.closed


_session_manager = SessionManager()


def _preview(body: bytes, limit: int = 200) -> str:
    return body[:limit].decode("utf-8", errors="replace")


class BlobStoreClient(RemoteStore):
    """
    Client for the blob store HTTP shim.

    Every call maps failures onto the FlowChat error taxonomy:
    404 -> NotFoundError, other HTTP/network failures -> TransportError,
    undecodable JSON -> ParseError.
    """

    def __init__(self, base_url: str):
        """
        Initialize the client.

        Args:
            base_url (str): shim root, e.g. ``http://localhost:8787``
        """
        self.base_url = base_url.rstrip("/")

    async def _get_session(self) -> aiohttp.ClientSession:
        return await _session_manager.get_session()

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, str]] = None,
        data: Optional[bytes] = None,
        json_body: Any = None,
        headers: Optional[Dict[str, str]] = None
    ) -> bytes:
        """
        Perform a request and return the raw response body.

        Raises:
            NotFoundError: on HTTP 404
            TransportError: on any other non-2xx status or network failure
        """
        url = f"{self.base_url}{endpoint}"
        session = await self._get_session()
        kwargs: Dict[str, Any] = {"params": params, "headers": headers}
        if json_body is not None:
            kwargs["json"] = json_body
        elif data is not None:
            kwargs["data"] = data
        try:
            async with session.request(method, url, **kwargs) as response:
                status = response.status
                body = await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"{method} {endpoint} failed: {e!r}", details={"params": params}) from e

        if status == 404:
            raise NotFoundError(f"{method} {endpoint}: not found",
                                {"params": params, "body": _preview(body)})
        if status >= 400:
            raise TransportError(f"{method} {endpoint} returned {status}", status=status,
                                 details={"params": params, "body": _preview(body)})
        return body

    @staticmethod
    def _parse(body: bytes, what: str) -> Any:
        try:
            return json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise ParseError(f"{what}: response is not valid JSON") from e

    async def upload(self, key: str, data: bytes, content_type: Optional[str] = None) -> Optional[str]:
        body = await self._request(
            "PUT", "/upload",
            params={"key": key},
            data=data,
            headers={"Content-Type": content_type or DEFAULT_CONTENT_TYPE},
        )
        result = self._parse(body, "upload")
        return result.get("url") if isinstance(result, dict) else None

    async def get_bytes(self, key: str) -> bytes:
        return await self._request("GET", "/get", params={"key": key})

    async def get_json(self, key: str) -> Any:
        try:
            body = await self._request("GET", "/json", params={"key": key})
        except TransportError as e:
            # The shim answers 500 when the stored document is not JSON.
            if e.status == 500:
                raise ParseError(f"stored document at {key} is not valid JSON", {"key": key}) from e
            raise
        return self._parse(body, f"json {key}")

    async def put_json(self, key: str, value: Any) -> None:
        payload = json.dumps(value, ensure_ascii=False).encode("utf-8")
        await self._request(
            "PUT", "/json",
            params={"key": key},
            data=payload,
            headers={"Content-Type": "application/json"},
        )

    async def list_conversations(self) -> List[CatalogEntry]:
        body = await self._request("GET", "/list-conversations")
        return catalog_from_value(self._parse(body, "list-conversations"))

    async def delete_conversation(self, conv_id: str) -> None:
        await self._request("DELETE", "/delete-conversation", params={"id": conv_id})

    async def delete_file(self, key: str) -> None:
        await self._request("DELETE", "/delete-file", params={"key": key})

    async def export(self, conv_id: str) -> str:
        body = await self._request("GET", "/export", params={"conv": conv_id})
        return body.decode("utf-8", errors="replace")

    async def rename_conversation(self, old_id: str, new_id: str) -> None:
        await self._request("POST", "/rename-conversation",
                            json_body={"oldId": old_id, "newId": new_id})


async def close_session() -> None:
    """
    Close the shared aiohttp session.

    Should be called when the application shuts down
    to properly release resources.
    """
    await _session_manager.close()


__all__ = ["BlobStoreClient", "SessionManager", "close_session"]
