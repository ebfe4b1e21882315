"""
Test configuration and fixtures for FlowChat tests.

Provides:
- An in-memory remote blob store standing in for the HTTP shim
- Session state and sync fixtures backed by a temporary state directory
- A live emulator served by uvicorn inside the test's event loop
"""

import asyncio
import copy
import socket
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple
from urllib.parse import quote

import pytest
import pytest_asyncio
import uvicorn

from FlowChat.api.client import close_session
from FlowChat.core.client import ConversationSync, PersistenceService, SessionState
from FlowChat.core.logging import configure_logging, create_testing_config
from FlowChat.core.message.protocol import (
    CatalogEntry,
    catalog_from_value,
    index_from_value,
    render_transcript,
)
from FlowChat.core.storage.interfaces import RemoteStore
from FlowChat.core.utils.constants import CATALOG_KEY
from FlowChat.core.utils.exceptions import NotFoundError, ParseError, TransportError
from FlowChat.core.utils.helpers import conversation_prefix, index_key


class InMemoryRemote(RemoteStore):
    """
    RemoteStore keeping documents and blobs in dicts.

    ``fail`` holds operation names that raise TransportError, ``corrupt``
    holds keys whose JSON reads raise ParseError, and ``after_read`` is
    awaited after a JSON document has been snapshotted (used to force
    interleavings).
    """

    def __init__(self):
        self.docs: Dict[str, Any] = {}
        self.blobs: Dict[str, Tuple[bytes, str]] = {}
        self.fail: Set[str] = set()
        self.corrupt: Set[str] = set()
        self.calls: List[Tuple[str, str]] = []
        self.after_read: Optional[Callable[[str], Awaitable[None]]] = None

    def _check(self, op: str, key: str = "") -> None:
        self.calls.append((op, key))
        if op in self.fail:
            raise TransportError(f"{op} failed", status=503)

    async def upload(self, key, data, content_type=None):
        self._check("upload", key)
        self.blobs[key] = (bytes(data), content_type or "application/octet-stream")
        return f"http://remote.test/get?key={quote(key, safe='')}"

    async def get_bytes(self, key):
        self._check("get_bytes", key)
        if key not in self.blobs:
            raise NotFoundError("not found", {"key": key})
        return self.blobs[key][0]

    async def get_json(self, key):
        self._check("get_json", key)
        if key in self.corrupt:
            raise ParseError("corrupt", {"key": key})
        if key not in self.docs:
            raise NotFoundError("not found", {"key": key})
        value = copy.deepcopy(self.docs[key])
        if self.after_read is not None:
            await self.after_read(key)
        return value

    async def put_json(self, key, value):
        self._check("put_json", key)
        self.docs[key] = copy.deepcopy(value)
        self.corrupt.discard(key)

    async def list_conversations(self) -> List[CatalogEntry]:
        self._check("list_conversations")
        return catalog_from_value(self.docs.get(CATALOG_KEY, []))

    def keys(self, prefix: str = "") -> List[str]:
        return sorted(k for k in list(self.docs) + list(self.blobs) if k.startswith(prefix))

    async def delete_conversation(self, conv_id):
        self._check("delete_conversation", conv_id)
        keys = self.keys(conversation_prefix(conv_id))
        if not keys:
            raise NotFoundError("not found", {"id": conv_id})
        for k in keys:
            self.docs.pop(k, None)
            self.blobs.pop(k, None)

    async def delete_file(self, key):
        self._check("delete_file", key)
        if key not in self.blobs:
            raise NotFoundError("not found", {"key": key})
        del self.blobs[key]

    async def export(self, conv_id):
        self._check("export", conv_id)
        value = self.docs.get(index_key(conv_id))
        if value is None:
            raise NotFoundError("not found", {"id": conv_id})
        index = index_from_value(value)
        return render_transcript(index.title or conv_id, index.messages, sender=index.sender or "")

    async def rename_conversation(self, old_id, new_id):
        self._check("rename_conversation", old_id)
        old_prefix, new_prefix = conversation_prefix(old_id), conversation_prefix(new_id)
        if not self.keys(old_prefix):
            raise NotFoundError("old not found", {"id": old_id})
        if self.keys(new_prefix):
            raise TransportError("new already exists", status=409)
        for store in (self.docs, self.blobs):
            for k in [k for k in store if k.startswith(old_prefix)]:
                store[new_prefix + k[len(old_prefix):]] = store.pop(k)


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture(scope="session", autouse=True)
def testing_logging():
    """Console-only logging for the whole run."""
    configure_logging(create_testing_config())


@pytest.fixture
def state_dir(tmp_path) -> str:
    return str(tmp_path / "state")


@pytest.fixture
def remote() -> InMemoryRemote:
    return InMemoryRemote()


@pytest_asyncio.fixture
async def session(state_dir) -> SessionState:
    return await SessionState(PersistenceService(state_dir)).load()


@pytest_asyncio.fixture
async def sync(session, remote):
    s = ConversationSync(session, remote)
    yield s
    await s.drain()


@pytest_asyncio.fixture
async def local_sync(session):
    s = ConversationSync(session)
    yield s
    await s.drain()


@pytest_asyncio.fixture
async def emulator(tmp_path):
    """Serve the emulator on a free port; yields its base URL."""
    from FlowChat.api.routes_api import app, configure_store

    configure_store(str(tmp_path / "storage"))
    port = _free_port()
    server = uvicorn.Server(uvicorn.Config(
        app, host="127.0.0.1", port=port, log_config=None, lifespan="off",
    ))
    server_task = asyncio.create_task(server.serve())

    for _ in range(100):
        if server.started:
            break
        await asyncio.sleep(0.05)

    yield f"http://127.0.0.1:{port}"

    await close_session()
    server.should_exit = True
    await server_task


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )
