"""
Conversation store synchronization.

Keeps the local mirror and the remote blob store approximately consistent:

- every mutation lands in the mirror (and is saved) no matter what the
  remote does;
- remote documents are rewritten whole (read, modify, write back) with no
  concurrency token, so two clients appending at once can lose a message;
- a remote failure is logged and the operation degrades to its local effect.
  Nothing is retried or queued; the next catalog load overwrites the mirror
  with whatever the remote holds.

Only uploads, remote export, conversation deletion and renames raise
TransportError to the caller.
"""
import asyncio
import logging
import re
import time
from typing import Any, Dict, Iterable, List, Optional, Set, Union
from urllib.parse import quote, unquote

from FlowChat.core.client.models import Conversation, FileItem
from FlowChat.core.client.persistence import SessionState
from FlowChat.core.logging.utils import LogTimer
from FlowChat.core.message.protocol import (
    CatalogEntry,
    ConversationIndex,
    Message,
    render_transcript,
)
from FlowChat.core.storage.interfaces import RemoteStore
from FlowChat.core.utils.constants import (
    DEFAULT_CONTENT_TYPE,
    FILE,
    META_SUFFIX,
    TEXT,
    TITLE_PATTERN,
)
from FlowChat.core.utils.exceptions import (
    FlowChatError,
    InvalidTitleError,
    NotFoundError,
    ParseError,
    TransportError,
    ValidationError,
)
from FlowChat.core.utils.helpers import (
    asset_key,
    fmt_time_for_index,
    fmt_timestamp_for_filename,
    index_key,
    mk_sender,
    uid,
)

logger = logging.getLogger(__name__)

MessagePayload = Union[str, Message, Dict[str, Any]]
PasteItem = Union[str, FileItem]

_CONV_ID_RE = re.compile(r"^[A-Za-z0-9]+$")
_WHITESPACE_RE = re.compile(r"\s+")
# encodeURIComponent leaves these unescaped besides alphanumerics and "-_.~"
_URI_COMPONENT_SAFE = "!*'()"


def _row_id(row: Any) -> Optional[str]:
    row_id = row.get("id") if isinstance(row, dict) else None
    return None if row_id is None else str(row_id)


class ConversationSync:
    """
    Orchestrates the local mirror and the remote conversation documents.

    With ``remote=None`` every operation is local-only and the mirror is the
    only source of truth.
    """

    def __init__(self, session: SessionState, remote: Optional[RemoteStore] = None):
        self.session = session
        self.remote = remote
        self._pending: Set[asyncio.Task] = set()

    @property
    def mirror(self):
        return self.session.mirror

    @property
    def is_remote(self) -> bool:
        return self.remote is not None

    # ------------------------------------------------------------------
    # background work
    # ------------------------------------------------------------------

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for background remote cleanup started by delete_message()."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _build_message(self, payload: MessagePayload) -> Message:
        now = fmt_time_for_index()
        if isinstance(payload, str):
            return Message(id=uid(), time=now, sender=self.session.device_name, type=TEXT, text=payload)

        fields = payload.to_dict() if isinstance(payload, Message) else dict(payload)
        data = {"id": uid(), "time": now, "sender": self.session.device_name}
        data.update({k: v for k, v in fields.items() if v is not None})
        message = Message.from_dict(data)
        if not message.type:
            message.type = FILE if message.url else TEXT
        return message

    async def _read_index(self, conv_id: str) -> ConversationIndex:
        """Remote index, or a fresh one seeded from the local title when absent or unreadable."""
        try:
            return await self.remote.get_index(index_key(conv_id))
        except (NotFoundError, ParseError) as e:
            logger.debug("No usable remote index for %s (%s); starting a new one", conv_id, e)
            conv = self.mirror.get(conv_id)
            return ConversationIndex(title=conv.title if conv else conv_id, sender=mk_sender())

    @staticmethod
    def _matches(remote_msg: Message, msg_id: str, local_msg: Optional[Message]) -> bool:
        if remote_msg.id:
            return remote_msg.id == msg_id
        if local_msg is None:
            return False
        return (str(remote_msg.time) == str(local_msg.time)
                and str(remote_msg.text) == str(local_msg.text))

    # ------------------------------------------------------------------
    # conversations
    # ------------------------------------------------------------------

    async def create_conversation(self, title: str) -> str:
        """
        Create a conversation and return its id.

        The mirror is updated and saved before the remote write so the new
        conversation is visible immediately; remote failures leave the two
        diverged and are only logged.

        Raises:
            InvalidTitleError: title is empty or uses characters outside [A-Za-z0-9_/]
        """
        if not title or not TITLE_PATTERN.fullmatch(title):
            raise InvalidTitleError(title)

        existing = set(self.mirror.ids)
        conv_id = uid()
        while conv_id in existing:
            conv_id = uid()
        sender = mk_sender()

        self.mirror.add_first(Conversation(id=conv_id, title=title, sender=sender))
        self.mirror.active_id = conv_id
        await self.session.save()

        if self.remote is not None:
            try:
                await self.remote.put_index(index_key(conv_id), ConversationIndex(title=title, sender=sender))
            except TransportError as e:
                logger.warning("createConversation: remote init failed for %s: %s", conv_id, e)
            else:
                await self.update_catalog(conv_id, title)
        return conv_id

    async def delete_conversation(self, conv_id: str) -> Optional[Conversation]:
        """
        Delete a conversation locally and every remote key under its prefix.

        A remote 404 counts as success. The catalog entry is removed
        best-effort afterwards.

        Raises:
            ValidationError: no conversation id given
            TransportError: the remote prefix deletion failed (local removal stands)
        """
        if not conv_id:
            raise ValidationError("No conversation selected")

        removed = self.mirror.remove(conv_id)
        await self.session.save()

        if self.remote is None:
            return removed

        try:
            await self.remote.delete_conversation(conv_id)
        except NotFoundError:
            logger.info("deleteConversation: %s already absent on remote", conv_id)
        except TransportError as e:
            logger.error("deleteConversation failed for %s: %s", conv_id, e)
            raise
        await self.remove_from_catalog(conv_id)
        return removed

    async def rename_conversation(self, old_id: str, new_id: str) -> None:
        """
        Move a conversation to a new id: remote prefix first, then the
        mirror, then the catalog entry.

        Raises:
            ValidationError: bad or already used new id
            NotFoundError: unknown conversation (local-only) or remote prefix absent
            TransportError: remote move failed
        """
        if not new_id or not _CONV_ID_RE.match(new_id):
            raise ValidationError("Conversation ids are alphanumeric", {"id": new_id})
        if self.mirror.get(new_id) is not None:
            raise ValidationError("Conversation id already in use", {"id": new_id})
        if self.remote is None and self.mirror.get(old_id) is None:
            raise NotFoundError("Conversation not found", {"id": old_id})

        if self.remote is not None:
            await self.remote.rename_conversation(old_id, new_id)

        if self.mirror.rekey(old_id, new_id):
            await self.session.save()

        if self.remote is not None:
            try:
                rows = await self._read_catalog()
                for row in rows:
                    if _row_id(row) == old_id:
                        row["id"] = new_id
                        await self.remote.put_catalog(rows)
                        break
            except TransportError as e:
                logger.warning("renameConversation: catalog update failed: %s", e)

    async def load_catalog(self) -> bool:
        """
        Replace the mirror with the remote's view of every catalogued conversation.

        Per-conversation indexes are fetched concurrently; one failing fetch
        yields that conversation with no messages. An empty or unreachable
        catalog leaves the mirror untouched. Returns whether the mirror was replaced.
        """
        if self.remote is None:
            return False

        with LogTimer("catalog_load", logger):
            try:
                entries = await self.remote.list_conversations()
            except FlowChatError as e:
                logger.warning("loadCatalog: could not list conversations: %s", e)
                return False
            if not entries:
                return False

            conversations = await asyncio.gather(*(self._load_conversation(e) for e in entries))

        self.mirror.replace_all(conversations)
        await asyncio.gather(*(self.ensure_message_ids(c) for c in conversations))
        self.mirror.active_id = conversations[0].id
        await self.session.save()
        return True

    async def _load_conversation(self, entry: CatalogEntry) -> Conversation:
        title = entry.title or entry.id
        try:
            index = await self.remote.get_index(index_key(entry.id))
        except FlowChatError as e:
            logger.warning("Failed to load index for %s: %s", entry.id, e)
            return Conversation(id=entry.id, title=title)
        return Conversation(id=entry.id, title=title, messages=index.messages, sender=index.sender or "")

    def export_conversation(self, conv_id: str) -> str:
        """
        Plain-text transcript of a local conversation.

        Raises:
            NotFoundError: unknown conversation
        """
        conv = self.mirror.get(conv_id)
        if conv is None:
            raise NotFoundError("Conversation not found", {"id": conv_id})
        return render_transcript(conv.title, conv.messages)

    async def download_export(self, conv_id: str) -> str:
        """Transcript rendered by the remote (includes the sender tag); local export without a remote."""
        if self.remote is None:
            return self.export_conversation(conv_id)
        try:
            return await self.remote.export(conv_id)
        except FlowChatError as e:
            logger.error("exportConversation failed for %s: %s", conv_id, e)
            raise

    # ------------------------------------------------------------------
    # catalog
    # ------------------------------------------------------------------

    async def _read_catalog(self) -> List[Any]:
        """Raw catalog rows; absent or unreadable reads as empty."""
        try:
            return await self.remote.get_catalog()
        except (NotFoundError, ParseError):
            return []

    async def update_catalog(self, conv_id: str, title: Optional[str]) -> None:
        """
        Touch the catalog entry for ``conv_id`` (replace in place, or insert
        first) and make sure the mirror knows the conversation. Other rows
        are written back as they were read.
        """
        entry = CatalogEntry(id=conv_id, title=title or conv_id, updated_at=int(time.time() * 1000))
        if self.remote is not None:
            try:
                rows = await self._read_catalog()
                for i, row in enumerate(rows):
                    if _row_id(row) == conv_id:
                        rows[i] = entry.to_dict()
                        break
                else:
                    rows.insert(0, entry.to_dict())
                await self.remote.put_catalog(rows)
            except TransportError as e:
                logger.warning("updateCatalog failed for %s: %s", conv_id, e)

        if self.mirror.get(conv_id) is None:
            self.mirror.add_first(Conversation(id=conv_id, title=entry.title))
            await self.session.save()

    async def remove_from_catalog(self, conv_id: str) -> None:
        if self.remote is None:
            return
        try:
            rows = await self._read_catalog()
            kept = [row for row in rows if _row_id(row) != conv_id]
            if len(kept) != len(rows):
                await self.remote.put_catalog(kept)
        except TransportError as e:
            logger.warning("removeFromCatalog failed for %s: %s", conv_id, e)

    # ------------------------------------------------------------------
    # messages
    # ------------------------------------------------------------------

    async def append_message(self, conv_id: str, payload: MessagePayload) -> Message:
        """
        Append a message to a conversation.

        The remote index is read, extended and written back whole; the
        mirror gets the same message whatever the remote outcome.

        Raises:
            NotFoundError: local-only mode and the conversation is unknown
        """
        entry = self._build_message(payload)
        if self.remote is None and self.mirror.get(conv_id) is None:
            raise NotFoundError("Conversation not found", {"id": conv_id})

        index: Optional[ConversationIndex] = None
        if self.remote is not None:
            try:
                index = await self._read_index(conv_id)
                index.messages.append(entry.copy())
                await self.remote.put_index(index_key(conv_id), index)
            except TransportError as e:
                logger.warning("appendMessage: remote write failed for %s: %s", conv_id, e)
                index = None

        if self.mirror.append_message(conv_id, entry):
            await self.session.save()

        if index is not None:
            await self.update_catalog(conv_id, index.title or conv_id)
        return entry

    async def send_text(self, conv_id: str, text: str) -> Optional[Message]:
        text = (text or "").strip()
        if not text:
            return None
        return await self.append_message(conv_id, text)

    async def send_file(self, conv_id: str, name: str, data: bytes,
                        content_type: Optional[str] = None) -> Message:
        """
        Upload a file under the conversation's assets and append a file message.

        Raises:
            TransportError: the upload failed (nothing is appended)
        """
        safe_name = _WHITESPACE_RE.sub("_", name)
        filename = f"{fmt_timestamp_for_filename()}-{safe_name}"
        url = None
        if self.remote is not None:
            try:
                url = await self.remote.upload(asset_key(conv_id, filename), data,
                                               content_type or DEFAULT_CONTENT_TYPE)
            except FlowChatError as e:
                logger.error("sendFile failed for %s: %s", name, e)
                raise
        payload = {"type": FILE, "text": name, "filename": filename, "url": url, "size": len(data)}
        return await self.append_message(conv_id, payload)

    async def paste(self, conv_id: str, items: Iterable[PasteItem]) -> List[Message]:
        """Send pasted clipboard items in order: files are uploaded, text is sent when non-blank."""
        sent = []
        for item in items:
            if isinstance(item, FileItem):
                sent.append(await self.send_file(conv_id, item.name, item.data, item.content_type))
            else:
                message = await self.send_text(conv_id, item)
                if message is not None:
                    sent.append(message)
        return sent

    async def delete_message(self, conv_id: str, msg_id: str) -> Optional[Message]:
        """
        Delete one message. Local removal happens now; remote index and
        asset cleanup run in the background (see drain()).

        Returns the removed message, or None when nothing matched locally.
        """
        if not conv_id or not msg_id:
            return None

        removed = self.mirror.remove_message(conv_id, msg_id)
        if removed is not None:
            await self.session.save()

        if self.remote is not None:
            self._spawn(self._delete_message_remote(conv_id, msg_id, removed))
        return removed

    async def _delete_message_remote(self, conv_id: str, msg_id: str, msg: Optional[Message]) -> None:
        key = index_key(conv_id)
        try:
            index = await self.remote.get_index(key)
            kept = [r for r in index.messages if not self._matches(r, msg_id, msg)]
            if len(kept) != len(index.messages):
                index.messages = kept
                await self.remote.put_index(key, index)
        except (NotFoundError, ParseError) as e:
            logger.info("deleteMessage: no usable remote index for %s: %s", conv_id, e)
        except TransportError as e:
            logger.warning("deleteMessage: update index failed for %s: %s", conv_id, e)

        if msg is not None and msg.is_file and msg.filename:
            await self._delete_asset(conv_id, msg)

    @staticmethod
    def asset_candidates(conv_id: str, msg: Message) -> List[str]:
        """Keys an asset may live under, given historically inconsistent encoding."""
        encoded = quote(msg.filename, safe=_URI_COMPONENT_SAFE)
        names = [msg.filename, unquote(msg.filename), encoded]
        if msg.text and msg.text != msg.filename:
            names.append(msg.text)
        names.append(msg.filename + META_SUFFIX)
        names.append(encoded + META_SUFFIX)

        candidates = []
        for name in names:
            key = asset_key(conv_id, name)
            if key not in candidates:
                candidates.append(key)
        return candidates

    async def _delete_asset(self, conv_id: str, msg: Message) -> bool:
        for candidate in self.asset_candidates(conv_id, msg):
            try:
                await self.remote.delete_file(candidate)
                logger.debug("deleteMessage: removed asset %s", candidate)
                return True
            except NotFoundError:
                continue
            except TransportError as e:
                logger.warning("delete-file attempt failed for %s: %s", candidate, e)
        logger.info("deleteMessage: asset not found/removed on backend for %s", msg.filename)
        return False

    async def ensure_message_ids(self, conv: Conversation) -> bool:
        """
        Give every message of ``conv`` an id and push the ids to the remote.

        Remote entries lacking an id are matched to local ones on
        ``(time, text)``; when two messages share both, which one gets which
        id is arbitrary. An absent or unreadable remote index is replaced by
        the local conversation. Returns whether any id was assigned.
        """
        changed = False
        for m in conv.messages:
            if not m.id:
                m.id = uid()
                changed = True
        if not changed:
            return False

        await self.session.save()
        if self.remote is None:
            return True

        key = index_key(conv.id)
        try:
            try:
                remote = await self.remote.get_index(key)
            except (NotFoundError, ParseError):
                remote = None

            if remote is not None:
                for local in conv.messages:
                    match = next((r for r in remote.messages if r.id and r.id == local.id), None)
                    if match is None:
                        match = next((r for r in remote.messages
                                      if not r.id
                                      and str(r.time) == str(local.time)
                                      and str(r.text) == str(local.text)), None)
                    if match is not None and not match.id:
                        match.id = local.id
                await self.remote.put_index(key, remote)
            else:
                await self.remote.put_index(key, ConversationIndex(
                    messages=[m.copy() for m in conv.messages],
                    title=conv.title,
                    sender=conv.sender or "",
                ))
        except TransportError as e:
            logger.warning("ensureMessageIds: remote persist failed for %s: %s", conv.id, e)
        return True
