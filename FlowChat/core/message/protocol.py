"""
Conversation index codec for FlowChat.

A conversation index is the JSON document stored at
``conversations/{id}/index.json``::

    {"messages": [Message, ...], "title": "...", "sender": "ABCDE"}

The catalog stored at ``conversations/index.json`` is a JSON list of
``{"id", "title", "updatedAt"}`` entries, most recently touched first.

Index decoding never guesses: anything that does not match the schema raises
ParseError, which callers handle exactly like an absent key. Catalog rows are
decoded one by one and unusable rows are skipped. Keys present as JSON null
are re-emitted as null.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Union

from FlowChat.core.utils.constants import FILE, TEXT
from FlowChat.core.utils.exceptions import ParseError

logger = logging.getLogger(__name__)

MESSAGE_FIELDS = ("id", "time", "sender", "type", "text", "filename", "url", "size")
INDEX_FIELDS = ("messages", "title", "sender")

Payload = Union[bytes, bytearray, str]


@dataclass
class Message:
    """
    A single message in a conversation.

    Attributes:
        id (str): 8-char id, unique within the conversation (absent on legacy data)
        time (str): local time as ``YYYY-MM-DD-HH:MM:SS``
        sender (str): device name of the author
        type (str): "text" or "file"
        text (str): literal text, or the original filename for file messages
        filename (str): asset key suffix (file messages only)
        url (str): public retrieval URL, present when the upload succeeded
        size (int): file size in bytes (file messages only)
        extra (dict): keys this codec does not know, kept for re-encoding
        null_fields (set): known keys that were stored as null
    """
    id: Optional[str] = None
    time: Optional[str] = None
    sender: Optional[str] = None
    type: Optional[str] = None
    text: Optional[str] = None
    filename: Optional[str] = None
    url: Optional[str] = None
    size: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)
    null_fields: Set[str] = field(default_factory=set, compare=False, repr=False)

    @property
    def kind(self) -> str:
        """Message type, inferred from ``url`` when the record has none."""
        if self.type:
            return self.type
        return FILE if self.url else TEXT

    @property
    def is_file(self) -> bool:
        return self.kind == FILE

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-ready dict; unset fields are omitted, decoded nulls kept."""
        data: Dict[str, Any] = {}
        for name in MESSAGE_FIELDS:
            value = getattr(self, name)
            if value is not None or name in self.null_fields:
                data[name] = value
        for key, value in self.extra.items():
            data.setdefault(key, value)
        return data

    @classmethod
    def from_dict(cls, obj: Any) -> 'Message':
        """
        Create a Message from a decoded JSON object.

        Raises:
            ParseError: if ``obj`` is not an object
        """
        if not isinstance(obj, dict):
            raise ParseError("message entry is not an object", {"entry": obj})
        known = {name: obj.get(name) for name in MESSAGE_FIELDS}
        extra = {k: v for k, v in obj.items() if k not in MESSAGE_FIELDS}
        null_fields = {name for name in MESSAGE_FIELDS if name in obj and obj[name] is None}
        return cls(**known, extra=extra, null_fields=null_fields)

    def copy(self) -> 'Message':
        return Message.from_dict(self.to_dict())


@dataclass
class ConversationIndex:
    """In-memory form of a per-conversation index document (title and sender may be stored as null)."""
    messages: List[Message] = field(default_factory=list)
    title: Optional[str] = ""
    sender: Optional[str] = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "messages": [m.to_dict() for m in self.messages],
            "title": self.title,
            "sender": self.sender,
        }
        for key, value in self.extra.items():
            data.setdefault(key, value)
        return data


@dataclass
class CatalogEntry:
    """One row of the conversation catalog."""
    id: str
    title: str
    updated_at: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "title": self.title, "updatedAt": self.updated_at}


def _load_json(payload: Payload) -> Any:
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = bytes(payload).decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(f"payload is not UTF-8: {e}") from e
    try:
        return json.loads(payload)
    except (TypeError, ValueError) as e:
        raise ParseError(f"payload is not valid JSON: {e}") from e


def _dump_json(value: Any) -> bytes:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def index_from_value(value: Any) -> ConversationIndex:
    """
    Build a ConversationIndex from an already-decoded JSON value.

    A missing ``messages`` key reads as an empty list; missing ``title`` or
    ``sender`` read as empty strings, while explicit nulls stay None.

    Raises:
        ParseError: if the value does not follow the index schema
    """
    if not isinstance(value, dict):
        raise ParseError("conversation index is not an object")

    messages = value.get("messages", [])
    if not isinstance(messages, list):
        raise ParseError("conversation index 'messages' is not a list")

    title = value.get("title", "")
    sender = value.get("sender", "")
    if not isinstance(title, (str, type(None))) or not isinstance(sender, (str, type(None))):
        raise ParseError("conversation index 'title'/'sender' must be strings")

    return ConversationIndex(
        messages=[Message.from_dict(m) for m in messages],
        title=title,
        sender=sender,
        extra={k: v for k, v in value.items() if k not in INDEX_FIELDS},
    )


def decode(payload: Payload) -> ConversationIndex:
    """
    Decode index bytes into a ConversationIndex.

    Raises:
        ParseError: on invalid JSON or schema mismatch
    """
    return index_from_value(_load_json(payload))


def encode(index: ConversationIndex) -> bytes:
    """Encode a ConversationIndex as compact UTF-8 JSON."""
    return _dump_json(index.to_dict())


def _catalog_entry(item: Any) -> Optional[CatalogEntry]:
    """One catalog row, or None when it carries no usable id."""
    if not isinstance(item, dict):
        return None
    entry_id = item.get("id")
    if isinstance(entry_id, bool) or not isinstance(entry_id, (str, int)) or entry_id == "":
        return None
    updated_at = item.get("updatedAt")
    if isinstance(updated_at, bool) or not isinstance(updated_at, (int, float)):
        updated_at = 0
    try:
        updated_at = int(updated_at)
    except (ValueError, OverflowError):
        updated_at = 0
    return CatalogEntry(
        id=str(entry_id),
        title=str(item.get("title") or entry_id),
        updated_at=updated_at,
    )


def catalog_from_value(value: Any) -> List[CatalogEntry]:
    """
    Build catalog entries from an already-decoded JSON value.

    Rows without a usable id are skipped; a non-numeric ``updatedAt`` reads as 0.

    Raises:
        ParseError: if the value is not a list
    """
    if not isinstance(value, list):
        raise ParseError("catalog is not a list")
    entries = []
    for item in value:
        entry = _catalog_entry(item)
        if entry is None:
            logger.debug("Skipping unusable catalog entry: %r", item)
            continue
        entries.append(entry)
    return entries


def decode_catalog(payload: Payload) -> List[CatalogEntry]:
    return catalog_from_value(_load_json(payload))


def encode_catalog(entries: List[CatalogEntry]) -> bytes:
    return _dump_json([e.to_dict() for e in entries])


def render_transcript(title: str, messages: List[Message], sender: Optional[str] = None) -> str:
    """
    Plain-text transcript: a title line, an optional ``Sender:`` line, a
    ``---`` separator, then ``time<TAB>text`` per message.
    """
    lines = [f"Conversation: {title}"]
    if sender is not None:
        lines.append(f"Sender: {sender}")
    lines.append("---")
    lines.extend(f"{m.time or ''}\t{m.text or ''}" for m in messages)
    return "\n".join(lines)
