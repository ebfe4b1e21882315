"""
Local mirror of conversations.

An ordered, in-process list of conversation records plus the active
conversation id. It is the source of truth when no remote store is
configured and an optimistic cache otherwise. Not thread-safe: all
mutations come from a single control flow. Persistence is driven by the
owning SessionState.
"""
import logging
from typing import Any, Iterable, List, Optional

from FlowChat.core.client.models import Conversation
from FlowChat.core.message.protocol import Message
from FlowChat.core.utils.exceptions import ParseError

logger = logging.getLogger(__name__)


class LocalMirror:
    """Ordered conversation records, most recently created first."""

    def __init__(self, conversations: Optional[Iterable[Conversation]] = None):
        self._conversations: List[Conversation] = list(conversations or [])
        self.active_id: Optional[str] = self._conversations[0].id if self._conversations else None

    def __len__(self) -> int:
        return len(self._conversations)

    def __iter__(self):
        return iter(list(self._conversations))

    @property
    def conversations(self) -> List[Conversation]:
        return list(self._conversations)

    @property
    def ids(self) -> List[str]:
        return [c.id for c in self._conversations]

    def get(self, conv_id: Optional[str]) -> Optional[Conversation]:
        for conv in self._conversations:
            if conv.id == conv_id:
                return conv
        return None

    def get_active(self) -> Optional[Conversation]:
        return self.get(self.active_id)

    def add_first(self, conv: Conversation) -> None:
        self._conversations.insert(0, conv)

    def replace_all(self, conversations: Iterable[Conversation]) -> None:
        self._conversations = list(conversations)
        if self.get(self.active_id) is None:
            self.active_id = self._conversations[0].id if self._conversations else None

    def remove(self, conv_id: str) -> Optional[Conversation]:
        """Remove a conversation; the first remaining one becomes active."""
        conv = self.get(conv_id)
        if conv is None:
            return None
        self._conversations.remove(conv)
        if self.active_id == conv_id or self.get(self.active_id) is None:
            self.active_id = self._conversations[0].id if self._conversations else None
        return conv

    def rekey(self, old_id: str, new_id: str) -> bool:
        conv = self.get(old_id)
        if conv is None:
            return False
        conv.id = new_id
        if self.active_id == old_id:
            self.active_id = new_id
        return True

    def append_message(self, conv_id: str, message: Message) -> bool:
        conv = self.get(conv_id)
        if conv is None:
            return False
        conv.messages.append(message)
        return True

    def find_message(self, conv_id: str, msg_id: str) -> Optional[Message]:
        conv = self.get(conv_id)
        return conv.find_message(msg_id) if conv else None

    def remove_message(self, conv_id: str, msg_id: str) -> Optional[Message]:
        """Remove one message (by id, else by time for legacy entries); None if absent."""
        conv = self.get(conv_id)
        if conv is None:
            return None
        target = conv.find_message(msg_id)
        if target is None:
            return None
        conv.messages = [m for m in conv.messages if m is not target]
        return target

    def to_state(self) -> List[dict]:
        return [c.to_dict() for c in self._conversations]

    @classmethod
    def from_state(cls, data: Any) -> 'LocalMirror':
        """Rebuild from persisted records, skipping entries without id or title."""
        conversations = []
        if isinstance(data, list):
            for item in data:
                if not (isinstance(item, dict) and item.get("id") and item.get("title")):
                    continue
                try:
                    conversations.append(Conversation.from_dict(item))
                except ParseError as e:
                    logger.warning("Skipping unreadable local conversation %s: %s", item.get("id"), e)
        return cls(conversations)
