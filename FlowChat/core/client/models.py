"""
Data models for the client-side conversation mirror.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from FlowChat.core.message.protocol import Message


@dataclass
class Conversation:
    """A conversation as held in the local mirror."""
    id: str
    title: str
    messages: List[Message] = field(default_factory=list)
    sender: str = ""

    def find_message(self, msg_id: str) -> Optional[Message]:
        """Find by id; legacy entries without an id match on their time."""
        for m in self.messages:
            if m.id == msg_id:
                return m
        for m in self.messages:
            if str(m.time) == str(msg_id):
                return m
        return None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "messages": [m.to_dict() for m in self.messages],
        }
        if self.sender:
            data["sender"] = self.sender
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Conversation':
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or data["id"]),
            messages=[Message.from_dict(m) for m in data.get("messages") or []],
            sender=str(data.get("sender") or ""),
        )


@dataclass
class FileItem:
    """A file handed to send/paste: original name, bytes and MIME type."""
    name: str
    data: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)
