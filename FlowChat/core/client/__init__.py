"""
Client side of FlowChat: local mirror, session state and the sync layer.
"""

from .models import Conversation, FileItem
from .mirror import LocalMirror
from .persistence import PersistenceService, SessionState
from .sync import ConversationSync

__all__ = [
    'Conversation',
    'FileItem',
    'LocalMirror',
    'PersistenceService',
    'SessionState',
    'ConversationSync',
]
