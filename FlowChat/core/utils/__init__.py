"""
Utility functions and shared components for FlowChat.
"""

from .constants import (
    CATALOG_KEY,
    STORE_KEY,
    THEME_KEY,
    DEVICE_KEY,
    TITLE_PATTERN,
)
from .exceptions import (
    FlowChatError,
    ValidationError,
    InvalidTitleError,
    NotFoundError,
    TransportError,
    ParseError,
)
from .helpers import (
    uid,
    mk_sender,
    mk_device_name,
    fmt_time_for_index,
    fmt_timestamp_for_filename,
    index_key,
    conversation_prefix,
    asset_key,
)

__all__ = [
    'CATALOG_KEY',
    'STORE_KEY',
    'THEME_KEY',
    'DEVICE_KEY',
    'TITLE_PATTERN',
    'FlowChatError',
    'ValidationError',
    'InvalidTitleError',
    'NotFoundError',
    'TransportError',
    'ParseError',
    'uid',
    'mk_sender',
    'mk_device_name',
    'fmt_time_for_index',
    'fmt_timestamp_for_filename',
    'index_key',
    'conversation_prefix',
    'asset_key',
]
