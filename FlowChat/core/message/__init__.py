"""
Wire formats for conversation indexes and the conversation catalog.
"""

from .protocol import (
    Message,
    ConversationIndex,
    CatalogEntry,
    decode,
    encode,
    index_from_value,
    decode_catalog,
    encode_catalog,
    catalog_from_value,
    render_transcript,
)

__all__ = [
    'Message',
    'ConversationIndex',
    'CatalogEntry',
    'decode',
    'encode',
    'index_from_value',
    'decode_catalog',
    'encode_catalog',
    'catalog_from_value',
    'render_transcript',
]
