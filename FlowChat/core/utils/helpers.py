"""
Helpers for identifiers, timestamps and blob store keys.
"""
import random
import string
from datetime import datetime
from typing import Optional

from .constants import (
    CONVERSATIONS_PREFIX,
    CONV_ID_LENGTH,
    SENDER_TAG_LENGTH,
)

_ID_ALPHABET = string.ascii_lowercase + string.digits
_SENDER_ALPHABET = string.ascii_uppercase + string.digits

_ADJECTIVES = ['Sunny', 'Swift', 'Silent', 'Lone', 'Bright', 'Lightning', 'Gentle', 'Atomic', 'Calm', 'Clever']
_NOUNS = ['Falcon', 'Comet', 'Harbor', 'Echo', 'Atlas', 'Nimbus', 'Voyager', 'Pulse', 'Orbit', 'Quill']


def uid(n: int = CONV_ID_LENGTH) -> str:
    """Random lowercase alphanumeric id (conversation and message ids)."""
    return "".join(random.choice(_ID_ALPHABET) for _ in range(n))


def mk_sender(n: int = SENDER_TAG_LENGTH) -> str:
    """Random uppercase alphanumeric sender tag for a conversation index."""
    return "".join(random.choice(_SENDER_ALPHABET) for _ in range(n))


def mk_device_name() -> str:
    """Human-friendly device name, e.g. ``Swift-Comet-x3k9``."""
    return f"{random.choice(_ADJECTIVES)}-{random.choice(_NOUNS)}-{uid(4)}"


def fmt_time_for_index(d: Optional[datetime] = None) -> str:
    """Message time as stored in an index: ``YYYY-MM-DD-HH:MM:SS``."""
    return (d or datetime.now()).strftime("%Y-%m-%d-%H:%M:%S")


def fmt_timestamp_for_filename(d: Optional[datetime] = None) -> str:
    """Asset name prefix: ``YYYY-MM-DD-HHMMSS``."""
    return (d or datetime.now()).strftime("%Y-%m-%d-%H%M%S")


def conversation_prefix(conv_id: str) -> str:
    return f"{CONVERSATIONS_PREFIX}{conv_id}/"


def index_key(conv_id: str) -> str:
    return f"{conversation_prefix(conv_id)}index.json"


def asset_key(conv_id: str, filename: str) -> str:
    return f"{conversation_prefix(conv_id)}assets/{filename}"
