"""
Constants shared by the client and the blob store emulator.
"""
import re

# Blob store key namespace
CONVERSATIONS_PREFIX = "conversations/"
CATALOG_KEY = "conversations/index.json"
META_SUFFIX = ".meta.json"
DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Session state keys
STORE_KEY = "flow.convs.v1"
THEME_KEY = "flow.theme"
DEVICE_KEY = "flow.deviceName"

THEMES = ("light", "dark")
DEFAULT_THEME = "light"

# Identifier shapes
CONV_ID_LENGTH = 8
SENDER_TAG_LENGTH = 5

TITLE_PATTERN = re.compile(r"^[A-Za-z0-9_/]+$")

# Message kinds
TEXT = "text"
FILE = "file"
