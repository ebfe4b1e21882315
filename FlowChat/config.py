"""
Configuration module for FlowChat application.
Stores all application settings, overridable through environment variables.
"""

import os
from typing import Dict, Any


class Config:
    """Application configuration class."""

    # Remote blob store (worker or local emulator). Unset means local-only mode.
    WORKER_API = os.environ.get("FLOW_WORKER_API") or None

    # Client state directory (local mirror, device name, theme)
    STATE_DIR = os.environ.get("FLOW_STATE_DIR", "./.flowchat")
    STATE_FILE = "flow_state.json"

    # Emulator Configuration
    DEFAULT_HOST = os.environ.get("FLOW_HOST", "localhost")
    DEFAULT_PORT = int(os.environ.get("FLOW_PORT", "8787"))
    STORAGE_DIR = os.environ.get("FLOW_STORAGE_DIR", "./local_storage")

    # HTTP client timeouts (seconds)
    HTTP_TIMEOUT = float(os.environ.get("FLOW_HTTP_TIMEOUT", "60"))
    HTTP_CONNECT_TIMEOUT = float(os.environ.get("FLOW_HTTP_CONNECT_TIMEOUT", "10"))

    # Logging profile: development / production / testing
    ENV = os.environ.get("FLOWCHAT_ENV", "development")

    @classmethod
    def get_config(cls) -> Dict[str, Any]:
        """Get all configuration values as a dictionary."""
        return {
            "WORKER_API": cls.WORKER_API,
            "STATE_DIR": cls.STATE_DIR,
            "STATE_FILE": cls.STATE_FILE,
            "DEFAULT_HOST": cls.DEFAULT_HOST,
            "DEFAULT_PORT": cls.DEFAULT_PORT,
            "STORAGE_DIR": cls.STORAGE_DIR,
            "HTTP_TIMEOUT": cls.HTTP_TIMEOUT,
            "HTTP_CONNECT_TIMEOUT": cls.HTTP_CONNECT_TIMEOUT,
            "ENV": cls.ENV,
        }


# Create config instance
config = Config()
