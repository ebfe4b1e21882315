"""
Persistence of client session state.

One JSON state file holds every persisted value under its own stable key:
the conversation mirror, the device display name and the theme. Uses async
file I/O to avoid blocking the event loop, with synchronous fallbacks for
shutdown paths that run outside a loop.
"""
import asyncio
import json
import logging
import os
from typing import Any, Dict, Optional

import aiofiles
import aiofiles.os

from FlowChat.config import config
from FlowChat.core.client.mirror import LocalMirror
from FlowChat.core.utils.constants import (
    DEFAULT_THEME,
    DEVICE_KEY,
    STORE_KEY,
    THEME_KEY,
    THEMES,
)
from FlowChat.core.utils.exceptions import ValidationError
from FlowChat.core.utils.helpers import mk_device_name

logger = logging.getLogger(__name__)


class PersistenceService:
    """Reads and writes the state file with async I/O."""

    def __init__(self, state_dir: Optional[str] = None):
        self._state_dir = state_dir or config.STATE_DIR
        self._state_path = os.path.join(self._state_dir, config.STATE_FILE)
        self._write_lock = asyncio.Lock()

    @property
    def state_path(self) -> str:
        return self._state_path

    async def _ensure_dir(self) -> None:
        await aiofiles.os.makedirs(self._state_dir, exist_ok=True)

    async def load_state(self) -> Dict[str, Any]:
        """Load state from disk; a missing or unreadable file reads as empty."""
        try:
            async with aiofiles.open(self._state_path, "r", encoding="utf-8") as f:
                content = await f.read()
        except FileNotFoundError:
            return {}
        except OSError as e:
            logger.warning("Could not read state file %s: %s", self._state_path, e)
            return {}
        try:
            state = json.loads(content)
        except ValueError as e:
            logger.warning("State file %s is not valid JSON: %s", self._state_path, e)
            return {}
        return state if isinstance(state, dict) else {}

    async def save_state(self, state: Dict[str, Any]) -> bool:
        """Write state to disk; failures are logged and reported as False."""
        try:
            await self._ensure_dir()
            async with self._write_lock:
                tmp_path = self._state_path + ".tmp"
                async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                    await f.write(json.dumps(state, ensure_ascii=False, indent=2))
                await aiofiles.os.replace(tmp_path, self._state_path)
            return True
        except OSError as e:
            logger.warning("Could not save state file %s: %s", self._state_path, e)
            return False

    def load_state_sync(self) -> Dict[str, Any]:
        """Synchronous fallback for loading state."""
        try:
            with open(self._state_path, "r", encoding="utf-8") as f:
                state = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning("Could not load state file %s: %s", self._state_path, e)
            return {}
        return state if isinstance(state, dict) else {}

    def save_state_sync(self, state: Dict[str, Any]) -> bool:
        """Synchronous fallback for saving state."""
        try:
            os.makedirs(self._state_dir, exist_ok=True)
            with open(self._state_path, "w", encoding="utf-8") as f:
                json.dump(state, f, ensure_ascii=False, indent=2)
            return True
        except OSError as e:
            logger.warning("Could not save state file %s: %s", self._state_path, e)
            return False


def _is_ascii(name: str) -> bool:
    return all(ord(ch) < 128 for ch in name)


class SessionState:
    """
    Everything the client keeps locally: the conversation mirror, the device
    display name and the theme, with an explicit load/save lifecycle.
    """

    def __init__(self, persistence: Optional[PersistenceService] = None):
        self.persistence = persistence or PersistenceService()
        self.mirror = LocalMirror()
        self.device_name: str = mk_device_name()
        self.theme: str = DEFAULT_THEME

    def _apply(self, state: Dict[str, Any]) -> bool:
        """Apply loaded state; returns True when the device name had to be regenerated."""
        self.mirror = LocalMirror.from_state(state.get(STORE_KEY))
        name = state.get(DEVICE_KEY)
        regenerated = False
        if not isinstance(name, str) or not name or not _is_ascii(name):
            name = mk_device_name()
            regenerated = True
        self.device_name = name
        theme = state.get(THEME_KEY)
        self.theme = theme if theme in THEMES else DEFAULT_THEME
        return regenerated

    def to_state(self) -> Dict[str, Any]:
        return {
            STORE_KEY: self.mirror.to_state(),
            DEVICE_KEY: self.device_name,
            THEME_KEY: self.theme,
        }

    async def load(self) -> 'SessionState':
        if self._apply(await self.persistence.load_state()):
            await self.save()
        return self

    def load_sync(self) -> 'SessionState':
        if self._apply(self.persistence.load_state_sync()):
            self.save_sync()
        return self

    async def save(self) -> bool:
        return await self.persistence.save_state(self.to_state())

    def save_sync(self) -> bool:
        return self.persistence.save_state_sync(self.to_state())

    async def set_theme(self, theme: str) -> str:
        if theme not in THEMES:
            raise ValidationError(f"Unknown theme '{theme}'", {"themes": list(THEMES)})
        self.theme = theme
        await self.save()
        return theme

    async def toggle_theme(self) -> str:
        return await self.set_theme("light" if self.theme == "dark" else "dark")
