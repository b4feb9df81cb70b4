"""On-disk cache of notification icons."""

from __future__ import annotations

import asyncio
import hashlib
import re
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from push_relay.errors import CacheWriteError

if TYPE_CHECKING:
    from push_relay.api_client import ApiClient

log = structlog.get_logger()

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def icon_filename(icon_id: str) -> str:
    """File name for an icon id, safe to join onto the cache directory."""
    name = _UNSAFE_CHARS.sub("_", icon_id).lstrip(".")
    if not name or name != icon_id:
        # Sanitising is lossy; keep rewritten ids from colliding with each other
        digest = hashlib.sha256(icon_id.encode()).hexdigest()[:12]
        name = f"{name or '_'}-{digest}"
    return f"{name}.png"


class IconCache:
    """Lazily populated map from icon id to a local file.

    Icon ids are content-stable, so entries are never invalidated and the
    cache only grows.
    """

    def __init__(self, cache_dir: Path, api: ApiClient):
        self.cache_dir = cache_dir
        self.api = api
        self._locks: dict[str, asyncio.Lock] = {}

    def path_for(self, icon_id: str) -> Path:
        """Where the icon for `icon_id` lives (whether or not it exists yet)."""
        return self.cache_dir / icon_filename(icon_id)

    async def resolve(self, icon_id: str) -> Path:
        """Return a local path for the icon, downloading it on first use.

        Raises:
            FetchError: If the icon download fails
            CacheWriteError: If the icon can't be written to disk
        """
        path = self.path_for(icon_id)
        if path.exists():
            return path

        # Concurrent resolves of one id download once; distinct ids don't block
        lock = self._locks.setdefault(icon_id, asyncio.Lock())
        async with lock:
            if path.exists():
                return path

            data = await self.api.fetch_icon_bytes(icon_id)
            try:
                self.cache_dir.mkdir(parents=True, exist_ok=True)
                tmp = path.with_suffix(".part")
                tmp.write_bytes(data)
                tmp.replace(path)
            except OSError as e:
                raise CacheWriteError(f"Failed to cache icon {icon_id!r}: {e}") from e

        log.info("icon_cached", icon=icon_id, bytes=len(data))
        return path


def clear_cache(cache_dir: Path) -> int:
    """Delete every cached icon. Returns the number of files removed."""
    if not cache_dir.exists():
        return 0
    removed = 0
    for entry in cache_dir.glob("*.png"):
        entry.unlink()
        removed += 1
    return removed
