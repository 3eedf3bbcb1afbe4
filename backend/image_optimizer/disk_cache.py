"""
Disk Cache

Flat file cache for transformed images:

cache_dir/
├── 3f2a...9c-400xauto-q80.webp
└── ...

Entries are written once and never revalidated; the key encodes every
parameter that affects the output. Writes go to a temp file in the same
directory and are renamed into place, so a reader never sees a
truncated entry under its key name.

No TTL and no size-bounded eviction. `clear()` exists for the
fresh-cache-on-boot option only.
"""

import asyncio
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from .errors import StorageFailure

logger = logging.getLogger(__name__)

TEMP_SUFFIX = ".part"


class DiskCache:
    """
    Key-addressed image files in a single directory.

    No lock: same-key writers produce identical bytes and the last
    rename wins; different keys never share a file.
    """

    def __init__(self, cache_dir: Union[str, Path]):
        self.cache_dir = Path(cache_dir)

    def path_for(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key in (".", ".."):
            raise ValueError(f"Invalid cache key: {key!r}")
        return self.cache_dir / key

    # ============================================
    # Read
    # ============================================

    async def lookup(self, key: str) -> Optional[bytes]:
        """Return cached bytes for `key`, or None on a miss."""
        return await asyncio.to_thread(self.lookup_sync, key)

    def lookup_sync(self, key: str) -> Optional[bytes]:
        cache_path = self.path_for(key)
        if not cache_path.is_file():
            return None

        try:
            with open(cache_path, "rb") as f:
                data = f.read()
        except OSError as e:
            logger.error(f"[DiskCache] Failed to read {key}: {e}")
            return None

        logger.debug(f"[DiskCache] Cache hit: {key}")
        return data

    # ============================================
    # Write
    # ============================================

    async def store(self, key: str, data: bytes) -> None:
        """Persist `data` under `key`. Raises StorageFailure."""
        await asyncio.to_thread(self.store_sync, key, data)

    def store_sync(self, key: str, data: bytes) -> None:
        cache_path = self.path_for(key)
        tmp_path: Optional[Path] = None

        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{key}.", suffix=TEMP_SUFFIX, dir=str(self.cache_dir)
            )
            tmp_path = Path(tmp_name)
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, cache_path)
            tmp_path = None
        except OSError as e:
            logger.warning(f"[DiskCache] Failed to cache {key}: {e}")
            raise StorageFailure() from e
        finally:
            if tmp_path is not None and tmp_path.exists():
                tmp_path.unlink()

        logger.debug(f"[DiskCache] Cached: {key} ({len(data)} bytes)")

    # ============================================
    # Maintenance
    # ============================================

    def _entries(self):
        if not self.cache_dir.is_dir():
            return []
        return [
            p for p in self.cache_dir.iterdir()
            if p.is_file() and not p.name.startswith(".")
        ]

    def clear(self) -> int:
        """
        Remove every cached entry and leftover temp file.

        Returns:
            Number of entries removed (temp files not counted).
        """
        if not self.cache_dir.is_dir():
            return 0

        count = 0
        for path in self.cache_dir.iterdir():
            if not path.is_file():
                continue
            path.unlink()
            if not path.name.endswith(TEMP_SUFFIX):
                count += 1

        logger.info(f"[DiskCache] Cleared {count} entries from {self.cache_dir}")
        return count

    async def stats(self) -> dict:
        return await asyncio.to_thread(self.get_stats)

    def get_stats(self) -> dict:
        """Get cache statistics."""
        entries = self._entries()
        total_size = sum(p.stat().st_size for p in entries)
        return {
            "total_entries": len(entries),
            "total_size_bytes": total_size,
            "total_size_mb": round(total_size / (1024 * 1024), 2),
        }
