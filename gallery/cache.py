"""On-disk thumbnail cache.

A cache entry for (source path, size) lives at
`<cache_root>/<source_path>_<size>`, mirroring the gallery tree. Entries are
never invalidated or purged. The store holds no lock: only the request worker
mutates the cache tree.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Iterator

from .errors import CacheIOError
from .logging_config import get_logger
from .path_utils import normalize_relative, short_path

logger = get_logger(__name__)

# Prefix for in-progress writes; never matches a finished entry name.
TMP_PREFIX = ".tmp-"


class CacheStore:
    def __init__(self, cache_root: Path):
        self.cache_root = cache_root

    def cache_path(self, source_path: str, size: int) -> Path:
        """Return the cache file path for `source_path` resized to `size`.

        The size is the last `_` component and a canonical decimal integer,
        so distinct (path, size) keys never collide.
        """
        if size <= 0:
            raise ValueError(f"Cache entries need a positive size, got {size}")
        return self.cache_root / f"{normalize_relative(source_path)}_{int(size)}"

    def exists(self, cache_path: Path) -> bool:
        try:
            return cache_path.is_file()
        except OSError:
            return False

    def ensure_parent_dir(self, cache_path: Path) -> None:
        try:
            cache_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CacheIOError(f"Unable to create cache directory {cache_path.parent}: {exc}") from exc

    def write_atomic(self, cache_path: Path, data: bytes) -> None:
        """Write `data` to `cache_path` through a temporary sibling file.

        The final name only ever points at a complete file.
        """
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=TMP_PREFIX, dir=cache_path.parent)
        except OSError as exc:
            raise CacheIOError(f"Unable to create temporary file in {cache_path.parent}: {exc}") from exc
        try:
            os.fchmod(fd, 0o644)
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, cache_path)
        except OSError as exc:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise CacheIOError(f"Unable to write cache file {short_path(cache_path)}: {exc}") from exc
        logger.debug(f"Cached {short_path(cache_path)} ({len(data)} bytes)")

    def iter_entries(self) -> Iterator[Path]:
        """Yield every finished cache file under the cache root."""
        if not self.cache_root.exists():
            return
        for path in self.cache_root.rglob("*"):
            if path.is_file() and not path.name.startswith(TMP_PREFIX):
                yield path
