# /// script
# requires-python = ">=3.12"
# dependencies = []
# ///
"""Injectable lookup cache.

Holds derived lookup tables (team-by-year directories, league pitching
norms) keyed by a namespace and parameters.  Entries live in memory; when a
``persist_dir`` is given they are also written as JSON files so a later
process can warm the cache with :meth:`LookupCache.load`.

There is no module-level instance.  Whoever needs a cache creates one and
passes it in, and owns its lifecycle::

    from data.cache import LookupCache

    cache = LookupCache()                       # memory only
    cache = LookupCache("/tmp/lookups")         # memory + JSON files
    cache.load()                                # warm from disk

    cache.set("teams_by_year", {"year": 1985}, payload)
    result = cache.get("teams_by_year", {"year": 1985})
    cache.invalidate("teams_by_year", {"year": 1985})
    cache.clear()                               # wipe memory and disk
"""

from __future__ import annotations

import hashlib
import json
import logging
import shutil
import time
from pathlib import Path
from typing import Any, Callable

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Key generation
# ---------------------------------------------------------------------------

def make_key(namespace: str, params: dict[str, Any] | None = None) -> str:
    """Build a deterministic cache key from a namespace and parameters.

    The key is a SHA-256 hex digest of the canonicalised JSON representation
    of ``(namespace, sorted-params)``, so the same inputs always map to the
    same key regardless of dict ordering.

    Returns:
        A 64-character hex string suitable for use as a filename.
    """
    canonical = json.dumps(
        {"namespace": namespace, "params": params or {}},
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(canonical.encode()).hexdigest()


# ---------------------------------------------------------------------------
# Cache class
# ---------------------------------------------------------------------------

class LookupCache:
    """In-memory lookup cache with optional JSON persistence.

    On disk each entry is ``<persist_dir>/<namespace>/<sha256>.json``
    containing ``{"created": <timestamp>, "namespace": ..., "key": ...,
    "data": <payload>}``.

    Args:
        persist_dir: Directory for JSON copies of each entry.  ``None``
            keeps the cache purely in memory.
    """

    def __init__(self, persist_dir: str | Path | None = None) -> None:
        self._root = Path(persist_dir) if persist_dir is not None else None
        self._entries: dict[str, tuple[str, Any]] = {}
        self._hits = 0
        self._misses = 0

    # -- lifecycle ---------------------------------------------------------

    @property
    def persist_dir(self) -> Path | None:
        return self._root

    def load(self) -> int:
        """Warm the in-memory table from the persistence directory.

        Corrupted files are removed and skipped.

        Returns:
            The number of entries loaded.
        """
        if self._root is None or not self._root.exists():
            return 0
        loaded = 0
        for path in sorted(self._root.rglob("*.json")):
            try:
                with open(path) as f:
                    entry = json.load(f)
            except (json.JSONDecodeError, OSError):
                logger.warning("Removing corrupted cache file %s", path)
                path.unlink(missing_ok=True)
                continue
            key = entry.get("key") or path.stem
            self._entries[key] = (entry.get("namespace", path.parent.name), entry.get("data"))
            loaded += 1
        logger.debug("Loaded %d cache entries from %s", loaded, self._root)
        return loaded

    def clear(self) -> int:
        """Drop every entry from memory and, if persisted, from disk.

        Returns:
            The number of entries that were held in memory.
        """
        count = len(self._entries)
        self._entries.clear()
        self._hits = 0
        self._misses = 0
        if self._root is not None and self._root.exists():
            shutil.rmtree(self._root)
        return count

    # -- public API --------------------------------------------------------

    def get(self, namespace: str, params: dict[str, Any] | None = None) -> Any | None:
        """Return the cached value, or ``None`` on a miss."""
        entry = self._entries.get(make_key(namespace, params))
        if entry is None:
            self._misses += 1
            return None
        self._hits += 1
        return entry[1]

    def set(self, namespace: str, params: dict[str, Any] | None = None,
            data: Any = None) -> str:
        """Store *data* and return its key."""
        key = make_key(namespace, params)
        self._entries[key] = (namespace, data)
        if self._root is not None:
            self._write(namespace, key, data)
        return key

    def get_or_compute(self, namespace: str, params: dict[str, Any] | None,
                       compute: Callable[[], Any]) -> Any:
        """Return the cached value, computing and storing it on a miss."""
        key = make_key(namespace, params)
        if key in self._entries:
            self._hits += 1
            return self._entries[key][1]
        self._misses += 1
        data = compute()
        self.set(namespace, params, data)
        return data

    def invalidate(self, namespace: str, params: dict[str, Any] | None = None) -> bool:
        """Remove a single entry.  Returns whether it existed."""
        key = make_key(namespace, params)
        existed = self._entries.pop(key, None) is not None
        if self._root is not None:
            path = self._root / namespace / f"{key}.json"
            if path.exists():
                path.unlink()
                existed = True
        return existed

    def has(self, namespace: str, params: dict[str, Any] | None = None) -> bool:
        return make_key(namespace, params) in self._entries

    def stats(self) -> dict[str, int]:
        """Entry count, hit/miss counters and, when persisted, file count."""
        files = 0
        if self._root is not None and self._root.exists():
            files = sum(1 for _ in self._root.rglob("*.json"))
        return {
            "entries": len(self._entries),
            "hits": self._hits,
            "misses": self._misses,
            "files": files,
        }

    # -- helpers -----------------------------------------------------------

    def _write(self, namespace: str, key: str, data: Any) -> Path:
        path = self._root / namespace / f"{key}.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        entry = {"created": time.time(), "namespace": namespace, "key": key, "data": data}
        tmp_path = path.with_suffix(".tmp")
        with open(tmp_path, "w") as f:
            json.dump(entry, f, separators=(",", ":"))
        tmp_path.replace(path)  # atomic rename
        return path
