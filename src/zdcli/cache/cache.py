"""File-backed response cache with per-entry expiry.

Each entry lives in its own JSON file under a private (``0o700``)
directory. The file name is the SHA-256 digest of the logical cache key, so
keys may contain any characters. Files hold an envelope::

    {"data": "<raw response body>", "created_at": "...", "expires_at": "..."}

An entry is served only while "now" is strictly before ``expires_at``.
Expired or malformed entries are deleted as soon as a read notices them,
or eagerly by :meth:`ResponseCache.prune_expired`.

The cache is disposable: the API client treats every failure here as a
cache miss. Concurrent CLI invocations writing the same key race at file
granularity and the last writer wins.

See Also:
    :class:`~zdcli.models.CacheConfig` -- the Pydantic model that
    controls ``enabled`` and ``ttl_seconds``.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urlencode

from zdcli.config import _atomic_write
from zdcli.exceptions import CacheError
from zdcli.models import CacheConfig

logger = logging.getLogger(__name__)

_SUFFIX = ".json"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def make_cache_key(site: str, resource: str, *identity: Any, **params: Any) -> str:
    """Build the logical cache key for one request.

    The key combines the instance site (``subdomain.host``), the resource family, any path
    identity (ids, sub-resources), and the query parameters. Parameters
    are sorted and URL-encoded so that values containing separators cannot
    collide with other keys; ``None`` values are dropped.

    Example::

        >>> make_cache_key("acme", "tickets", "list", page=2, per_page=25, status="open")
        'acme:tickets:list?page=2&per_page=25&status=open'
        >>> make_cache_key("acme", "tickets", 500)
        'acme:tickets:500'
    """
    key = ":".join([site, resource, *(str(part) for part in identity)])
    filtered = {k: v for k, v in params.items() if v is not None}
    if filtered:
        key += "?" + urlencode(sorted(filtered.items()))
    return key


class ResponseCache:
    """Disk-backed key/value store for raw response bodies.

    Args:
        cache_dir: Directory holding the entry files. Created with
            ``0o700`` permissions if missing.
        config: Cache configuration; only ``ttl_seconds`` is used here,
            the ``enabled`` flag is honoured by the API client.

    Raises:
        CacheError: If the directory cannot be created.

    Example::

        cache = ResponseCache(get_cache_dir(), CacheConfig(ttl_seconds=600))
        cache.set("acme:users:me", b'{"user": {"id": 1}}')
        cache.get("acme:users:me")  # b'{"user": {"id": 1}}'
    """

    def __init__(self, cache_dir: str | Path, config: Optional[CacheConfig] = None) -> None:
        self._config = config or CacheConfig()
        self._dir = Path(cache_dir)
        try:
            self._dir.mkdir(mode=0o700, parents=True, exist_ok=True)
            os.chmod(self._dir, 0o700)
        except OSError as exc:
            raise CacheError(f"Cannot create cache directory {self._dir}: {exc}") from exc

    @property
    def directory(self) -> Path:
        """The directory holding the entry files."""
        return self._dir

    @property
    def ttl(self) -> timedelta:
        """Lifetime given to every entry written by this cache."""
        return timedelta(seconds=self._config.ttl_seconds)

    def path_for(self, key: str) -> Path:
        """Return the entry file for *key* (a fixed-length hash of the key)."""
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self._dir / f"{digest}{_SUFFIX}"

    def get(self, key: str) -> Optional[bytes]:
        """Return the cached payload for *key*, or ``None`` on a miss.

        Missing, unreadable, malformed, and expired entries are all misses.
        Malformed and expired entry files are deleted on the way out.
        """
        path = self.path_for(key)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.debug("Cache read failed for %s: %s", path.name, exc)
            return None

        entry = _decode_entry(raw)
        if entry is None:
            logger.debug("Removing malformed cache entry %s", path.name)
            self._remove(path)
            return None

        data, _, expires_at = entry
        if _utcnow() >= expires_at:
            self._remove(path)
            return None
        return data

    def set(self, key: str, data: bytes) -> None:
        """Store *data* under *key*, replacing any previous entry.

        Raises:
            CacheError: If the entry cannot be written.
        """
        created_at = _utcnow()
        envelope = {
            # surrogateescape keeps arbitrary bytes representable as JSON text
            "data": data.decode("utf-8", errors="surrogateescape"),
            "created_at": created_at.isoformat(),
            "expires_at": (created_at + self.ttl).isoformat(),
        }
        try:
            _atomic_write(self.path_for(key), json.dumps(envelope))
        except OSError as exc:
            raise CacheError(f"Cannot write cache entry: {exc}") from exc

    def delete(self, key: str) -> None:
        """Remove the entry for *key*; a missing entry is not an error."""
        self._remove(self.path_for(key))

    def clear(self) -> int:
        """Remove every entry.

        Returns:
            The number of entries removed.
        """
        removed = 0
        for path in self._entry_files():
            if self._remove(path):
                removed += 1
        return removed

    def prune_expired(self) -> int:
        """Remove every expired or unparseable entry.

        Returns:
            The number of entries removed.
        """
        now = _utcnow()
        removed = 0
        for path in self._entry_files():
            try:
                entry = _decode_entry(path.read_bytes())
            except OSError:
                continue
            if entry is None or now >= entry[2]:
                if self._remove(path):
                    removed += 1
        return removed

    def stats(self) -> dict[str, Any]:
        """Return cache statistics.

        Returns:
            A ``dict`` with ``directory``, ``entries`` (valid entries),
            ``expired`` (expired or malformed entries still on disk),
            ``size_bytes``, and ``ttl_seconds``.
        """
        now = _utcnow()
        entries = expired = size = 0
        for path in self._entry_files():
            try:
                size += path.stat().st_size
                entry = _decode_entry(path.read_bytes())
            except OSError:
                continue
            if entry is None or now >= entry[2]:
                expired += 1
            else:
                entries += 1
        return {
            "directory": str(self._dir),
            "entries": entries,
            "expired": expired,
            "size_bytes": size,
            "ttl_seconds": self._config.ttl_seconds,
        }

    def _entry_files(self) -> list[Path]:
        try:
            return sorted(p for p in self._dir.glob(f"*{_SUFFIX}") if p.is_file())
        except OSError as exc:
            logger.debug("Cannot list cache directory %s: %s", self._dir, exc)
            return []

    def _remove(self, path: Path) -> bool:
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.debug("Cannot remove cache entry %s: %s", path.name, exc)
            return False
        return True


def _decode_entry(raw: bytes) -> Optional[tuple[bytes, datetime, datetime]]:
    """Parse an entry file, returning ``(data, created_at, expires_at)`` or ``None``."""
    try:
        envelope = json.loads(raw)
        data = envelope["data"]
        created_at = datetime.fromisoformat(envelope["created_at"])
        expires_at = datetime.fromisoformat(envelope["expires_at"])
        payload = data.encode("utf-8", errors="surrogateescape")
    except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError):
        return None
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return payload, created_at, expires_at
