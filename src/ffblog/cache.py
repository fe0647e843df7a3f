"""
Key/value cache with a TTL and two drivers.

- ``array``: a process-local dict shared by every :class:`Cache` instance.
- ``file``: one JSON file per key under ``cache_dir``, named after the
  SHA-256 of the key and written atomically.

Values must be JSON-serializable. Dates are stored as ISO-8601 strings
and objects exposing ``to_dict()`` are stored as that dict.
"""

import hashlib
import json
import logging
import os
import tempfile
import threading
import time
from datetime import date, datetime

from .exceptions import CacheError

logger = logging.getLogger(__name__)

DRIVERS = ("array", "file")

# Shared in-memory store for the array driver: key -> (value, expires_at)
_array_store = {}

# Per-key locks used by remember(); guarded by _locks_guard
_locks = {}
_locks_guard = threading.Lock()


def _valid_expiry(value):
    """An ``expires_at`` field is ``None`` or a number of epoch seconds."""
    return value is None or (isinstance(value, (int, float)) and not isinstance(value, bool))


def _key_lock(key):
    with _locks_guard:
        lock = _locks.get(key)
        if lock is None:
            lock = _locks[key] = threading.Lock()
        return lock


def prepare_value(value):
    """Convert ``value`` into something :func:`json.dumps` accepts.

    :raises CacheError: If the value contains an unsupported object.
    """
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if hasattr(value, "to_dict"):
        return prepare_value(value.to_dict())
    if isinstance(value, dict):
        return {str(k): prepare_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [prepare_value(v) for v in value]
    raise CacheError(f"Cache values must be JSON-serializable, got {type(value).__name__}")


class Cache:
    """Cache facade over the selected driver.

    :param driver: ``"array"`` or ``"file"``.
    :type driver: str
    :param cache_dir: Directory for the file driver; defaults to a
        ``ff_cache`` folder in the system temp directory.
    :type cache_dir: str or None
    :raises ValueError: If the driver name is unknown.
    """

    def __init__(self, driver="array", cache_dir=None):
        if driver not in DRIVERS:
            raise ValueError(f"Unknown cache driver: {driver}")
        self.driver = driver
        self.cache_dir = cache_dir or os.path.join(tempfile.gettempdir(), "ff_cache")
        if driver == "file":
            os.makedirs(self.cache_dir, exist_ok=True)

    # -------------------------------
    # PUBLIC API
    # -------------------------------
    def get(self, key, default=None):
        """Return the cached value for ``key`` or ``default`` when missing/expired."""
        item = self._guarded_read(key, "get")
        return default if item is None else item[0]

    def put(self, key, value, seconds=0):
        """Store ``value`` under ``key`` for ``seconds`` (0 means forever)."""
        payload = prepare_value(value)
        expires_at = time.time() + seconds if seconds and seconds > 0 else None
        try:
            self._write(key, payload, expires_at)
        except (OSError, TypeError, ValueError) as exc:
            logger.error("Cache put failed", extra={"context": {"key": key, "driver": self.driver, "error": str(exc)}})
            raise CacheError(f"Cache put failed: {exc}") from exc

    def has(self, key):
        """Return ``True`` if ``key`` holds an unexpired value; never raises."""
        try:
            return self._read(key) is not None
        except (OSError, ValueError, TypeError) as exc:
            logger.error("Cache has failed", extra={"context": {"key": key, "driver": self.driver, "error": str(exc)}})
            return False

    def forget(self, key):
        """Remove ``key`` if present."""
        try:
            self._delete(key)
        except OSError as exc:
            logger.error("Cache forget failed", extra={"context": {"key": key, "driver": self.driver, "error": str(exc)}})
            raise CacheError(f"Cache forget failed: {exc}") from exc

    def flush(self):
        """Remove every entry for this driver."""
        if self.driver == "array":
            _array_store.clear()
            return
        try:
            for name in os.listdir(self.cache_dir):
                if name.endswith(".cache"):
                    os.remove(os.path.join(self.cache_dir, name))
        except OSError as exc:
            logger.error("Cache flush failed", extra={"context": {"cache_dir": self.cache_dir, "error": str(exc)}})
            raise CacheError(f"Cache flush failed: {exc}") from exc

    def remember(self, key, seconds, callback):
        """Return the cached value or compute, store and return it.

        The callback runs under a per-key lock and the cache is re-checked
        after acquiring it, so concurrent callers compute the value once.
        """
        item = self._guarded_read(key, "remember")
        if item is not None:
            return item[0]

        with _key_lock(key):
            item = self._guarded_read(key, "remember")
            if item is not None:
                return item[0]
            value = callback()
            self.put(key, value, seconds)
            return prepare_value(value)

    def increment(self, key, amount=1, seconds=0):
        """Add ``amount`` to an integer entry (missing counts as 0) and return it."""
        with _key_lock(key):
            current = self.get(key, 0)
            try:
                current = int(current)
            except (TypeError, ValueError):
                current = 0
            current += amount
            self.put(key, current, seconds)
            return current

    # -------------------------------
    # DRIVERS
    # -------------------------------
    def path_for(self, key):
        """File used by the file driver for ``key``."""
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return os.path.join(self.cache_dir, f"{digest}.cache")

    def _read(self, key):
        """Return ``(value, expires_at)`` or ``None``; expired entries are removed."""
        if self.driver == "array":
            item = _array_store.get(key)
            if item is None:
                return None
            if item[1] is not None and time.time() > item[1]:
                _array_store.pop(key, None)
                return None
            return item

        path = self.path_for(key)
        if not os.path.exists(path):
            return None
        with open(path, "rb") as f:
            raw = f.read()
        try:
            data = json.loads(raw.decode("utf-8"))
        except ValueError:
            # Covers both undecodable bytes and malformed JSON
            data = None
        if not isinstance(data, dict) or "value" not in data or not _valid_expiry(data.get("expires_at", False)):
            logger.warning("Discarding corrupt cache file", extra={"context": {"key": key}})
            self._remove_file(path)
            return None
        if data["expires_at"] is not None and time.time() > data["expires_at"]:
            self._remove_file(path)
            return None
        return data["value"], data["expires_at"]

    def _guarded_read(self, key, operation):
        """Read ``key``, logging driver failures and re-raising them as :class:`CacheError`."""
        try:
            return self._read(key)
        except (OSError, ValueError, TypeError) as exc:
            logger.error(
                "Cache %s failed", operation, extra={"context": {"key": key, "driver": self.driver, "error": str(exc)}}
            )
            raise CacheError(f"Cache {operation} failed: {exc}") from exc

    def _write(self, key, payload, expires_at):
        if self.driver == "array":
            _array_store[key] = (payload, expires_at)
            return

        # Write to a sibling temp file and rename so readers never see a partial file
        fd, tmp_path = tempfile.mkstemp(dir=self.cache_dir, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as tmp_f:
                json.dump({"value": payload, "expires_at": expires_at}, tmp_f, ensure_ascii=False)
            os.replace(tmp_path, self.path_for(key))
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)

    def _delete(self, key):
        if self.driver == "array":
            _array_store.pop(key, None)
            return
        path = self.path_for(key)
        if os.path.exists(path):
            os.remove(path)

    def _remove_file(self, path):
        try:
            os.remove(path)
        except OSError as exc:
            logger.error("Cache expired file unlink failed", extra={"context": {"file": path, "error": str(exc)}})
