"""Translation caching utilities."""

import hashlib
import logging
import threading
import time
from pathlib import Path
from typing import Optional, Dict, Any, List, Union

import diskcache

from layoutran.core.exceptions import CacheError

logger = logging.getLogger(__name__)


class TranslationCache:
    """
    Shared cache of final translated texts.

    Entries are keyed by (source text, target language) only, so every
    document and every backend reuses them. Memory mode is guarded by a
    lock; diskcache is process- and thread-safe on its own. Cache errors
    are logged and never raised from get/set.
    """

    def __init__(
        self,
        cache_dir: Optional[Union[str, Path]] = None,
        fallback_to_memory: bool = True,
        ttl: Optional[int] = 604800  # 7 days
    ):
        """
        Args:
            cache_dir: Directory for a disk cache; None keeps entries in memory
            fallback_to_memory: Use memory if the disk cache cannot be opened
            ttl: Time-to-live in seconds; None for no expiration
        """
        self.cache_dir = Path(cache_dir) if cache_dir else None
        self.ttl = ttl
        self.use_disk = False
        self.memory_cache: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()
        self._cache_errors: List[str] = []
        self.hits = 0
        self.misses = 0

        if self.cache_dir is not None:
            try:
                self.cache_dir.mkdir(parents=True, exist_ok=True)
                self.disk_cache = diskcache.Cache(str(self.cache_dir))
                self.use_disk = True
                logger.debug(f"Using disk cache at {self.cache_dir} (TTL: {ttl}s)")
            except Exception as e:
                error_msg = f"Failed to initialize disk cache: {e}"
                self._cache_errors.append(error_msg)
                if not fallback_to_memory:
                    raise CacheError(error_msg, cache_type="disk", operation="init")
                logger.warning(f"{error_msg}. Falling back to memory cache.")

    @staticmethod
    def make_key(text: str, target_lang: str) -> str:
        """Generate cache key from source text and target language."""
        key_str = f"{text}\x00{(target_lang or '').lower()}"
        return hashlib.sha256(key_str.encode("utf-8")).hexdigest()

    def get(self, text: str, target_lang: str) -> Optional[str]:
        """Return the cached translation or None (never raises)."""
        key = self.make_key(text, target_lang)
        try:
            if self.use_disk:
                result = self.disk_cache.get(key)
            else:
                with self._lock:
                    result = self._memory_get(key)
        except Exception as e:
            self._record_error(f"Cache get failed: {e}")
            result = None

        with self._lock:
            if result is None:
                self.misses += 1
            else:
                self.hits += 1
        return result

    def _memory_get(self, key: str) -> Optional[str]:
        entry = self.memory_cache.get(key)
        if entry is None:
            return None
        if self.ttl and time.time() - entry["timestamp"] > self.ttl:
            del self.memory_cache[key]
            return None
        return entry["value"]

    def set(self, text: str, target_lang: str, translation: str) -> None:
        """Store a translation (never raises)."""
        key = self.make_key(text, target_lang)
        try:
            if self.use_disk:
                self.disk_cache.set(key, translation, expire=self.ttl)
                return
        except Exception as e:
            self._record_error(f"Cache set failed: {e}")
        with self._lock:
            self.memory_cache[key] = {"value": translation, "timestamp": time.time()}

    def _record_error(self, message: str) -> None:
        with self._lock:
            self._cache_errors.append(message)
        logger.warning(f"{message}. Continuing without cache.")

    def clear(self) -> None:
        """Clear all cache."""
        with self._lock:
            self.memory_cache.clear()
        if self.use_disk:
            self.disk_cache.clear()

    def close(self) -> None:
        if self.use_disk:
            self.disk_cache.close()

    def __len__(self) -> int:
        if self.use_disk:
            return len(self.disk_cache)
        return len(self.memory_cache)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        stats: Dict[str, Any] = {
            "type": "disk" if self.use_disk else "memory",
            "hits": self.hits,
            "misses": self.misses,
            "errors": len(self._cache_errors),
        }
        try:
            stats["size"] = len(self)
            if self.use_disk:
                stats["location"] = str(self.cache_dir)
        except Exception as e:
            stats["error"] = str(e)

        if self._cache_errors:
            stats["recent_errors"] = self._cache_errors[-5:]
        return stats
