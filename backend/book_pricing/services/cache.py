import logging
import os
import threading
import time
from typing import Callable, Dict, Generic, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = float(os.getenv("MATRIX_CACHE_TTL_SECONDS", "300"))

V = TypeVar("V")


class TTLCache(Generic[V]):
    """Process-local read cache. A ttl of 0 keeps entries until cleared."""

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, Tuple[float, V]] = {}

    def get(self, key: str) -> Optional[V]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if self.ttl_seconds and self._clock() - stored_at > self.ttl_seconds:
                del self._entries[key]
                logger.debug("Cache entry expired key=%s", key)
                return None
            return value

    def put(self, key: str, value: V) -> None:
        with self._lock:
            self._entries[key] = (self._clock(), value)

    def clear(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
