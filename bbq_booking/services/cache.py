"""Small in-process TTL caches for slow-changing reference data.

Each data class gets its own cache instance so scope and invalidation stay
explicit. Nothing on the authoritative reserve path reads from these.
"""
import threading
import time


class TTLCache:
    """Bounded TTL cache; expired entries are purged on every write."""

    def __init__(self, ttl_seconds: float, maxsize: int = 1024):
        self.ttl_seconds = ttl_seconds
        self.maxsize = maxsize
        self._data: dict = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def get(self, key):
        with self._lock:
            hit = self._data.get(key)
            if hit is None:
                return None
            expires_at, value = hit
            if time.monotonic() >= expires_at:
                del self._data[key]
                return None
            return value

    def set(self, key, value) -> None:
        if self.ttl_seconds <= 0:
            return
        now = time.monotonic()
        with self._lock:
            for k in [k for k, (expires_at, _) in self._data.items() if now >= expires_at]:
                del self._data[k]
            self._data.pop(key, None)
            # insertion order is expiry order, so the first key is the oldest
            while len(self._data) >= self.maxsize:
                del self._data[next(iter(self._data))]
            self._data[key] = (now + self.ttl_seconds, value)

    def invalidate(self, key=None) -> None:
        with self._lock:
            if key is None:
                self._data.clear()
            else:
                self._data.pop(key, None)
