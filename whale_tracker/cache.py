import json
import threading
import time
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

DEFAULT_TTL = 60.0  # seconds


def make_key(endpoint: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """Stable key for (endpoint, params); parameter order does not matter."""
    params = {k: v for k, v in (params or {}).items() if v is not None}
    return f"{endpoint}?{json.dumps(params, sort_keys=True, default=str)}"


class ResponseCache:
    """
    Short-lived key -> value store.
    Entries older than `ttl` are treated as misses and dropped on read.
    """

    def __init__(self, ttl: float = DEFAULT_TTL, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if self._clock() - stored_at >= self.ttl:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = (self._clock(), value)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
