import threading
import time
from typing import Callable, Hashable, TypeVar

T = TypeVar("T")


class ReportCache:
    """Per-owner report cache with a fixed time-to-live.

    A ``ttl_secs`` of zero or less disables caching; ``get_or_compute`` then
    always calls ``compute``. Each owner has a generation counter bumped by
    ``invalidate_owner``; a value computed across an invalidation is returned
    but not stored.
    """

    def __init__(
        self, ttl_secs: float, *, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.ttl_secs = ttl_secs
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[tuple[int, str, Hashable], tuple[float, object]] = {}
        self._generations: dict[int, int] = {}
        self._epoch = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _generation(self, owner_id: int) -> tuple[int, int]:
        return self._epoch, self._generations.get(owner_id, 0)

    def _evict_expired(self, now: float) -> None:
        for key in [k for k, (expires, _) in self._entries.items() if expires <= now]:
            del self._entries[key]

    def get_or_compute(
        self, owner_id: int, report: str, params: Hashable, compute: Callable[[], T]
    ) -> T:
        if self.ttl_secs <= 0:
            return compute()

        key = (owner_id, report, params)
        with self._lock:
            entry = self._entries.get(key)
            if entry and entry[0] > self._clock():
                return entry[1]  # type: ignore[return-value]
            generation = self._generation(owner_id)

        value = compute()
        with self._lock:
            now = self._clock()
            self._evict_expired(now)
            if self._generation(owner_id) == generation:
                self._entries[key] = (now + self.ttl_secs, value)
        return value

    def invalidate_owner(self, owner_id: int) -> None:
        with self._lock:
            self._generations[owner_id] = self._generations.get(owner_id, 0) + 1
            for key in [k for k in self._entries if k[0] == owner_id]:
                del self._entries[key]

    def clear(self) -> None:
        with self._lock:
            self._epoch += 1
            self._entries.clear()
