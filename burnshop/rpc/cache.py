from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

V = TypeVar("V")

# Seconds. Each data class tolerates a different amount of staleness.
CACHE_TTL = {
    "token_supply": 60.0,
    "token_balance": 30.0,
    "recent_burns": 120.0,
    "priority_fee": 10.0,
    "burn_history": 300.0,
}

CACHE_SWEEP_INTERVAL_SECONDS = 300.0


@dataclass(slots=True)
class CacheEntry(Generic[V]):
    value: V
    expires_at: float


class ResponseCache:
    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._entries: dict[str, CacheEntry[Any]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self._clock() > entry.expires_at:
            del self._entries[key]
            return None

        return entry.value

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + max(0.0, ttl_seconds))

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def sweep(self) -> int:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if now > entry.expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)
