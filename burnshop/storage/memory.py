from __future__ import annotations

import time
from typing import Any, Callable

DEFAULT_OWNED_ITEMS = ("skin_default",)


class InMemorySignatureLedger:
    """Time-windowed set of consumed signatures.

    ``consume`` has no suspension point between the membership test and the
    insert, so it is atomic on a single event loop.
    """

    def __init__(self, *, ttl_seconds: float, clock: Callable[[], float] = time.time) -> None:
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._used: dict[str, float] = {}

    async def consume(self, signature: str, *, purchase_id: str | None = None) -> bool:
        now = self._clock()
        expires_at = self._used.get(signature)
        if expires_at is not None and now <= expires_at:
            return False
        self._used[signature] = now + self._ttl_seconds
        return True

    async def contains(self, signature: str) -> bool:
        expires_at = self._used.get(signature)
        return expires_at is not None and self._clock() <= expires_at

    async def sweep(self) -> int:
        now = self._clock()
        expired = [signature for signature, expires_at in self._used.items() if now > expires_at]
        for signature in expired:
            del self._used[signature]
        return len(expired)

    def __len__(self) -> int:
        return len(self._used)


class InMemoryPendingPurchaseStore:
    """Pending purchases plus per-wallet slot reservations.

    ``reserve`` counts and claims a slot with no suspension point, so the
    per-wallet cap holds under concurrent initiations.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._records: dict[str, dict[str, Any]] = {}
        self._reservations: dict[str, tuple[str, float]] = {}

    async def reserve(self, wallet: str, purchase_id: str, *, expires_at: float, limit: int) -> bool:
        now = self._clock()
        held = sum(
            1
            for record in self._records.values()
            if record.get("wallet") == wallet and float(record.get("expiresAt", 0)) >= now
        )
        held += sum(
            1
            for owner, reserved_until in self._reservations.values()
            if owner == wallet and reserved_until >= now
        )
        if held >= limit:
            return False
        self._reservations[purchase_id] = (wallet, expires_at)
        return True

    async def release(self, wallet: str, purchase_id: str) -> None:
        self._reservations.pop(purchase_id, None)

    async def save(self, record: dict[str, Any], *, ttl_seconds: float) -> None:
        purchase_id = str(record["purchaseId"])
        self._reservations.pop(purchase_id, None)
        self._records[purchase_id] = dict(record)

    async def get(self, purchase_id: str) -> dict[str, Any] | None:
        record = self._records.get(purchase_id)
        return dict(record) if record is not None else None

    async def pop(self, purchase_id: str) -> dict[str, Any] | None:
        return self._records.pop(purchase_id, None)

    async def delete(self, purchase_id: str) -> bool:
        return self._records.pop(purchase_id, None) is not None

    async def list_for_wallet(self, wallet: str) -> list[dict[str, Any]]:
        now = self._clock()
        records = [
            dict(record)
            for record in self._records.values()
            if record.get("wallet") == wallet and float(record.get("expiresAt", 0)) >= now
        ]
        records.sort(key=lambda item: float(item.get("createdAt", 0)))
        return records

    async def sweep(self) -> int:
        now = self._clock()
        expired = [
            purchase_id
            for purchase_id, record in self._records.items()
            if now > float(record.get("expiresAt", 0))
        ]
        for purchase_id in expired:
            del self._records[purchase_id]
        for purchase_id in [key for key, (_, until) in self._reservations.items() if now > until]:
            del self._reservations[purchase_id]
        return len(expired)

    def __len__(self) -> int:
        return len(self._records)


class InMemoryInventory:
    def __init__(self, *, default_items: tuple[str, ...] = DEFAULT_OWNED_ITEMS) -> None:
        self._default_items = default_items
        self._items: dict[str, set[str]] = {}
        self._xp: dict[str, int] = {}

    async def get_inventory(self, wallet: str) -> list[str]:
        owned = set(self._default_items) | self._items.get(wallet, set())
        return sorted(owned)

    async def get_xp(self, wallet: str) -> int:
        return self._xp.get(wallet, 0)

    async def grant_item(self, wallet: str, item_id: str, *, xp: int, signature: str) -> None:
        self._items.setdefault(wallet, set()).add(item_id)
        self._xp[wallet] = self._xp.get(wallet, 0) + max(0, int(xp))
