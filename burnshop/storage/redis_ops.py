from __future__ import annotations

import json
import logging
import math
import time
from typing import Any, Callable

from redis.asyncio.client import Redis

from burnshop.common import log_event, short_signature

from .memory import DEFAULT_OWNED_ITEMS


def _dumps(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"), default=str)


def _loads(raw: Any) -> dict[str, Any] | None:
    if raw is None:
        return None
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return None
    return parsed if isinstance(parsed, dict) else None


class RedisSignatureLedger:
    def __init__(
        self,
        redis_client: Redis,
        *,
        prefix: str,
        ttl_seconds: int,
        logger: logging.Logger,
    ) -> None:
        self._redis = redis_client
        self._prefix = prefix
        self._ttl_seconds = max(1, int(ttl_seconds))
        self._logger = logger

    def _key(self, signature: str) -> str:
        return f"{self._prefix}:{signature}"

    async def consume(self, signature: str, *, purchase_id: str | None = None) -> bool:
        acquired = await self._redis.set(
            self._key(signature),
            purchase_id or "1",
            ex=self._ttl_seconds,
            nx=True,
        )
        if not acquired:
            log_event(
                self._logger,
                level="warning",
                event="signature_reuse",
                message="Signature already present in ledger",
                signature=short_signature(signature),
            )
        return bool(acquired)

    async def contains(self, signature: str) -> bool:
        return bool(await self._redis.exists(self._key(signature)))

    async def sweep(self) -> int:
        # Entries expire through their own TTL.
        return 0


class RedisPendingPurchaseStore:
    def __init__(
        self,
        redis_client: Redis,
        *,
        prefix: str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._redis = redis_client
        self._prefix = prefix
        self._clock = clock

    def _record_key(self, purchase_id: str) -> str:
        return f"{self._prefix}:{purchase_id}"

    def _wallet_key(self, wallet: str) -> str:
        return f"{self._prefix}:wallet:{wallet}"

    async def reserve(self, wallet: str, purchase_id: str, *, expires_at: float, limit: int) -> bool:
        wallet_key = self._wallet_key(wallet)
        now = self._clock()

        pipeline = self._redis.pipeline(transaction=True)
        pipeline.zremrangebyscore(wallet_key, "-inf", f"({now}")
        pipeline.zadd(wallet_key, {purchase_id: float(expires_at)})
        pipeline.zcard(wallet_key)
        pipeline.expire(wallet_key, max(1, math.ceil(expires_at - now)))
        _, _, held, _ = await pipeline.execute()

        if int(held) > limit:
            await self._redis.zrem(wallet_key, purchase_id)
            return False
        return True

    async def release(self, wallet: str, purchase_id: str) -> None:
        await self._redis.zrem(self._wallet_key(wallet), purchase_id)

    async def save(self, record: dict[str, Any], *, ttl_seconds: float) -> None:
        purchase_id = str(record["purchaseId"])
        wallet = str(record["wallet"])
        ttl = max(1, math.ceil(ttl_seconds))

        pipeline = self._redis.pipeline(transaction=True)
        pipeline.set(self._record_key(purchase_id), _dumps(record), ex=ttl)
        pipeline.zadd(self._wallet_key(wallet), {purchase_id: float(record["expiresAt"])})
        pipeline.expire(self._wallet_key(wallet), ttl)
        await pipeline.execute()

    async def get(self, purchase_id: str) -> dict[str, Any] | None:
        return _loads(await self._redis.get(self._record_key(purchase_id)))

    async def pop(self, purchase_id: str) -> dict[str, Any] | None:
        pipeline = self._redis.pipeline(transaction=True)
        pipeline.get(self._record_key(purchase_id))
        pipeline.delete(self._record_key(purchase_id))
        raw, deleted = await pipeline.execute()
        if not deleted:
            return None

        record = _loads(raw)
        if record is not None and record.get("wallet"):
            await self._redis.zrem(self._wallet_key(str(record["wallet"])), purchase_id)
        return record

    async def delete(self, purchase_id: str) -> bool:
        return await self.pop(purchase_id) is not None

    async def list_for_wallet(self, wallet: str) -> list[dict[str, Any]]:
        wallet_key = self._wallet_key(wallet)
        await self._redis.zremrangebyscore(wallet_key, "-inf", f"({self._clock()}")
        purchase_ids = await self._redis.zrange(wallet_key, 0, -1)
        if not purchase_ids:
            return []

        raw_records = await self._redis.mget([self._record_key(str(item)) for item in purchase_ids])
        records = [record for record in (_loads(raw) for raw in raw_records) if record is not None]
        records.sort(key=lambda item: float(item.get("createdAt", 0)))
        return records

    async def sweep(self) -> int:
        removed = 0
        now = self._clock()
        async for wallet_key in self._redis.scan_iter(match=f"{self._prefix}:wallet:*", count=500):
            removed += int(await self._redis.zremrangebyscore(wallet_key, "-inf", f"({now}"))
        return removed


class RedisInventory:
    def __init__(
        self,
        redis_client: Redis,
        *,
        prefix: str,
        default_items: tuple[str, ...] = DEFAULT_OWNED_ITEMS,
    ) -> None:
        self._redis = redis_client
        self._prefix = prefix
        self._default_items = default_items

    async def get_inventory(self, wallet: str) -> list[str]:
        owned = await self._redis.smembers(f"{self._prefix}:items:{wallet}")
        return sorted(set(self._default_items) | {str(item) for item in owned})

    async def get_xp(self, wallet: str) -> int:
        raw = await self._redis.hget(f"{self._prefix}:xp", wallet)
        return int(raw) if raw is not None else 0

    async def grant_item(self, wallet: str, item_id: str, *, xp: int, signature: str) -> None:
        pipeline = self._redis.pipeline(transaction=True)
        pipeline.sadd(f"{self._prefix}:items:{wallet}", item_id)
        pipeline.hincrby(f"{self._prefix}:xp", wallet, max(0, int(xp)))
        await pipeline.execute()
