from __future__ import annotations

import logging
import os
import time
from typing import Any, Callable

from redis import asyncio as redis
from redis.asyncio.client import Redis

from burnshop.common import log_event

from .audit import FirestoreAuditSink, LoggingAuditSink
from .memory import InMemoryInventory, InMemoryPendingPurchaseStore, InMemorySignatureLedger
from .redis_ops import RedisInventory, RedisPendingPurchaseStore, RedisSignatureLedger
from .settings import StorageSettings


class StorageGateway:
    """Owns the backing stores and their lifecycle.

    Redis-backed stores are used when ``REDIS_URL`` is set, in-memory ones
    otherwise. The audit sink is independent of the Redis choice.
    """

    def __init__(
        self,
        settings: StorageSettings,
        logger: logging.Logger,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings
        self._logger = logger
        self._clock = clock
        self._redis: Redis | None = None
        self.signatures: Any = None
        self.pending_purchases: Any = None
        self.inventory: Any = None
        self.audit: Any = LoggingAuditSink(logger)

    @property
    def backend(self) -> str:
        return "redis" if self._redis is not None else "memory"

    async def connect(self) -> None:
        if self.settings.redis_enabled:
            self._redis = redis.from_url(self.settings.redis_url, decode_responses=True)
            await self._redis.ping()
            log_event(
                self._logger,
                level="info",
                event="redis_connected",
                message="Connected to Redis",
            )
            self.signatures = RedisSignatureLedger(
                self._redis,
                prefix=self.settings.used_signature_prefix,
                ttl_seconds=self.settings.used_signature_ttl_seconds,
                logger=self._logger,
            )
            self.pending_purchases = RedisPendingPurchaseStore(
                self._redis,
                prefix=self.settings.pending_purchase_prefix,
                clock=self._clock,
            )
            self.inventory = RedisInventory(self._redis, prefix=self.settings.inventory_prefix)
        else:
            log_event(
                self._logger,
                level="warning",
                event="storage_in_memory",
                message="REDIS_URL not set; purchase state will not survive a restart",
            )
            self.signatures = InMemorySignatureLedger(
                ttl_seconds=self.settings.used_signature_ttl_seconds,
                clock=self._clock,
            )
            self.pending_purchases = InMemoryPendingPurchaseStore(clock=self._clock)
            self.inventory = InMemoryInventory()

        if self.settings.audit_backend == "firestore":
            firebase_credentials = os.getenv("FIREBASE_CREDENTIALS")
            if firebase_credentials and not os.getenv("GOOGLE_APPLICATION_CREDENTIALS"):
                os.environ["GOOGLE_APPLICATION_CREDENTIALS"] = firebase_credentials

            sink = FirestoreAuditSink(
                logger=self._logger,
                collection=self.settings.audit_collection,
                project_id=self.settings.firestore_project_id,
            )
            sink.connect()
            self.audit = sink

    async def healthcheck(self) -> dict[str, Any]:
        if self._redis is not None:
            await self._redis.ping()
        return {"backend": self.backend, "audit": self.settings.audit_backend}

    async def close(self) -> None:
        if isinstance(self.audit, FirestoreAuditSink):
            self.audit.close()

        if self._redis is not None:
            close = getattr(self._redis, "aclose", None)
            if close:
                await close()
            else:
                await self._redis.close()
            self._redis = None
