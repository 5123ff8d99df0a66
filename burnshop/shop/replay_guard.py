from __future__ import annotations

import logging
from typing import Protocol

from burnshop.common import log_event, short_signature
from burnshop.errors import DoubleSpendError


class SignatureLedger(Protocol):
    async def consume(self, signature: str, *, purchase_id: str | None = None) -> bool: ...

    async def contains(self, signature: str) -> bool: ...


class AntiReplayGuard:
    def __init__(self, *, ledger: SignatureLedger, logger: logging.Logger) -> None:
        self._ledger = ledger
        self._logger = logger

    async def consume(self, signature: str, *, purchase_id: str | None = None) -> None:
        if not await self._ledger.consume(signature, purchase_id=purchase_id):
            log_event(
                self._logger,
                level="warning",
                event="double_spend_blocked",
                message="Transaction signature already used",
                signature=short_signature(signature),
                purchase_id=purchase_id,
            )
            raise DoubleSpendError("Transaction signature already used")

    async def is_used(self, signature: str) -> bool:
        return await self._ledger.contains(signature)
