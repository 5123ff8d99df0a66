from __future__ import annotations

import asyncio
import unittest

from burnshop.errors import DoubleSpendError
from burnshop.shop import AntiReplayGuard
from burnshop.storage import InMemorySignatureLedger

from tests.fakes import LOGGER, FakeClock, new_signature


class AntiReplayGuardTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.clock = FakeClock()
        self.ledger = InMemorySignatureLedger(ttl_seconds=3600, clock=self.clock)
        self.guard = AntiReplayGuard(ledger=self.ledger, logger=LOGGER)

    async def test_second_consume_always_fails(self) -> None:
        for _ in range(5):
            signature = new_signature()
            await self.guard.consume(signature, purchase_id="first")
            with self.assertRaises(DoubleSpendError):
                await self.guard.consume(signature, purchase_id="other")
            self.assertTrue(await self.guard.is_used(signature))

    async def test_concurrent_consumers_of_one_signature_admit_exactly_one(self) -> None:
        signature = new_signature()
        outcomes = await asyncio.gather(
            *(self.guard.consume(signature, purchase_id=str(index)) for index in range(10)),
            return_exceptions=True,
        )

        failures = [outcome for outcome in outcomes if isinstance(outcome, DoubleSpendError)]
        self.assertEqual(len(failures), 9)

    async def test_signatures_age_out_after_ttl(self) -> None:
        signature = new_signature()
        await self.guard.consume(signature)

        self.clock.advance(3601)
        self.assertEqual(await self.ledger.sweep(), 1)
        self.assertFalse(await self.guard.is_used(signature))


if __name__ == "__main__":
    unittest.main()
