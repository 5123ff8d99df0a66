from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from burnshop.chain import (
    PENDING_SWEEP_INTERVAL_SECONDS,
    PriorityFeeEstimator,
    TokenDataService,
    TransactionBuilder,
    TransactionVerifier,
)
from burnshop.common import guarded_call, log_event, run_periodically
from burnshop.rpc import (
    CACHE_SWEEP_INTERVAL_SECONDS,
    ConnectionManager,
    EnhancedTransactionsClient,
    ResponseCache,
    RetryExecutor,
    RetryPolicy,
    SolanaRpcClient,
)
from burnshop.shop import AntiReplayGuard, PurchaseOrchestrator
from burnshop.storage import StorageGateway, StorageSettings

from .settings import AppSettings


@dataclass(slots=True)
class ServiceContainer:
    settings: AppSettings
    logger: logging.Logger
    storage: StorageGateway
    connections: ConnectionManager
    cache: ResponseCache
    enhanced: EnhancedTransactionsClient
    token_data: TokenDataService
    builder: TransactionBuilder
    verifier: TransactionVerifier
    orchestrator: PurchaseOrchestrator

    async def health(self) -> dict[str, Any]:
        report = await self.token_data.health_check(connections=self.connections)
        storage_health = await guarded_call(
            self.storage.healthcheck,
            logger=self.logger,
            event="storage_health_failed",
            message="Storage health probe failed",
        )
        report["details"]["storage"] = storage_health
        report["healthy"] = bool(report["healthy"] and storage_health is not None)
        report["details"]["transactions"] = self.builder.metrics.snapshot()
        return report

    def start_sweepers(self, *, stop_event: asyncio.Event) -> list[asyncio.Task[None]]:
        return [
            asyncio.create_task(
                run_periodically(
                    self.cache.sweep,
                    interval_seconds=CACHE_SWEEP_INTERVAL_SECONDS,
                    stop_event=stop_event,
                    logger=self.logger,
                    event="cache_sweep",
                )
            ),
            asyncio.create_task(
                run_periodically(
                    self.builder.sweep,
                    interval_seconds=PENDING_SWEEP_INTERVAL_SECONDS,
                    stop_event=stop_event,
                    logger=self.logger,
                    event="pending_transaction_sweep",
                )
            ),
            asyncio.create_task(
                run_periodically(
                    self.orchestrator.sweep_expired,
                    interval_seconds=PENDING_SWEEP_INTERVAL_SECONDS,
                    stop_event=stop_event,
                    logger=self.logger,
                    event="pending_purchase_sweep",
                )
            ),
            asyncio.create_task(
                run_periodically(
                    self.storage.signatures.sweep,
                    interval_seconds=CACHE_SWEEP_INTERVAL_SECONDS,
                    stop_event=stop_event,
                    logger=self.logger,
                    event="signature_ledger_sweep",
                )
            ),
        ]

    async def close(self) -> None:
        await self.enhanced.close()
        await self.connections.close()
        await self.storage.close()


async def build_services(
    *,
    settings: AppSettings,
    storage_settings: StorageSettings,
    logger: logging.Logger,
) -> ServiceContainer:
    storage = StorageGateway(storage_settings, logger)
    await storage.connect()

    connections = ConnectionManager(
        logger=logger,
        primary_url=settings.primary_rpc_url,
        backup_url=settings.backup_rpc_url or None,
        max_failures=settings.rpc_max_failures,
        cooldown_seconds=settings.rpc_failover_cooldown_seconds,
        timeout_seconds=settings.rpc_timeout_seconds,
    )
    retry = RetryExecutor(
        logger=logger,
        connections=connections,
        policy=RetryPolicy(
            max_attempts=settings.rpc_max_attempts,
            base_delay_seconds=settings.rpc_base_delay_seconds,
            max_delay_seconds=settings.rpc_max_delay_seconds,
            jitter_seconds=settings.rpc_jitter_seconds,
        ),
    )
    rpc = SolanaRpcClient(logger=logger, connections=connections)
    cache = ResponseCache()
    enhanced = EnhancedTransactionsClient(
        logger=logger,
        api_key=settings.helius_api_key,
        base_url=settings.helius_api_base_url,
        timeout_seconds=settings.rpc_timeout_seconds,
    )

    token_data = TokenDataService(
        logger=logger,
        rpc=rpc,
        retry=retry,
        cache=cache,
        token_mint=settings.token_mint,
        token_decimals=settings.token_decimals,
        initial_supply=settings.initial_supply,
        min_holder_balance=settings.min_holder_balance,
        enhanced=enhanced,
    )
    fees = PriorityFeeEstimator(
        logger=logger,
        rpc=rpc,
        retry=retry,
        cache=cache,
        token_mint=settings.token_mint,
        default_fee=settings.priority_fee_default,
        min_fee=settings.priority_fee_min,
        max_fee=settings.priority_fee_max,
        network_max_fee=settings.priority_fee_network_max,
    )
    builder = TransactionBuilder(
        logger=logger,
        rpc=rpc,
        retry=retry,
        fees=fees,
        token_mint=settings.token_mint,
        token_decimals=settings.token_decimals,
        audit=storage.audit,
    )
    verifier = TransactionVerifier(
        logger=logger,
        rpc=rpc,
        retry=retry,
        token_data=token_data,
        builder=builder,
        max_checks=settings.confirmation_max_checks,
        poll_seconds=settings.confirmation_poll_seconds,
    )
    orchestrator = PurchaseOrchestrator(
        logger=logger,
        token_data=token_data,
        builder=builder,
        verifier=verifier,
        guard=AntiReplayGuard(ledger=storage.signatures, logger=logger),
        pending_store=storage.pending_purchases,
        inventory=storage.inventory,
        audit=storage.audit,
        purchase_ttl_seconds=settings.purchase_ttl_seconds,
        max_pending_per_wallet=settings.max_pending_purchases_per_wallet,
        initial_supply=settings.initial_supply,
    )

    log_event(
        logger,
        level="info",
        event="services_ready",
        message="Burn shop services initialized",
        storage_backend=storage.backend,
        rpc_backup=bool(settings.backup_rpc_url),
        token_mint=settings.token_mint,
    )

    return ServiceContainer(
        settings=settings,
        logger=logger,
        storage=storage,
        connections=connections,
        cache=cache,
        enhanced=enhanced,
        token_data=token_data,
        builder=builder,
        verifier=verifier,
        orchestrator=orchestrator,
    )
