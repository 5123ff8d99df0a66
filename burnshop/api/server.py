from __future__ import annotations

import json
import logging
import math
from typing import Any, Awaitable, Callable

from aiohttp import web

from burnshop.common import log_event
from burnshop.errors import (
    BurnShopError,
    DoubleSpendError,
    ExpiredError,
    InsufficientBalanceError,
    NotFoundError,
    PurchaseLockoutError,
    RpcFatalError,
    RpcTransientError,
    ValidationError,
    VerificationError,
)
from burnshop.shop import PurchaseOrchestrator, clamp_engage_tier
from burnshop.shop.pricing import MAX_ENGAGE_TIER

ORCHESTRATOR_KEY = web.AppKey("orchestrator", PurchaseOrchestrator)
HEALTH_KEY = web.AppKey("health", object)
LOGGER_KEY = web.AppKey("logger", logging.Logger)

# Ordered: subclasses before their bases.
ERROR_STATUSES: tuple[tuple[type[BurnShopError], int], ...] = (
    (PurchaseLockoutError, 429),
    (ValidationError, 400),
    (InsufficientBalanceError, 402),
    (NotFoundError, 404),
    (DoubleSpendError, 409),
    (ExpiredError, 410),
    (VerificationError, 422),
    (RpcTransientError, 503),
    (RpcFatalError, 500),
)


def status_for(error: BurnShopError) -> int:
    for error_type, status in ERROR_STATUSES:
        if isinstance(error, error_type):
            return status
    return 500


def error_response(error: BurnShopError) -> web.Response:
    headers: dict[str, str] = {}
    if error.retry_after is not None:
        headers["Retry-After"] = str(max(0, math.ceil(error.retry_after)))
    return web.json_response(error.to_dict(), status=status_for(error), headers=headers)


@web.middleware
async def error_middleware(
    request: web.Request,
    handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
) -> web.StreamResponse:
    try:
        return await handler(request)
    except BurnShopError as error:
        log_event(
            request.app[LOGGER_KEY],
            level="warning" if status_for(error) < 500 else "error",
            event="api_request_failed",
            message=error.message,
            path=request.path,
            code=error.code,
        )
        return error_response(error)


async def _read_json(request: web.Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as error:
        raise ValidationError("Request body must be valid JSON") from error
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def _engage_tier(value: Any) -> int:
    try:
        return clamp_engage_tier(int(value or 0))
    except (TypeError, ValueError) as error:
        raise ValidationError(f"engageTier must be an integer between 0 and {MAX_ENGAGE_TIER}") from error


def _required_str(body: dict[str, Any], field: str) -> str:
    value = body.get(field)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    return value.strip()


async def handle_health(request: web.Request) -> web.Response:
    health = await request.app[HEALTH_KEY]()
    return web.json_response(health, status=200 if health.get("healthy") else 503)


async def handle_catalog(request: web.Request) -> web.Response:
    orchestrator = request.app[ORCHESTRATOR_KEY]
    engage_tier = _engage_tier(request.query.get("engageTier"))
    items = await orchestrator.get_catalog_with_prices(engage_tier)
    return web.json_response({"items": items, "engageTier": engage_tier})


async def handle_inventory(request: web.Request) -> web.Response:
    wallet = request.query.get("wallet", "").strip()
    if not wallet:
        raise ValidationError("wallet is required")
    items = await request.app[ORCHESTRATOR_KEY].get_inventory(wallet)
    return web.json_response({"wallet": wallet, "items": items})


async def handle_purchase(request: web.Request) -> web.Response:
    body = await _read_json(request)
    initiation = await request.app[ORCHESTRATOR_KEY].initiate_purchase(
        _required_str(body, "wallet"),
        _required_str(body, "itemId"),
        _engage_tier(body.get("engageTier")),
    )
    return web.json_response(initiation.to_dict())


async def handle_confirm(request: web.Request) -> web.Response:
    body = await _read_json(request)
    receipt = await request.app[ORCHESTRATOR_KEY].confirm_purchase(
        _required_str(body, "purchaseId"),
        _required_str(body, "signature"),
    )
    return web.json_response(receipt.to_dict())


def create_app(
    *,
    orchestrator: PurchaseOrchestrator,
    health: Callable[[], Awaitable[dict[str, Any]]],
    logger: logging.Logger,
) -> web.Application:
    app = web.Application(middlewares=[error_middleware])
    app[ORCHESTRATOR_KEY] = orchestrator
    app[HEALTH_KEY] = health
    app[LOGGER_KEY] = logger
    app.router.add_get("/api/health", handle_health)
    app.router.add_get("/api/shop/catalog", handle_catalog)
    app.router.add_get("/api/shop/inventory", handle_inventory)
    app.router.add_post("/api/shop/purchase", handle_purchase)
    app.router.add_post("/api/shop/purchase/confirm", handle_confirm)
    return app
