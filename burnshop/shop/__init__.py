from .catalog import CATALOG, all_items, get_item
from .orchestrator import PurchaseOrchestrator
from .pricing import (
    FIB,
    INITIAL_SUPPLY,
    apply_discount,
    calculate_price,
    can_access_tier,
    clamp_engage_tier,
    purchase_price,
)
from .replay_guard import AntiReplayGuard
from .types import CatalogItem, PendingPurchase, PurchaseInitiation, PurchaseReceipt

__all__ = [
    "AntiReplayGuard",
    "CATALOG",
    "CatalogItem",
    "FIB",
    "INITIAL_SUPPLY",
    "PendingPurchase",
    "PurchaseInitiation",
    "PurchaseOrchestrator",
    "PurchaseReceipt",
    "all_items",
    "apply_discount",
    "calculate_price",
    "can_access_tier",
    "clamp_engage_tier",
    "get_item",
    "purchase_price",
]
