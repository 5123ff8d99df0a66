from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(slots=True, frozen=True)
class CatalogItem:
    id: str
    name: str
    tier: int
    layer: str
    default: bool = False

    def summary(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "tier": self.tier}

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "tier": self.tier,
            "layer": self.layer,
        }
        if self.default:
            payload["default"] = True
        return payload


@dataclass(slots=True, frozen=True)
class PendingPurchase:
    purchase_id: str
    wallet: str
    item: CatalogItem
    price: int
    blockhash: str
    last_valid_block_height: int | None
    transaction_id: str
    created_at: float
    expires_at: float

    @property
    def item_id(self) -> str:
        return self.item.id

    def to_dict(self) -> dict[str, Any]:
        return {
            "purchaseId": self.purchase_id,
            "wallet": self.wallet,
            "itemId": self.item.id,
            "item": self.item.to_dict(),
            "price": self.price,
            "blockhash": self.blockhash,
            "lastValidBlockHeight": self.last_valid_block_height,
            "transactionId": self.transaction_id,
            "createdAt": self.created_at,
            "expiresAt": self.expires_at,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "PendingPurchase":
        item = payload.get("item") or {}
        last_valid = payload.get("lastValidBlockHeight")
        return cls(
            purchase_id=str(payload["purchaseId"]),
            wallet=str(payload["wallet"]),
            item=CatalogItem(
                id=str(item.get("id") or payload.get("itemId") or ""),
                name=str(item.get("name") or ""),
                tier=int(item.get("tier") or 0),
                layer=str(item.get("layer") or ""),
                default=bool(item.get("default", False)),
            ),
            price=int(payload["price"]),
            blockhash=str(payload.get("blockhash") or ""),
            last_valid_block_height=int(last_valid) if last_valid is not None else None,
            transaction_id=str(payload.get("transactionId") or ""),
            created_at=float(payload["createdAt"]),
            expires_at=float(payload["expiresAt"]),
        )


@dataclass(slots=True, frozen=True)
class PurchaseInitiation:
    transaction: str
    price: int
    purchase_id: str
    item: CatalogItem
    expires_at: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "transaction": self.transaction,
            "price": self.price,
            "purchaseId": self.purchase_id,
            "item": self.item.summary(),
            "expiresAt": self.expires_at,
        }


@dataclass(slots=True, frozen=True)
class PurchaseReceipt:
    success: bool
    item: CatalogItem
    price: int
    xp_gained: int
    tx_signature: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "item": self.item.to_dict(),
            "price": self.price,
            "xpGained": self.xp_gained,
            "txSignature": self.tx_signature,
        }
