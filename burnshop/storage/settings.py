from __future__ import annotations

import os
from dataclasses import dataclass

from burnshop.common.env import to_int

AUDIT_BACKENDS = {"log", "firestore"}
DEFAULT_USED_SIGNATURE_TTL_SECONDS = 7 * 24 * 60 * 60


@dataclass(slots=True)
class StorageSettings:
    redis_url: str
    used_signature_prefix: str
    pending_purchase_prefix: str
    inventory_prefix: str
    used_signature_ttl_seconds: int
    firestore_project_id: str | None
    audit_collection: str
    audit_backend: str

    @property
    def redis_enabled(self) -> bool:
        return bool(self.redis_url)

    @classmethod
    def from_env(cls) -> "StorageSettings":
        audit_backend = os.getenv("AUDIT_BACKEND", "log").strip().lower() or "log"
        if audit_backend not in AUDIT_BACKENDS:
            audit_backend = "log"

        return cls(
            redis_url=os.getenv("REDIS_URL", "").strip(),
            used_signature_prefix=os.getenv("REDIS_USED_SIGNATURE_PREFIX", "burnshop:sig").strip(":")
            or "burnshop:sig",
            pending_purchase_prefix=os.getenv("REDIS_PENDING_PURCHASE_PREFIX", "burnshop:purchase").strip(":")
            or "burnshop:purchase",
            inventory_prefix=os.getenv("REDIS_INVENTORY_PREFIX", "burnshop:inventory").strip(":")
            or "burnshop:inventory",
            used_signature_ttl_seconds=max(
                3600,
                to_int(os.getenv("USED_SIGNATURE_TTL_SECONDS"), DEFAULT_USED_SIGNATURE_TTL_SECONDS),
            ),
            firestore_project_id=os.getenv("FIRESTORE_PROJECT_ID") or None,
            audit_collection=(os.getenv("AUDIT_COLLECTION", "audit_log").strip("/") or "audit_log"),
            audit_backend=audit_backend,
        )
