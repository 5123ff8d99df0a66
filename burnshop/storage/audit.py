from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Protocol

from google.cloud import firestore

from burnshop.common import log_event


class AuditSink(Protocol):
    async def log_audit(self, event: str, payload: dict[str, Any]) -> None: ...


class LoggingAuditSink:
    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    async def log_audit(self, event: str, payload: dict[str, Any]) -> None:
        log_event(
            self._logger,
            level="info",
            event="audit",
            message=event,
            audit_event=event,
            details=payload,
        )


class FirestoreAuditSink:
    """Appends audit documents to a Firestore collection.

    The Firestore client is synchronous; writes are pushed to a worker thread.
    """

    def __init__(
        self,
        *,
        logger: logging.Logger,
        collection: str,
        client: firestore.Client | None = None,
        project_id: str | None = None,
    ) -> None:
        self._logger = logger
        self._collection_name = collection
        self._client = client
        self._project_id = project_id
        self._collection_ref: Any | None = None

    def connect(self) -> None:
        if self._client is None:
            self._client = firestore.Client(project=self._project_id)
        self._collection_ref = self._client.collection(self._collection_name)
        log_event(
            self._logger,
            level="info",
            event="firestore_connected",
            message="Connected to Firestore audit collection",
            collection=self._collection_name,
        )

    async def log_audit(self, event: str, payload: dict[str, Any]) -> None:
        if self._collection_ref is None:
            log_event(
                self._logger,
                level="warning",
                event="audit_skipped",
                message="Skipping Firestore audit because client is not ready",
                audit_event=event,
            )
            return

        document = {
            "event": event,
            "details": payload,
            "timestamp": datetime.now(timezone.utc),
            "server_timestamp": firestore.SERVER_TIMESTAMP,
        }
        await asyncio.to_thread(self._collection_ref.add, document)

    def close(self) -> None:
        self._collection_ref = None
        self._client = None
