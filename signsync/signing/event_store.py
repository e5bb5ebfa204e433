"""Webhook event ledger.

Every inbound notification is written here before any reconciliation runs.
The store never raises to its caller: when the database is unavailable it
falls back to a slimmer insert, then to a virtual record, so the rest of the
pipeline still runs and the source still gets an acknowledgement.
"""
from __future__ import annotations

import copy
import hashlib
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from signsync.config import settings
from signsync.models.enums import EVENT_NAMES
from signsync.models.webhook_event import WebhookEvent
from signsync.schemas.events import SignatureEventIn
from signsync.signing.engine import event_type_of
from signsync.signing.references import NormalizedReference, normalize_reference

logger = logging.getLogger(__name__)

VIRTUAL_PREFIX = "virtual-"

# how the event ended up persisted
MODE_PRIMARY = "primary"
MODE_FALLBACK = "fallback"
MODE_VIRTUAL = "virtual"

@dataclass
class RecordResult:
    id: str
    normalized_reference: str
    mode: str = MODE_PRIMARY
    duplicate: bool = False
    warnings: list[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return self.mode == MODE_VIRTUAL

    @property
    def virtual(self) -> bool:
        return self.id.startswith(VIRTUAL_PREFIX)

def _now_utc() -> datetime:
    return datetime.now(timezone.utc)

def _is_virtual(event_id: str | None) -> bool:
    return not event_id or event_id.startswith(VIRTUAL_PREFIX)

def idempotency_key(reference: str, event: SignatureEventIn) -> str:
    parts = [
        reference,
        "" if event.event_code is None else str(event.event_code),
        event.event_time.isoformat() if event.event_time else "",
        (event.signer_email or "").lower(),
    ]
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()

def event_type_name(event: SignatureEventIn) -> str:
    if event.event_description:
        return event.event_description
    kind = event_type_of(event.event_code)
    if kind is not None:
        return EVENT_NAMES[kind]
    return "unknown"

def strip_document_contents(payload: Any) -> Any:
    """Copy of payload with document bodies dropped (names and sizes kept)."""
    if not isinstance(payload, dict):
        return payload
    slim = copy.deepcopy(payload)
    for key in ("Documents", "documents"):
        docs = slim.get(key)
        if not isinstance(docs, list):
            continue
        for doc in docs:
            if not isinstance(doc, dict):
                continue
            for content_key in ("DocumentContent", "content"):
                if content_key in doc:
                    body = doc.pop(content_key)
                    doc["contentLength"] = len(body) if isinstance(body, (str, bytes)) else None
    return slim

class EventStore:
    def __init__(self, *, write_attempts: int | None = None, log: logging.Logger | None = None):
        self.write_attempts = max(1, write_attempts or settings.store_write_attempts)
        self.log = log or logger

    def record(self, db: Session, event: SignatureEventIn, raw_payload: Any) -> RecordResult:
        ref = normalize_reference(event.external_reference)
        warnings: list[str] = []
        if ref.warning:
            self.log.warning(ref.warning)
            warnings.append(ref.warning)

        key = idempotency_key(ref.value, event)
        existing = self._find_processed(db, key)
        if existing is not None:
            self.log.info("event %s already processed (key %s)", existing, key[:12])
            return RecordResult(existing, ref.value, duplicate=True, warnings=warnings)

        values = self._values(ref, event, raw_payload, key)

        for attempt in range(1, self.write_attempts + 1):
            try:
                event_id = self._insert_full(db, values)
                self.log.info("event %s stored for reference %s", event_id, ref.value)
                return RecordResult(event_id, ref.value, warnings=warnings)
            except SQLAlchemyError as e:
                db.rollback()
                self.log.warning(
                    "event insert attempt %d/%d failed: %s", attempt, self.write_attempts, e
                )

        try:
            event_id = self._insert_minimal(db, values)
            msg = f"event {event_id} stored without optional fields"
            self.log.warning(msg)
            warnings.append(msg)
            return RecordResult(event_id, ref.value, mode=MODE_FALLBACK, warnings=warnings)
        except SQLAlchemyError as e:
            db.rollback()
            self.log.error("fallback event insert failed: %s", e)

        event_id = f"{VIRTUAL_PREFIX}{uuid.uuid4().hex}"
        msg = f"event store unavailable; continuing with virtual record {event_id}"
        self.log.error(msg)
        warnings.append(msg)
        return RecordResult(event_id, ref.value, mode=MODE_VIRTUAL, warnings=warnings)

    def mark_processed(self, db: Session, event_id: str | None, error: str | None = None) -> bool:
        if _is_virtual(event_id):
            self.log.info("not marking virtual event %s", event_id)
            return False
        try:
            db.execute(
                update(WebhookEvent)
                .where(WebhookEvent.id == uuid.UUID(event_id))
                .values(
                    processed=True,
                    processed_at=_now_utc(),
                    processing_error=error[:1000] if error else None,
                )
            )
            db.commit()
            return True
        except SQLAlchemyError as e:
            db.rollback()
            # a redelivery will reprocess this event; reconciliation tolerates that
            self.log.warning("could not mark event %s processed: %s", event_id, e)
            return False

    def link_document(self, db: Session, event_id: str | None, url: str, path: str) -> bool:
        if _is_virtual(event_id):
            return False
        try:
            db.execute(
                update(WebhookEvent)
                .where(WebhookEvent.id == uuid.UUID(event_id))
                .values(document_url=url, document_path=path)
            )
            db.commit()
            return True
        except SQLAlchemyError as e:
            db.rollback()
            self.log.warning("could not link document to event %s: %s", event_id, e)
            return False

    def _find_processed(self, db: Session, key: str) -> str | None:
        try:
            row = db.scalar(
                select(WebhookEvent.id)
                .where(
                    WebhookEvent.idempotency_key == key,
                    WebhookEvent.processed.is_(True),
                    # failed attempts stay eligible for redelivery
                    WebhookEvent.processing_error.is_(None),
                )
                .limit(1)
            )
        except SQLAlchemyError as e:
            db.rollback()
            self.log.warning("duplicate check skipped: %s", e)
            return None
        return str(row) if row is not None else None

    def _values(
        self,
        ref: NormalizedReference,
        event: SignatureEventIn,
        raw_payload: Any,
        key: str,
    ) -> dict[str, Any]:
        return {
            "external_reference": ref.value,
            "original_reference": ref.original if ref.original != ref.value else None,
            "reference_substituted": ref.substituted,
            "event_code": event.event_code,
            "event_type": event_type_name(event),
            "signer_name": event.signer_name,
            "signer_email": event.signer_email,
            "subject": event.subject,
            "event_time": event.event_time,
            "idempotency_key": key,
            "raw_payload": raw_payload if isinstance(raw_payload, dict) else {"body": raw_payload},
            "processed": False,
        }

    def _insert_full(self, db: Session, values: dict[str, Any]) -> str:
        event_id = uuid.uuid4()
        db.add(WebhookEvent(id=event_id, **values))
        db.commit()
        return str(event_id)

    def _insert_minimal(self, db: Session, values: dict[str, Any]) -> str:
        event_id = uuid.uuid4()
        db.execute(
            insert(WebhookEvent).values(
                id=event_id,
                external_reference=values["external_reference"],
                event_code=values["event_code"],
                event_type=(values["event_type"] or "")[:255],
                idempotency_key=values["idempotency_key"],
                raw_payload=strip_document_contents(values["raw_payload"]),
                processed=False,
            )
        )
        db.commit()
        return str(event_id)
