"""Per-event driver: record -> locate -> reconcile -> write back -> capture.

`SignatureEventProcessor.process` is the only place that swallows exceptions.
Its children report failures as values, and whatever happens the caller gets
a `ReconcileOutcome` so the ingress can always acknowledge the delivery.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from signsync.log import new_correlation_id, set_correlation_id
from signsync.models.agreement import Agreement
from signsync.models.enums import EventType, LifecycleStatus
from signsync.schemas.events import SignatureEventIn
from signsync.signing.artifacts import ArtifactCapture
from signsync.signing.engine import event_type_of, reconcile
from signsync.signing.event_store import EventStore, event_type_name
from signsync.signing.locator import AgreementLocator
from signsync.signing.notify import DashboardNotifier, NullMetrics
from signsync.signing.status import SignatureStatus

logger = logging.getLogger(__name__)

class ProcessingStage(str, Enum):
    received = "received"
    recorded = "recorded"
    located = "located"
    reconciled = "reconciled"
    artifact_captured = "artifact_captured"
    completed = "completed"

@dataclass
class ReconcileOutcome:
    success: bool = True
    recording_success: bool = False
    aggregate_processed: bool = False
    agreement_id: str | None = None
    event_id: str | None = None
    stage: ProcessingStage = ProcessingStage.received
    duplicate: bool = False
    degraded: bool = False
    document_url: str | None = None
    error: str | None = None
    warnings: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "success": self.success,
            "recordingSuccess": self.recording_success,
            "aggregateProcessed": self.aggregate_processed,
            "stage": self.stage.value,
            "eventId": self.event_id,
        }
        if self.agreement_id:
            body["agreementId"] = self.agreement_id
        if self.duplicate:
            body["duplicate"] = True
        if self.degraded:
            body["degraded"] = True
        if self.document_url:
            body["documentUrl"] = self.document_url
        if self.error:
            body["error"] = self.error
        if self.warnings:
            body["warnings"] = list(self.warnings)
        return body

def _now_utc() -> datetime:
    return datetime.now(timezone.utc)

def apply_updates(agreement: Agreement, updates: dict[str, Any]) -> None:
    # typed values become their stored string form here and nowhere else
    for name, value in updates.items():
        if isinstance(value, SignatureStatus):
            value = value.label
        elif isinstance(value, LifecycleStatus):
            value = value.value
        setattr(agreement, name, value)

class SignatureEventProcessor:
    def __init__(
        self,
        *,
        capture: ArtifactCapture,
        store: EventStore | None = None,
        locator: AgreementLocator | None = None,
        notifier: DashboardNotifier | None = None,
        metrics: Any = None,
        clock: Callable[[], datetime] = _now_utc,
        log: logging.Logger | None = None,
    ):
        self.capture = capture
        self.store = store or EventStore()
        self.locator = locator or AgreementLocator()
        self.notifier = notifier
        self.metrics = metrics or NullMetrics()
        self.clock = clock
        self.log = log or logger

    def process(self, db: Session, payload: Any) -> ReconcileOutcome:
        set_correlation_id(new_correlation_id())
        outcome = ReconcileOutcome()
        event: SignatureEventIn | None = None
        marked = False

        try:
            event = SignatureEventIn.model_validate(payload)
            self.log.info(
                "processing %s for reference %s", event_type_name(event), event.external_reference
            )
            marked = self._run(db, event, payload, outcome)
        except Exception as e:
            self.log.exception("signature event processing failed")
            try:
                db.rollback()
            except SQLAlchemyError:
                self.log.warning("rollback after failure also failed")
            outcome.success = False
            outcome.error = f"{type(e).__name__}: {e}"[:1000]
            if outcome.recording_success and not marked:
                self.store.mark_processed(db, outcome.event_id, outcome.error)

        outcome.stage = ProcessingStage.completed
        self._report(event, outcome)
        return outcome

    def _run(
        self, db: Session, event: SignatureEventIn, payload: Any, outcome: ReconcileOutcome
    ) -> bool:
        """Runs the pipeline; returns whether the event row was marked processed."""
        record = self.store.record(db, event, payload)
        outcome.event_id = record.id
        outcome.recording_success = not record.degraded
        outcome.degraded = record.degraded
        outcome.warnings.extend(record.warnings)
        outcome.stage = ProcessingStage.recorded

        if record.duplicate:
            outcome.duplicate = True
            self.log.info("event %s is a redelivery of a processed event; skipped", record.id)
            return True

        agreement = self.locator.locate(db, event.external_reference or record.normalized_reference)
        if agreement is None:
            outcome.error = f"no agreement for reference {record.normalized_reference}; event recorded"
            self.store.mark_processed(db, record.id, "agreement not found")
            return True
        outcome.agreement_id = str(agreement.id)
        outcome.stage = ProcessingStage.located

        event_id = None if record.virtual else record.id
        result = reconcile(agreement, event, now=self.clock(), event_id=event_id)
        outcome.stage = ProcessingStage.reconciled
        for note in result.notes:
            self.log.info(note)

        if not result.applied:
            outcome.warnings.extend(result.notes)
            self.store.mark_processed(db, record.id)
            return True

        try:
            apply_updates(agreement, result.updates)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            outcome.error = f"agreement update failed: {e}"[:1000]
            self.log.error("agreement %s update failed: %s", agreement.id, e)
            self.store.mark_processed(db, record.id, outcome.error)
            return True

        outcome.aggregate_processed = True
        self.log.info(
            "agreement %s now %s / %s",
            agreement.id,
            agreement.lifecycle_status,
            agreement.signature_status,
        )

        if result.artifacts:
            report = self.capture.capture_and_link(db, result.artifacts, agreement, record.id, self.store)
            outcome.warnings.extend(report.warnings)
            if report.linked is not None:
                outcome.document_url = report.linked.url
                outcome.stage = ProcessingStage.artifact_captured

        self.store.mark_processed(db, record.id)
        return True

    def _report(self, event: SignatureEventIn | None, outcome: ReconcileOutcome) -> None:
        if not outcome.success:
            self.metrics.incr("events_failed")
        elif outcome.aggregate_processed:
            self.metrics.incr("events_reconciled")
        else:
            self.metrics.incr("events_recorded_only")
        if outcome.degraded:
            self.metrics.incr("events_degraded")

        if self.notifier is None:
            return
        if outcome.document_url:
            self.notifier.publish(
                "document-available",
                {"id": outcome.event_id, "documentUrl": outcome.document_url, "agreementId": outcome.agreement_id},
            )
        self.notifier.publish("processed", dashboard_summary(event, outcome))

def dashboard_summary(event: SignatureEventIn | None, outcome: ReconcileOutcome) -> dict[str, Any]:
    data: dict[str, Any] = {"id": outcome.event_id, **outcome.as_dict()}
    if event is None:
        return data

    data.update(
        {
            "type": event_type_name(event),
            "requestId": event.external_reference,
            "eventCode": event.event_code,
            "timestamp": (event.event_time or _now_utc()).isoformat(),
        }
    )
    kind = event_type_of(event.event_code)
    if kind in (EventType.signer_completed, EventType.request_completed, EventType.request_rejected):
        data["userName"] = event.signer_name
        data["email"] = event.signer_email
    if kind in (EventType.signer_completed, EventType.request_completed):
        data["subject"] = event.subject
    if kind is EventType.request_completed:
        data["hasDocuments"] = bool(event.documents)
        data["documentCount"] = len(event.documents)
    if kind is EventType.request_rejected:
        data["rejectReason"] = event.reject_reason or "No reason provided"
    return data
