"""Event -> agreement state reconciliation.

Everything here is pure: the functions read the current agreement and the
parsed event and return the fields to write. Persistence happens in the
orchestrator. Transitions never walk the lifecycle backwards, and the roster
is merged by email, so replaying or reordering deliveries converges on the
same agreement state (timestamps excepted).
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from signsync.models.enums import (
    TERMINAL_STATUSES,
    EventType,
    LifecycleStatus,
    SignatoryRole,
    SignatoryStatus,
)
from signsync.schemas.events import DocumentIn, SignatureEventIn
from signsync.signing.status import SignatureStatus, SignatureStep

_LANDLORD_KEYWORDS = ("landlord", "owner", "admin")

@dataclass
class Reconciliation:
    updates: dict[str, Any] = field(default_factory=dict)
    artifacts: list[DocumentIn] = field(default_factory=list)
    # False when the event type drives no transition
    applied: bool = False
    notes: list[str] = field(default_factory=list)

    @property
    def lifecycle_status(self) -> LifecycleStatus | None:
        return self.updates.get("lifecycle_status")

    @property
    def signature_status(self) -> SignatureStatus | None:
        return self.updates.get("signature_status")

def event_type_of(code: int | None) -> EventType | None:
    if code is None:
        return None
    try:
        return EventType(code)
    except ValueError:
        return None

def current_lifecycle(agreement: Any) -> LifecycleStatus:
    try:
        return LifecycleStatus(agreement.lifecycle_status)
    except ValueError:
        return LifecycleStatus.created

def signer_display_name(name: str | None, email: str | None) -> str:
    if name and name.strip():
        return name.strip()
    if email and email.split("@", 1)[0].strip():
        return email.split("@", 1)[0].strip()
    return "Unknown"

def infer_role(email: str | None, name: str | None) -> SignatoryRole | None:
    """Best-effort landlord/tenant guess from keywords; not authoritative."""
    if not email and not name:
        return None
    haystack = f"{email or ''} {name or ''}".lower()
    if any(k in haystack for k in _LANDLORD_KEYWORDS):
        return SignatoryRole.landlord
    return SignatoryRole.tenant

def load_roster(value: Any) -> list[dict]:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return []
    if not isinstance(value, list):
        return []
    return [dict(s) for s in value if isinstance(s, dict)]

def merge_signatory(roster: Any, entry: dict) -> list[dict]:
    """Upsert entry by email (exact match), keeping first-seen order.

    Fields already on the roster survive unless the entry carries a new value.
    """
    merged = load_roster(roster)
    fresh = {k: v for k, v in entry.items() if v is not None}
    email = entry.get("email")
    for i, existing in enumerate(merged):
        if existing.get("email") == email:
            merged[i] = {**existing, **fresh}
            return merged
    merged.append(fresh)
    return merged

def _transition(
    result: Reconciliation,
    current: LifecycleStatus,
    target: LifecycleStatus,
    status: SignatureStatus,
    stamps: dict[str, Any] | None = None,
) -> None:
    # terminal states only accept a replay of the same transition
    if current in TERMINAL_STATUSES and current is not target:
        result.notes.append(
            f"agreement is {current.value}; {target.value} transition not applied"
        )
        return
    result.updates["lifecycle_status"] = target
    result.updates["signature_status"] = status
    if stamps:
        result.updates.update(stamps)

def reconcile(
    agreement: Any,
    event: SignatureEventIn,
    *,
    now: datetime | None = None,
    event_id: str | None = None,
) -> Reconciliation:
    now = now or datetime.now(timezone.utc)
    kind = event_type_of(event.event_code)
    if kind is None:
        return Reconciliation(notes=[f"event code {event.event_code!r} drives no transition"])

    current = current_lifecycle(agreement)
    result = Reconciliation(applied=True)
    result.updates["updated_at"] = now

    if kind is EventType.request_received:
        _transition(
            result,
            current,
            LifecycleStatus.pending_activation,
            SignatureStatus(SignatureStep.send_for_signature),
            {"signature_sent_at": now},
        )

    elif kind is EventType.signer_completed:
        name = signer_display_name(event.signer_name, event.signer_email)
        _transition(
            result,
            current,
            LifecycleStatus.pending_activation,
            SignatureStatus.signed_by(name),
        )
        if event.signer_email:
            role = infer_role(event.signer_email, event.signer_name)
            signed_at = event.event_time or now
            result.updates["signatories"] = merge_signatory(
                agreement.signatories,
                {
                    "name": name,
                    "email": event.signer_email,
                    "role": role.value if role else None,
                    "status": SignatoryStatus.completed.value,
                    "signedAt": signed_at.isoformat(),
                    "reference": event_id,
                },
            )
        else:
            result.notes.append("signer has no email; roster not updated")

    elif kind is EventType.request_completed:
        _transition(
            result,
            current,
            LifecycleStatus.active,
            SignatureStatus(SignatureStep.signing_complete),
            {"signature_completed_at": now, "signed_date": now},
        )
        result.artifacts = [d for d in event.documents if d.content]

    elif kind is EventType.request_rejected:
        _transition(
            result,
            current,
            LifecycleStatus.rejected,
            SignatureStatus(SignatureStep.rejected),
        )

    return result
