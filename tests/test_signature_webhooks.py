import base64
import json
import uuid

from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from signsync.models.webhook_event import WebhookEvent
from signsync.routes import health

PDF_B64 = base64.b64encode(b"%PDF-1.7\n% signed lease\n%%EOF").decode("ascii")
URL = "/webhooks/evia-sign"

def post_event(client, body: dict) -> dict:
    r = client.post(URL, json=body)
    assert r.status_code == 200
    return r.json()

def dashboard_messages(fake_redis) -> list[dict]:
    return [json.loads(msg) for channel, msg in fake_redis.published if channel == "test:dashboard"]

def db_down(*args, **kwargs):
    raise OperationalError("INSERT INTO webhook_events", {}, Exception("connection refused"))

def test_full_signing_flow(client, db_session, make_agreement):
    a1 = make_agreement()
    ref = a1.external_reference

    body = post_event(client, {"eventType": 1, "externalReference": ref})
    assert body["success"] is True
    assert body["recordingSuccess"] is True
    assert body["aggregateProcessed"] is True
    assert body["agreementId"] == str(a1.id)
    db_session.refresh(a1)
    assert a1.lifecycle_status == "pending_activation"
    assert a1.signature_status == "send_for_signature"
    assert a1.signature_sent_at is not None

    body = post_event(
        client,
        {"eventType": 2, "externalReference": ref, "signerEmail": "jane@x.com", "signerName": "Jane Doe"},
    )
    assert body["aggregateProcessed"] is True
    db_session.refresh(a1)
    assert a1.signature_status == "signed_by_Jane_Doe"
    assert [(s["email"], s["status"]) for s in a1.signatories] == [("jane@x.com", "completed")]
    assert a1.signatories[0]["reference"] == body["eventId"]

    body = post_event(
        client,
        {"eventType": 3, "externalReference": ref, "documents": [{"content": PDF_B64, "name": "lease.pdf"}]},
    )
    assert body["aggregateProcessed"] is True
    assert body["stage"] == "completed"
    db_session.refresh(a1)
    assert a1.lifecycle_status == "active"
    assert a1.signature_status == "signing_complete"
    assert a1.signed_document_url
    assert body["documentUrl"] == a1.signed_document_url

    event = db_session.get(WebhookEvent, uuid.UUID(body["eventId"]))
    db_session.refresh(event)
    assert event.processed is True
    assert event.processing_error is None
    assert event.document_url == a1.signed_document_url
    assert event.document_path.startswith(f"agreements/{a1.id}/lease_")

def test_provider_field_names_are_accepted(client, db_session, make_agreement):
    a = make_agreement(lifecycle_status="pending_activation")
    body = post_event(
        client,
        {
            "RequestId": a.external_reference.upper(),
            "EventId": "2",
            "EventDescription": "SignatoryCompleted",
            "EventTime": "2026-10-18T10:00:00Z",
            "UserName": "Lee Landlord",
            "Email": "lee@x.com",
        },
    )
    assert body["aggregateProcessed"] is True
    db_session.refresh(a)
    assert a.signatories[0]["role"] == "landlord"
    assert a.signatories[0]["signedAt"] == "2026-10-18T10:00:00+00:00"

def test_redelivered_signer_event_is_skipped(client, db_session, make_agreement):
    a = make_agreement(lifecycle_status="pending_activation")
    event = {"eventType": 2, "externalReference": a.external_reference, "signerEmail": "jane@x.com"}

    first = post_event(client, event)
    second = post_event(client, event)
    assert second["duplicate"] is True
    assert second["eventId"] == first["eventId"]
    assert second["success"] is True

    db_session.refresh(a)
    assert len(a.signatories) == 1
    assert len(db_session.scalars(select(WebhookEvent)).all()) == 1

def test_late_signer_event_does_not_regress_active_agreement(client, db_session, make_agreement):
    a = make_agreement(lifecycle_status="active", signature_status="signing_complete")
    body = post_event(
        client,
        {"eventType": 2, "externalReference": a.external_reference, "signerEmail": "late@x.com"},
    )
    assert body["success"] is True
    db_session.refresh(a)
    assert a.lifecycle_status == "active"
    assert a.signature_status == "signing_complete"
    assert a.signatories[0]["email"] == "late@x.com"

def test_rejection(client, db_session, make_agreement, fake_redis):
    a = make_agreement(lifecycle_status="pending_activation")
    post_event(client, {"eventType": 5, "externalReference": a.external_reference, "rejectReason": "wrong rent"})
    db_session.refresh(a)
    assert a.lifecycle_status == "rejected"
    assert a.signature_status == "rejected"

    processed = [m for m in dashboard_messages(fake_redis) if m["event"] == "processed"]
    assert processed[-1]["data"]["rejectReason"] == "wrong rent"

def test_unknown_agreement_is_partial_success(client, db_session):
    ref = str(uuid.uuid4())
    body = post_event(client, {"eventType": 1, "externalReference": ref})
    assert body["success"] is True
    assert body["recordingSuccess"] is True
    assert body["aggregateProcessed"] is False
    assert "no agreement" in body["error"]

    event = db_session.get(WebhookEvent, uuid.UUID(body["eventId"]))
    db_session.refresh(event)
    assert event.processed is True
    assert event.processing_error == "agreement not found"
    assert event.external_reference == ref

def test_unknown_agreement_redelivery_is_retried(client, db_session, make_agreement):
    ref = str(uuid.uuid4())
    post_event(client, {"eventType": 1, "externalReference": ref})
    a = make_agreement(external_reference=ref)

    body = post_event(client, {"eventType": 1, "externalReference": ref})
    assert "duplicate" not in body
    assert body["aggregateProcessed"] is True
    db_session.refresh(a)
    assert a.lifecycle_status == "pending_activation"

def test_unrecognized_event_code_is_recorded_only(client, db_session, make_agreement):
    a = make_agreement()
    body = post_event(client, {"eventType": 4, "externalReference": a.external_reference})
    assert body["success"] is True
    assert body["aggregateProcessed"] is False
    assert body["warnings"]
    db_session.refresh(a)
    assert a.lifecycle_status == "created"

def test_malformed_reference_is_reported_and_still_matches(client, db_session, make_agreement):
    a = make_agreement()
    messy = "urn:uuid:{" + a.external_reference.replace("-", "").upper() + "}"
    body = post_event(client, {"eventType": 1, "externalReference": messy})
    assert body["aggregateProcessed"] is True
    assert any("normalized" in w for w in body["warnings"])

def test_degraded_store_still_reconciles(client, db_session, make_agreement, processor):
    a = make_agreement(lifecycle_status="pending_activation")
    processor.store._insert_full = db_down
    processor.store._insert_minimal = db_down

    body = post_event(
        client,
        {"eventType": 3, "externalReference": a.external_reference, "documents": [{"content": PDF_B64}]},
    )
    assert body["success"] is True
    assert body["recordingSuccess"] is False
    assert body["degraded"] is True
    assert body["eventId"].startswith("virtual-")
    assert body["aggregateProcessed"] is True
    assert any("virtual record" in w for w in body["warnings"])

    db_session.refresh(a)
    assert a.lifecycle_status == "active"
    assert a.signed_document_url == body["documentUrl"]
    # nothing reached the ledger
    assert db_session.scalars(select(WebhookEvent)).all() == []

def test_unexpected_failure_is_acknowledged(client, db_session, make_agreement, processor):
    a = make_agreement()

    def explode(*args, **kwargs):
        raise RuntimeError("lookup exploded")

    processor.locator.locate = explode
    body = post_event(client, {"eventType": 1, "externalReference": a.external_reference})
    assert body["success"] is False
    assert "lookup exploded" in body["error"]

    event = db_session.get(WebhookEvent, uuid.UUID(body["eventId"]))
    db_session.refresh(event)
    assert event.processed is True
    assert "lookup exploded" in event.processing_error

def test_bad_document_does_not_block_activation(client, db_session, make_agreement):
    a = make_agreement(lifecycle_status="pending_activation")
    body = post_event(
        client,
        {"eventType": 3, "externalReference": a.external_reference, "documents": [{"content": "!!!"}]},
    )
    assert body["success"] is True
    assert "documentUrl" not in body
    assert any("not captured" in w for w in body["warnings"])
    db_session.refresh(a)
    assert a.lifecycle_status == "active"
    assert a.signed_document_url is None

def test_dashboard_and_metrics(client, make_agreement, fake_redis):
    a = make_agreement(lifecycle_status="pending_activation")
    body = post_event(
        client,
        {"eventType": 3, "externalReference": a.external_reference, "documents": [{"content": PDF_B64}]},
    )
    kinds = [m["event"] for m in dashboard_messages(fake_redis)]
    assert kinds == ["document-available", "processed"]

    processed = dashboard_messages(fake_redis)[-1]["data"]
    assert processed["id"] == body["eventId"]
    assert processed["eventId"] == body["eventId"]
    assert processed["eventCode"] == 3
    assert processed["type"] == "RequestCompleted"
    assert processed["hasDocuments"] is True
    assert processed["documentCount"] == 1
    assert fake_redis.counters == {"events_reconciled": 1}

def test_invalid_json_is_rejected(client):
    r = client.post(URL, content=b"{not json", headers={"content-type": "application/json"})
    assert r.status_code == 400

    r = client.post(URL, json=[{"eventType": 1}])
    assert r.status_code == 400

def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}

def test_ready_is_degraded_without_redis(client, monkeypatch):
    monkeypatch.setattr(health, "db_ping", lambda: True)
    monkeypatch.setattr(health, "storage_ping", lambda: True)
    monkeypatch.setattr(health, "redis_ping", lambda: False)

    r = client.get("/ready")
    assert r.status_code == 200
    assert r.json()["degraded"] == ["dashboard"]

    monkeypatch.setattr(health, "db_ping", lambda: False)
    r = client.get("/ready")
    assert r.status_code == 503
    assert r.json()["status"] == "unready"

def test_numeric_signer_name_is_recorded(client, db_session, make_agreement):
    a = make_agreement(lifecycle_status="pending_activation")
    body = post_event(
        client,
        {"eventType": 2, "externalReference": a.external_reference, "signerName": 12345, "signerEmail": "n@x.com"},
    )
    assert body["success"] is True
    assert body["recordingSuccess"] is True

    event = db_session.get(WebhookEvent, uuid.UUID(body["eventId"]))
    assert event is not None
    assert event.signer_name == "12345"
    db_session.refresh(a)
    assert a.signature_status == "signed_by_12345"
