from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from signsync.models.agreement import Agreement
from signsync.schemas.events import DocumentIn
from signsync.signing.event_store import EventStore

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
AGREEMENT_LINK_FAILED = "agreement document link failed"

_WS = re.compile(r"\s+")
_UNSAFE = re.compile(r"[^a-zA-Z0-9._-]+")

class ArtifactDecodeError(ValueError):
    pass

@dataclass(frozen=True)
class CapturedArtifact:
    url: str
    storage_path: str
    size_bytes: int
    name: str | None = None

@dataclass(frozen=True)
class CaptureFailed:
    reason: str
    name: str | None = None

@dataclass
class CaptureReport:
    linked: CapturedArtifact | None = None
    stored: list[CapturedArtifact] = field(default_factory=list)
    failures: list[CaptureFailed] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

def decode_document(content: Any) -> bytes:
    """Document bytes from raw binary, raw PDF text, base64 or a base64 data URI."""
    if content is None:
        raise ArtifactDecodeError("document has no content")
    if isinstance(content, (bytes, bytearray)):
        data = bytes(content)
    elif isinstance(content, str):
        text = content.strip()
        if text.startswith("%PDF-"):
            try:
                data = text.encode("latin-1")
            except UnicodeEncodeError as e:
                raise ArtifactDecodeError(f"raw document text is not binary-safe: {e}") from e
        else:
            if "base64," in text:
                text = text.split("base64,", 1)[1]
            text = _WS.sub("", text)
            text += "=" * (-len(text) % 4)
            try:
                data = base64.b64decode(text, validate=True)
            except (binascii.Error, ValueError) as e:
                raise ArtifactDecodeError(f"document is not valid base64: {e}") from e
    else:
        raise ArtifactDecodeError(f"unsupported document content type {type(content).__name__}")

    if not data:
        raise ArtifactDecodeError("document is empty")
    return data

def _safe_stem(name: str | None, fallback: str) -> str:
    stem = (name or "").strip()
    if stem.lower().endswith(".pdf"):
        stem = stem[:-4]
    stem = _UNSAFE.sub("-", stem).strip("-.")
    return stem or fallback

def storage_path(agreement_id: Any, name: str | None, now: datetime, index: int = 0) -> str:
    stem = _safe_stem(name, "signed_agreement")
    stamp = now.strftime("%Y%m%dT%H%M%S%fZ")
    # position in the event keeps same-named documents apart
    return f"agreements/{agreement_id}/{stem}_{stamp}_{index + 1}.pdf"

class ArtifactCapture:
    def __init__(self, storage: Any, *, log: logging.Logger | None = None):
        self.storage = storage
        self.log = log or logger

    def capture(
        self,
        document: DocumentIn,
        agreement_id: Any,
        *,
        index: int = 0,
        now: datetime | None = None,
    ) -> CapturedArtifact | CaptureFailed:
        try:
            data = decode_document(document.content)
        except ArtifactDecodeError as e:
            self.log.warning("document %s for agreement %s not decoded: %s", document.name, agreement_id, e)
            return CaptureFailed(str(e), document.name)

        key = storage_path(agreement_id, document.name, now or datetime.now(timezone.utc), index)
        try:
            meta = self.storage.store_bytes(key=key, data=data, content_type=PDF_CONTENT_TYPE)
            url = self.storage.public_url(meta)
        except (BotoCoreError, ClientError, OSError, RuntimeError) as e:
            self.log.error("storing document for agreement %s failed: %s", agreement_id, e)
            return CaptureFailed(f"storage: {e}", document.name)

        self.log.info("document for agreement %s stored at %s", agreement_id, meta["key"])
        return CapturedArtifact(url=url, storage_path=meta["key"], size_bytes=len(data), name=document.name)

    def capture_and_link(
        self,
        db: Session,
        documents: list[DocumentIn],
        agreement: Agreement,
        event_id: str | None,
        store: EventStore,
    ) -> CaptureReport:
        """Store every document, then link the first stored one to the agreement and event."""
        report = CaptureReport()
        now = datetime.now(timezone.utc)
        for i, doc in enumerate(documents):
            outcome = self.capture(doc, agreement.id, index=i, now=now)
            if isinstance(outcome, CaptureFailed):
                report.failures.append(outcome)
                report.warnings.append(f"document {doc.name or i + 1} not captured: {outcome.reason}")
            else:
                report.stored.append(outcome)

        if not report.stored:
            return report

        artifact = report.stored[0]
        warnings = self.link(db, artifact, agreement, event_id, store, now=now)
        report.warnings.extend(warnings)
        if not any(w.startswith(AGREEMENT_LINK_FAILED) for w in warnings):
            report.linked = artifact
        return report

    def link(
        self,
        db: Session,
        artifact: CapturedArtifact,
        agreement: Agreement,
        event_id: str | None,
        store: EventStore,
        *,
        now: datetime | None = None,
    ) -> list[str]:
        warnings: list[str] = []
        try:
            agreement.signed_document_url = artifact.url
            agreement.pdf_url = artifact.url
            agreement.signature_url = artifact.url
            agreement.updated_at = now or datetime.now(timezone.utc)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            self.log.error("linking document to agreement %s failed: %s", agreement.id, e)
            return [f"{AGREEMENT_LINK_FAILED}: {e}"]

        if not store.link_document(db, event_id, artifact.url, artifact.storage_path):
            warnings.append(f"event {event_id} not linked to document")
        return warnings
