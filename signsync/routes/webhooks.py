from __future__ import annotations

import json
from functools import lru_cache

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from signsync.config import settings
from signsync.db import get_db
from signsync.redis_client import redis_client
from signsync.signing.artifacts import ArtifactCapture
from signsync.signing.notify import DashboardNotifier, RedisMetrics
from signsync.signing.orchestrator import SignatureEventProcessor
from signsync.storage.registry import get_storage_provider

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

@lru_cache(maxsize=1)
def get_processor() -> SignatureEventProcessor:
    return SignatureEventProcessor(
        capture=ArtifactCapture(get_storage_provider(settings)),
        notifier=DashboardNotifier(redis_client, enabled=settings.notifications_enabled),
        metrics=RedisMetrics(redis_client),
    )

@router.post("/evia-sign")
async def evia_sign_webhook(
    request: Request,
    db: Session = Depends(get_db),
    processor: SignatureEventProcessor = Depends(get_processor),
):
    raw = await request.body()
    try:
        payload = json.loads(raw.decode("utf-8"))
    except Exception:
        raise HTTPException(status_code=400, detail="invalid json")

    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="invalid_signature_event")

    # always acknowledged; internal outcome is reported in the body only
    outcome = processor.process(db, payload)
    return outcome.as_dict()
