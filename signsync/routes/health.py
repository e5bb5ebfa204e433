from fastapi import APIRouter
from fastapi.responses import JSONResponse

from signsync.config import settings
from signsync.db import db_ping
from signsync.redis_client import redis_ping
from signsync.storage.registry import get_storage_provider

router = APIRouter(tags=["health"])

def storage_ping() -> bool:
    return get_storage_provider(settings).ping()

@router.get("/health")
def health() -> dict:
    return {"status": "ok"}

# readiness: the ledger and document storage gate it, the dashboard feed does not
@router.get("/ready")
def ready():
    checks: dict[str, bool] = {}
    errors: dict[str, str] = {}
    required = {"db", "storage"}

    for name, fn in (("db", db_ping), ("storage", storage_ping), ("redis", redis_ping)):
        try:
            checks[name] = bool(fn())
        except Exception as e:
            checks[name] = False
            msg = str(e).strip()
            errors[name] = f"{e.__class__.__name__}{(': ' + msg) if msg else ''}"

    ok = all(checks[name] for name in required)

    body: dict = {"status": "ok" if ok else "unready", "checks": checks}
    if not checks["redis"]:
        body["degraded"] = ["dashboard"]
    if errors:
        body["errors"] = errors

    return JSONResponse(status_code=200 if ok else 503, content=body)
