from fastapi import FastAPI

from signsync.config import settings
from signsync.log import configure_logging
from signsync.routes.health import router as health_router
from signsync.routes.webhooks import router as webhooks_router

def create_app() -> FastAPI:
    configure_logging(settings.log_level)
    app = FastAPI(title="signsync", version="0.1.0")
    app.include_router(health_router)
    app.include_router(webhooks_router)
    return app

app = create_app()
