"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from counsel_relay.config import get_settings
from counsel_relay.db.session import SessionLocal
from counsel_relay.logging_config import configure_logging
from counsel_relay.routers import admin, live, messages, rooms
from counsel_relay.services.fanout import FanoutHub

logger = logging.getLogger(__name__)


def _warm_backend_state() -> None:
    """Prime the DB connection at process start."""

    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Backend warm-up failed; continuing without startup pre-warm.")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.log_level)
    app.state.fanout_hub = FanoutHub()
    _warm_backend_state()
    yield


settings = get_settings()

app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(messages.router, tags=["messages"])
app.include_router(live.router, tags=["live"])
app.include_router(rooms.router, tags=["rooms"])
app.include_router(admin.router, tags=["admin"])


@app.get("/health")
def health() -> dict[str, str]:
    """Simple health check endpoint."""

    return {"status": "ok"}
