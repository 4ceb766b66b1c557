"""
tomorrow_people.api.main — FastAPI application entry point
===========================================================

Run with::

    uvicorn tomorrow_people.api.main:app --reload --port 8000
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.staticfiles import StaticFiles

load_dotenv()

from tomorrow_people.api.auth import router as auth_router  # noqa: E402
from tomorrow_people.api.deps import get_config, get_engine  # noqa: E402
from tomorrow_people.api.routes.channels import router as channels_router  # noqa: E402
from tomorrow_people.api.routes.events import router as events_router  # noqa: E402
from tomorrow_people.api.routes.groups import router as groups_router  # noqa: E402
from tomorrow_people.api.routes.ideas import router as ideas_router  # noqa: E402
from tomorrow_people.api.routes.media import router as media_router  # noqa: E402
from tomorrow_people.api.routes.profiles import router as profiles_router  # noqa: E402
from tomorrow_people.api.routes.projects import router as projects_router  # noqa: E402
from tomorrow_people.api.routes.sections import router as sections_router  # noqa: E402
from tomorrow_people.database.engine import init_db, run_db  # noqa: E402
from tomorrow_people.services import event_service, rsvp_service  # noqa: E402
from tomorrow_people.services.upload_service import UPLOAD_DIR, ensure_upload_dir  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


async def _status_refresh_loop(engine, interval_minutes: int, completed_after_hours: int) -> None:
    """Move events through live/completed as their times pass."""
    while True:
        try:
            changed = await run_db(
                event_service.refresh_event_statuses, engine, None, completed_after_hours,
            )
            if changed:
                logger.info("Status refresh updated %d event(s)", changed)
        except Exception:
            logger.exception("Event status refresh failed")
        await asyncio.sleep(interval_minutes * 60)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle: create tables, repair counters, start the status refresher."""
    ensure_upload_dir()

    engine = get_engine()
    cfg = get_config()
    await run_db(init_db, engine)
    repaired = await run_db(rsvp_service.recalculate_counts, engine)
    if repaired:
        logger.warning("Repaired RSVP counters on %d event(s)", repaired)
    refresher = asyncio.create_task(
        _status_refresh_loop(engine, cfg.status_refresh_minutes, cfg.event_completed_after_hours)
    )
    logger.info("%s API started — engine ready (%s)", cfg.community_name, engine.url.database)
    yield
    refresher.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await refresher
    logger.info("API shutting down")


app = FastAPI(
    title="Tomorrow People API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount routers
app.include_router(auth_router, prefix="/api")
app.include_router(profiles_router, prefix="/api")
app.include_router(events_router, prefix="/api")
app.include_router(groups_router, prefix="/api")
app.include_router(ideas_router, prefix="/api")
app.include_router(sections_router, prefix="/api")
app.include_router(projects_router, prefix="/api")
app.include_router(channels_router, prefix="/api")
app.include_router(media_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}


# Serve uploaded files as static assets
if UPLOAD_DIR.exists():
    app.mount(
        "/api/uploads",
        StaticFiles(directory=str(UPLOAD_DIR)),
        name="uploads",
    )
