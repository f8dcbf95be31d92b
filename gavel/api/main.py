"""
gavel.api.main — FastAPI application entry point
===================================================

Run with::

    uvicorn gavel.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from gavel.api.deps import get_change_feed, get_engine, get_push_sender  # noqa: E402
from gavel.api.routes.admin import router as admin_router  # noqa: E402
from gavel.api.routes.cases import router as cases_router  # noqa: E402
from gavel.api.routes.missions import router as missions_router  # noqa: E402
from gavel.api.routes.users import router as users_router  # noqa: E402
from gavel.engine.change_feed import detach_feed  # noqa: E402
from gavel.errors import GavelError  # noqa: E402

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


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle: warm the DB engine, attach the change feed."""
    engine = get_engine()
    feed = get_change_feed()
    logger.info("Gavel API started — engine ready (%s)", engine.url.database)
    yield
    detach_feed(engine)
    feed.close()
    get_push_sender().close()
    logger.info("Gavel API shutting down")


app = FastAPI(
    title="Gavel API",
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


@app.exception_handler(GavelError)
async def gavel_error_handler(request: Request, exc: GavelError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error("%s %s → %s: %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.http_status, content={"error": exc.to_dict()})


# Mount routers
app.include_router(missions_router, prefix="/api")
app.include_router(cases_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
