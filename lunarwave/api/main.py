"""
lunarwave.api.main — FastAPI application entry point
======================================================

Run with::

    uvicorn lunarwave.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from lunarwave.api.auth import router as auth_router  # noqa: E402
from lunarwave.api.deps import get_discord, get_store  # noqa: E402
from lunarwave.api.routes.admin import router as admin_router  # noqa: E402
from lunarwave.api.routes.giveaways import router as giveaways_router  # noqa: E402
from lunarwave.api.routes.inbox import router as inbox_router  # noqa: E402
from lunarwave.api.routes.profiles import router as profiles_router  # noqa: E402
from lunarwave.api.routes.servers import router as servers_router  # noqa: E402
from lunarwave.database.store import init_store  # noqa: E402
from lunarwave.scheduler import PeriodicTasks  # noqa: E402
from lunarwave.services.errors import CooldownActive, ServiceError  # noqa: E402
from lunarwave.services.log_buffer import install_handler  # noqa: E402

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
    """Startup/shutdown lifecycle — initialise documents and run the sweeps."""
    # Uvicorn reconfigures logging on startup, so attach the buffer here.
    install_handler()

    store = get_store()
    init_store(store)

    sweeps = PeriodicTasks(store, get_discord())
    sweeps.start()
    logger.info("Lunarwave API started (%s)", type(store).__name__)
    yield
    sweeps.stop()
    logger.info("Lunarwave API shutting down")


app = FastAPI(
    title="Lunarwave API",
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


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    headers = None
    if isinstance(exc, CooldownActive):
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, **exc.extra},
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"detail": "Invalid request.", "errors": errors})


# Mount routers
app.include_router(auth_router, prefix="/api")
app.include_router(profiles_router, prefix="/api")
app.include_router(servers_router, prefix="/api")
app.include_router(admin_router, prefix="/api")
app.include_router(inbox_router, prefix="/api")
app.include_router(giveaways_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
