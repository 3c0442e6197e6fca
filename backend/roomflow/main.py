"""FastAPI application entrypoint.

Responsibilities kept minimal:
  * App / lifespan initialization
  * Router registration (rooms, events)
  * Cross-cutting concerns: logging, metrics middleware & exception handlers
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from .api.events import router as events_router
from .api.rooms import router as rooms_router
from .config import get_settings
from .db import models  # noqa: F401 register models before create_all
from .db.session import engine, Base
from .errors import BaseAppException
from .logging_config import configure_logging
from .metrics import REQUEST_COUNT, REQUEST_LATENCY

settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - simple startup path
    """Initialize database schema (idempotent for tests); real deployments run alembic."""
    Base.metadata.create_all(bind=engine)
    logger.info(
        "roomflow started (pending_reserves=%s, auto_publish_on_approve=%s)",
        settings.policy.pending_reserves,
        settings.policy.auto_publish_on_approve,
    )
    yield


app = FastAPI(title="Roomflow API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Register routers once ---
app.include_router(rooms_router)
app.include_router(events_router)


def _path_label(path: str) -> str:
    # Collapse ids so label cardinality stays bounded
    parts = path.strip("/").split("/")
    if len(parts) >= 2 and parts[0] in {"events", "rooms"} and parts[1] != "export.ics":
        parts[1] = ":id"
    return "/" + "/".join(parts)


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    method = request.method
    path_label = _path_label(request.url.path)
    with REQUEST_LATENCY.labels(method=method, path=path_label).time():
        response: Response = await call_next(request)
    REQUEST_COUNT.labels(method=method, path=path_label, status=str(response.status_code)).inc()
    return response


@app.get("/metrics")
def metrics():  # pragma: no cover - external scrape
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.exception_handler(BaseAppException)
async def app_exception_handler(request: Request, exc: BaseAppException):
    return JSONResponse(
        status_code=exc.http_status,
        content={"detail": {"code": exc.code, "message": exc.message}},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):  # pragma: no cover
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": {"code": "INTERNAL_ERROR", "message": "unexpected error"}},
    )


@app.get("/healthz")
async def health():
    return {
        "status": "ok",
        "pendingReserves": settings.policy.pending_reserves,
        "autoPublishOnApprove": settings.policy.auto_publish_on_approve,
    }
