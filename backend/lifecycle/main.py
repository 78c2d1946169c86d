"""FastAPI application factory with middleware, routers, and lifespan."""

import asyncio
import contextlib
import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from .accounts.service import ensure_admin_user
from .config import settings, setup_logging
from .database.base import SessionLocal, get_db
from .dependencies import AuthRequired
from .inactivity.scheduler import start_inactivity_scheduler
from .inactivity.service import InactivityEngine
from .mailer.service import create_email_sender
from .notifications.live import LiveDeltaPublisher
from .notifications.routes import ws_router
from .rate_limit import limiter

logger = logging.getLogger(__name__)

_startup_time: float = 0.0


def _run_migrations() -> None:
    """Run Alembic migrations (upgrade head) on startup."""
    from alembic import command
    from alembic.config import Config

    alembic_cfg = Config()
    alembic_cfg.set_main_option("script_location", str(Path(__file__).parent.parent / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", settings.effective_database_url)
    command.upgrade(alembic_cfg, "head")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown lifecycle."""
    global _startup_time
    _startup_time = time.time()

    setup_logging()
    _run_migrations()

    db = SessionLocal()
    try:
        ensure_admin_user(db)
        db.commit()
    finally:
        db.close()

    app.state.session_factory = SessionLocal
    publisher = LiveDeltaPublisher()
    publisher.bind_loop(asyncio.get_running_loop())
    app.state.publisher = publisher
    app.state.inactivity_engine = InactivityEngine(create_email_sender(), publisher)

    scheduler_task = None
    if settings.inactivity_scheduler_enabled:
        scheduler_task = asyncio.create_task(start_inactivity_scheduler(app.state.inactivity_engine))
    else:
        logger.info("Inactivity scheduler disabled")

    yield

    if scheduler_task is not None:
        scheduler_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await scheduler_task


def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> Response:
    retry_after = "60"
    return JSONResponse(
        {"error": "Too many requests", "detail": str(exc.detail), "retry_after": int(retry_after)},
        status_code=429,
        headers={"Retry-After": retry_after},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Account Lifecycle Service",
        lifespan=lifespan,
    )

    # --- Exception handlers ---
    @app.exception_handler(AuthRequired)
    async def auth_required_handler(request: Request, exc: AuthRequired):
        return JSONResponse({"error": "Authentication required"}, status_code=401)

    app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse({"error": "Internal server error"}, status_code=500)

    # --- Middleware stack (LIFO: last added = outermost) ---

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.secret_key,
        max_age=86400 * 7,
    )

    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    if settings.trusted_hosts_list != ["*"]:
        app.add_middleware(
            TrustedHostMiddleware,
            allowed_hosts=settings.trusted_hosts_list,
        )

    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = "max-age=63072000; includeSubDomains"
        return response

    # --- API v1 (all JSON endpoints) ---
    from .api_v1 import api_v1_router

    app.include_router(api_v1_router)
    app.include_router(ws_router)

    # --- Health check ---
    @app.get("/health")
    def health(db: Session = Depends(get_db)):
        db_status = "ok"
        try:
            db.execute(text("SELECT 1"))
        except Exception:
            db_status = "unreachable"

        status = "ok" if db_status == "ok" else "degraded"
        uptime = round(time.time() - _startup_time, 1) if _startup_time else 0.0

        return {
            "status": status,
            "db": db_status,
            "version": "1.0.0",
            "uptime_seconds": uptime,
        }

    return app


app = create_app()
