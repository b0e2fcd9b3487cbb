# app/main.py
"""
FastAPI application entry point.
Includes security middleware, domain + global error handlers, and all routers.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from app.routers import access_control, visitors, vehicle_movements, occupancy, health
from app.database import create_tables
from app.config import settings
from app.services.exceptions import AccessControlError
from app.utils.logger import get_logger
import time

logger = get_logger(__name__)

app = FastAPI(
    title="Portaria Site Access API",
    description="Gate access log, visitor registry, vehicle exit/return control and on-site occupancy.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (allow the operations console to call the API) ─────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],   # Restrict to console origin in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── API Key Middleware ───────────────────────────────────────────────────────
class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Optional lightweight API key auth for every endpoint except health and docs.
    Set API_KEY in .env. Leave empty to disable auth.
    """
    open_paths = {"/api/v1/health", "/docs", "/redoc", "/openapi.json"}

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.open_paths or not settings.API_KEY:
            return await call_next(request)

        api_key = request.headers.get("X-API-Key") or request.query_params.get("api_key")
        if api_key != settings.API_KEY:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid or missing API key"},
            )
        return await call_next(request)


if settings.API_KEY:
    app.add_middleware(APIKeyMiddleware)


# ── Request Timing Middleware ────────────────────────────────────────────────
SLOW_GATE_REQUEST_MS = 2000   # operator is standing at the barrier


@app.middleware("http")
async def time_gate_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
    if elapsed_ms > SLOW_GATE_REQUEST_MS:
        logger.warning(f"Slow request {request.method} {request.url.path} → {response.status_code} ({elapsed_ms}ms)")
    else:
        logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({elapsed_ms}ms)")
    return response


# ── Domain Error Handler ─────────────────────────────────────────────────────
@app.exception_handler(AccessControlError)
async def access_control_error_handler(request: Request, exc: AccessControlError):
    """
    denied (404/409/422), conflict (409) or unavailable (503). The gate UI
    shows a different operator message for each outcome.
    """
    log = logger.error if exc.outcome == "unavailable" else logger.info
    log(f"{request.method} {request.url.path} → {exc.outcome}: {exc.reason} — {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "outcome": exc.outcome, "reason": exc.reason},
    )


# ── Global Exception Handler ─────────────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(access_control.router,    prefix="/api/v1", tags=["🚪 Access Control"])
app.include_router(visitors.router,          prefix="/api/v1", tags=["🪪 Visitors"])
app.include_router(vehicle_movements.router, prefix="/api/v1", tags=["🚚 Vehicle Movements"])
app.include_router(occupancy.router,         prefix="/api/v1", tags=["🏢 Occupancy"])
app.include_router(health.router,            prefix="/api/v1", tags=["💚 Health"])


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("🚀 Portaria Access Backend starting up...")
    create_tables()
    logger.info("✅ Database tables ready")
    logger.info(f"📇 Identity directory: {settings.DIRECTORY_URL}")
    logger.info(f"🚦 Direction policy: {settings.DIRECTION_POLICY} | site: {settings.SITE_LOCATION} "
                f"(UTC{settings.SITE_UTC_OFFSET_HOURS:+d})")
    logger.info(f"🌐 Listening on http://{settings.BACKEND_IP}:{settings.BACKEND_PORT}")
    logger.info("📖 API docs at /docs")


@app.on_event("shutdown")
async def shutdown():
    logger.info("🛑 Portaria Access Backend shutting down...")
