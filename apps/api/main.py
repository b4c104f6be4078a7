"""
Coach Chat API application.

Wires settings, logging, error reporting, middleware, error rendering and the
routers into one FastAPI app.
"""
import logging
import time

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.config import settings
from core.database import SessionLocal, check_db_connection
from core.exceptions import APIException, BAD_REQUEST, INTERNAL_ERROR
from core.logging import setup_logging
from core.rate_limit import RateLimitMiddleware
from core.security_headers import SecurityHeadersMiddleware
from routers import chat, coaches, profile
from services.coach_catalog import seed_prebuilt_coaches

setup_logging()
logger = logging.getLogger(__name__)

# Local Expo/web builds only; native clients send no Origin header
DEV_ORIGINS = [
    "http://localhost:8081",
    "http://localhost:19006",
    "http://127.0.0.1:8081",
]


def _scrub_event(event, hint=None):
    """Error reports carry no credentials and no conversation text."""
    request = event.get("request")
    if isinstance(request, dict):
        headers = request.get("headers")
        if isinstance(headers, dict):
            for name in ("authorization", "Authorization", "cookie", "Cookie"):
                headers.pop(name, None)
        request.pop("data", None)
    return event


def _init_sentry() -> None:
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.redis import RedisIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    try:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.ENVIRONMENT,
            traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
            profiles_sample_rate=settings.SENTRY_PROFILES_SAMPLE_RATE,
            integrations=[
                FastApiIntegration(transaction_style="endpoint"),
                SqlalchemyIntegration(),
                RedisIntegration(),
            ],
            send_default_pii=False,
            before_send=_scrub_event,
        )
        logger.info(f"Sentry enabled ({settings.ENVIRONMENT})")
    except Exception as e:
        logger.error(f"Sentry init failed: {e}")


def _allowed_origins():
    if settings.DEBUG:
        return ["*"]
    if settings.CORS_ORIGINS:
        return [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
    return DEV_ORIGINS


if settings.SENTRY_DSN:
    _init_sentry()

app = FastAPI(
    title="Coach Chat API",
    description="AI coaching conversations with free and unlimited usage tiers",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)


@app.on_event("startup")
def seed_coach_catalog():
    db = SessionLocal()
    try:
        inserted = seed_prebuilt_coaches(db)
        if inserted:
            logger.info(f"Seeded {inserted} prebuilt coaches")
    except Exception as e:
        logger.warning(f"Prebuilt coach seeding skipped: {e}")
    finally:
        db.close()


# =============================================================================
# MIDDLEWARE (last added runs first)
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins(),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SecurityHeadersMiddleware)
if settings.RATE_LIMIT_ENABLED:
    app.add_middleware(RateLimitMiddleware, default_limit=settings.RATE_LIMIT_PER_MINUTE, window=60)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code}",
        extra={"extra_fields": {
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": elapsed_ms,
        }},
    )
    response.headers["X-Process-Time"] = str(elapsed_ms / 1000)
    return response


# =============================================================================
# ERROR RENDERING: every failure body is {error, message, ...}
# =============================================================================

@app.exception_handler(APIException)
async def api_exception_handler(request: Request, exc: APIException):
    return JSONResponse(status_code=exc.status_code, content=exc.to_body(), headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed JSON and wrongly typed fields are plain bad requests."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": BAD_REQUEST, "message": f"{location}: {message}" if location else message},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"Unhandled error on {request.method} {request.url.path}: {exc}",
        exc_info=exc,
        extra={"extra_fields": {"method": request.method, "path": request.url.path}},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": INTERNAL_ERROR, "message": "Internal server error"},
    )


# =============================================================================
# PROBES
# =============================================================================

@app.get("/health")
def health():
    """503 when the database is unreachable, else 200."""
    if not check_db_connection():
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "database": "unavailable"},
        )
    return {"status": "healthy", "timestamp": time.time()}


@app.get("/ping")
def ping():
    return {"pong": True}


app.include_router(chat.router)
app.include_router(coaches.router)
app.include_router(profile.router)
