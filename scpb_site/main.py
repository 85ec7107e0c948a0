"""
scpb_site/main.py — FastAPI application entry point
Includes: lifespan wiring of shared services, CORS, admin rate limiting,
          security headers, startup validation, ping and health endpoints.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from redis.exceptions import RedisError
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from scpb_site.clients.captcha_client import CaptchaClient
from scpb_site.clients.cms_client import CMSClient
from scpb_site.clients.email_client import EmailClient
from scpb_site.config import Settings, get_settings
from scpb_site.core.content_cache import ContentCache
from scpb_site.core.errors import UpstreamUnavailable
from scpb_site.core.logging import log_error, setup_logging
from scpb_site.core.rate_limiter import (
    RATE_LIMITS,
    SlidingWindowLimiter,
    limiter,
    policies_from_settings,
)
from scpb_site.core.redis_client import create_redis_client
from scpb_site.routers import admin, content, forms
from scpb_site.services.content_gateway import ContentGateway
from scpb_site.services.newsletter import NewsletterRegistry

settings = get_settings()


# ──────────────────────────────────────────────────────────────────────────────
# Service wiring
# ──────────────────────────────────────────────────────────────────────────────

def build_services(app: FastAPI, config: Settings) -> None:
    """Construct every shared service once and attach it to app.state."""
    redis = create_redis_client(config.redis)
    cms = CMSClient(
        base_url=config.cms.base_url,
        api_token=config.cms.api_token,
        timeout=config.cms.timeout_seconds,
    )
    cache = ContentCache(ttl_seconds=config.cache_ttl_seconds)

    app.state.settings = config
    app.state.redis = redis
    app.state.cms = cms
    app.state.form_limiter = SlidingWindowLimiter(
        redis,
        policies=policies_from_settings(config.rate_limits),
        timeout=config.redis.timeout_seconds,
    )
    app.state.gateway = ContentGateway(cms, cache, load_timeout=config.cms.timeout_seconds)
    app.state.email_client = EmailClient(config.email)
    app.state.captcha_client = CaptchaClient(config.captcha)
    app.state.newsletter = NewsletterRegistry()


async def close_services(app: FastAPI) -> None:
    for name in ("cms", "email_client", "captcha_client"):
        client = getattr(app.state, name, None)
        if client is not None:
            await client.aclose()
    redis = getattr(app.state, "redis", None)
    if redis is not None:
        await redis.aclose()


# ──────────────────────────────────────────────────────────────────────────────
# Application Lifespan
# ──────────────────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    FastAPI lifespan: startup → yield → shutdown.
    Startup: configure logging, validate critical env vars, build services.
    """
    setup_logging(settings.log_level)
    logger.info(f"{settings.site_name} site backend starting up ({settings.environment})...")

    _validate_env(settings)
    build_services(app, settings)

    logger.info("Startup complete.")
    yield
    logger.info("Shutting down.")
    await close_services(app)


def _validate_env(config: Settings) -> list[str]:
    """
    Log loudly about missing secrets. The app still starts: content reads
    and the limiter work without email or captcha credentials.
    """
    if config.is_development:
        logger.warning(
            "ENVIRONMENT is development: captcha and email checks are relaxed "
            "and cached content expires after a minute. Set ENVIRONMENT=production for deploys."
        )

    required = [
        (config.cms.api_token, "CMS__API_TOKEN"),
        (config.email.resend_api_key, "EMAIL__RESEND_API_KEY"),
        (config.email.contact_to or config.email.sales_to, "EMAIL__CONTACT_TO"),
        (config.revalidate_secret, "REVALIDATE_SECRET"),
    ]
    if config.is_production:
        required.append((config.captcha.secret_key, "CAPTCHA__SECRET_KEY"))

    missing = [env_name for value, env_name in required if not value]
    if missing:
        logger.critical(f"Missing env vars: {', '.join(missing)}")
        logger.warning("App will start but affected features will be unavailable until credentials are set.")
    return missing


# ──────────────────────────────────────────────────────────────────────────────
# FastAPI App
# ──────────────────────────────────────────────────────────────────────────────

app = FastAPI(
    title="STE-SCPB Site Backend",
    description=(
        "Content API, lead capture forms and cache webhooks for the "
        "STE-SCPB bilingual export site."
    ),
    version=settings.version,
    docs_url="/docs" if settings.environment != "production" else None,
    redoc_url=None,
    lifespan=lifespan,
)

# ── Rate limiting: admin, content and health endpoints (forms use SlidingWindowLimiter) ─
app.state.limiter = limiter
app.add_exception_handler(
    RateLimitExceeded,
    lambda req, exc: JSONResponse(
        status_code=429,
        content={"error": "Rate limit exceeded. Slow down."},
    ),
)
app.add_middleware(SlowAPIMiddleware)


@app.exception_handler(UpstreamUnavailable)
async def upstream_unavailable_handler(request: Request, exc: UpstreamUnavailable) -> JSONResponse:
    log_error("content", request.url.path, exc, context={"code": exc.code})
    return JSONResponse(
        status_code=503,
        content={"error": "Content temporarily unavailable"},
    )


# ── CORS ──────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.environment == "development" else [settings.base_url],
    allow_credentials=False,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

# ── Security headers middleware ───────────────────────────────────────────────
@app.middleware("http")
async def add_security_headers(request: Request, call_next) -> Response:
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    if settings.environment == "production":
        response.headers["Strict-Transport-Security"] = (
            "max-age=31536000; includeSubDomains"
        )
    return response


# ── Routers ───────────────────────────────────────────────────────────────────
app.include_router(forms.router, prefix="/api", tags=["forms"])
app.include_router(admin.router, prefix="/api", tags=["admin"])
app.include_router(content.router, prefix="/api", tags=["content"])


# ── Health ────────────────────────────────────────────────────────────────────
@app.get("/api/ping", tags=["health"])
async def ping():
    """Keep-alive probe. Does NOT call any external services."""
    return {"status": "ok", "version": settings.version}


@app.get("/api/health", tags=["health"])
@limiter.limit(RATE_LIMITS["health"])
async def health(request: Request):
    """Redis reachability and cache size. Never calls the CMS."""
    redis_ok = True
    try:
        await request.app.state.redis.ping()
    except (RedisError, OSError) as exc:
        logger.warning(f"Health check: Redis unreachable: {exc}")
        redis_ok = False
    return {
        "status": "ok" if redis_ok else "degraded",
        "redis": "ok" if redis_ok else "unreachable",
        "cache_entries": len(request.app.state.gateway.cache),
        "version": settings.version,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("scpb_site.main:app", host="0.0.0.0", port=settings.port)
