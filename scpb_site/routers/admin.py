"""
scpb_site/routers/admin.py — CMS webhook endpoints
POST /api/revalidate   — CMS publish hook, drops cached content by type/slug
POST /api/clear-cache  — drops every cached entry
Both are secret-protected and throttled per client IP.
"""

import secrets
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from loguru import logger

from scpb_site.config import Settings
from scpb_site.core.rate_limiter import RATE_LIMITS, limiter
from scpb_site.dependencies import get_app_settings, get_gateway
from scpb_site.models import RevalidateRequest, RevalidateResponse
from scpb_site.services.content_gateway import ContentGateway

router = APIRouter()


def _check_secret(provided: Optional[str], settings: Settings) -> None:
    expected = settings.revalidate_secret
    if not expected or not provided or not secrets.compare_digest(provided, expected):
        logger.warning("Cache webhook called with an invalid secret")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid secret",
        )


# ──────────────────────────────────────────────────────────────────────────────
# POST /api/revalidate
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/revalidate", response_model=RevalidateResponse)
@limiter.limit(RATE_LIMITS["admin"])
async def revalidate(
    request: Request,
    body: RevalidateRequest,
    settings: Settings = Depends(get_app_settings),
    gateway: ContentGateway = Depends(get_gateway),
) -> RevalidateResponse:
    """
    Drop cached entries for the changed content type. A tag is accepted
    as an alias for a content type ("products" → product, ...).
    Without type or tag everything is dropped.
    """
    _check_secret(body.secret, settings)

    content_type = body.type.value if body.type else _type_from_tag(body.tag)
    prefixes, removed = gateway.invalidate(content_type, body.slug)
    logger.info(f"Revalidated {content_type} (slug={body.slug}): {removed} cache entries dropped")
    return RevalidateResponse(
        revalidated=True,
        prefixes=prefixes,
        invalidated=removed,
        timestamp=datetime.now(timezone.utc),
    )


def _type_from_tag(tag: Optional[str]) -> str:
    tags = {
        "product": "product",
        "products": "product",
        "article": "article",
        "articles": "article",
        "team": "team",
        "team-members": "team",
        "statistics": "statistics",
        "export-statistics": "statistics",
    }
    return tags.get((tag or "").lower(), "all")


# ──────────────────────────────────────────────────────────────────────────────
# POST /api/clear-cache
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/clear-cache", response_model=RevalidateResponse)
@limiter.limit(RATE_LIMITS["admin"])
async def clear_cache(
    request: Request,
    x_revalidate_secret: Optional[str] = Header(None, alias="X-Revalidate-Secret"),
    settings: Settings = Depends(get_app_settings),
    gateway: ContentGateway = Depends(get_gateway),
) -> RevalidateResponse:
    _check_secret(x_revalidate_secret, settings)
    removed = gateway.cache.invalidate_all()
    logger.info(f"Content cache cleared: {removed} entries dropped")
    return RevalidateResponse(
        revalidated=True,
        prefixes=["*"],
        invalidated=removed,
        timestamp=datetime.now(timezone.utc),
    )
