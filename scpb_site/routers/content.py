"""
scpb_site/routers/content.py — Read-only content endpoints
Served from the content cache. UpstreamUnavailable with nothing cached
propagates to the 503 handler registered in main.py.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from scpb_site.core.rate_limiter import RATE_LIMITS, limiter
from scpb_site.dependencies import get_gateway
from scpb_site.models import (
    SUPPORTED_LOCALES,
    Article,
    ArticleListItem,
    ExportStatistics,
    Product,
    TeamMember,
)
from scpb_site.services.content_gateway import ContentGateway

router = APIRouter()


def _check_locale(locale: str) -> str:
    if locale not in SUPPORTED_LOCALES:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown locale")
    return locale


# ── Products ──────────────────────────────────────────────────────────────────

@router.get("/products/slugs", response_model=list[str])
@limiter.limit(RATE_LIMITS["content"])
async def product_slugs(request: Request, gateway: ContentGateway = Depends(get_gateway)):
    return await gateway.list_product_slugs()


@router.get("/{locale}/products", response_model=list[Product])
@limiter.limit(RATE_LIMITS["content"])
async def list_products(request: Request, locale: str, gateway: ContentGateway = Depends(get_gateway)):
    return await gateway.list_products(_check_locale(locale))


@router.get("/{locale}/products/{slug}", response_model=Product)
@limiter.limit(RATE_LIMITS["content"])
async def get_product(request: Request, locale: str, slug: str, gateway: ContentGateway = Depends(get_gateway)):
    product = await gateway.get_product_by_slug(slug, _check_locale(locale))
    if product is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product


# ── Articles ──────────────────────────────────────────────────────────────────

@router.get("/articles/slugs", response_model=list[str])
@limiter.limit(RATE_LIMITS["content"])
async def article_slugs(request: Request, gateway: ContentGateway = Depends(get_gateway)):
    return await gateway.list_article_slugs()


@router.get("/{locale}/articles", response_model=list[ArticleListItem])
@limiter.limit(RATE_LIMITS["content"])
async def list_articles(
    request: Request,
    locale: str,
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    gateway: ContentGateway = Depends(get_gateway),
):
    return await gateway.list_articles(_check_locale(locale), limit)


@router.get("/{locale}/articles/{slug}", response_model=Article)
@limiter.limit(RATE_LIMITS["content"])
async def get_article(request: Request, locale: str, slug: str, gateway: ContentGateway = Depends(get_gateway)):
    article = await gateway.get_article_by_slug(slug, _check_locale(locale))
    if article is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Article not found")
    return article


# ── Team ──────────────────────────────────────────────────────────────────────

@router.get("/{locale}/team", response_model=list[TeamMember])
@limiter.limit(RATE_LIMITS["content"])
async def list_team(request: Request, locale: str, gateway: ContentGateway = Depends(get_gateway)):
    return await gateway.list_team_members(_check_locale(locale))


# ── Statistics ────────────────────────────────────────────────────────────────

@router.get("/statistics", response_model=ExportStatistics)
@limiter.limit(RATE_LIMITS["content"])
async def export_statistics(request: Request, gateway: ContentGateway = Depends(get_gateway)):
    statistics = await gateway.get_export_statistics()
    if statistics is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Statistics not available")
    return statistics
