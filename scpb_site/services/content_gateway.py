"""
scpb_site/services/content_gateway.py — Cached access to site content
Every read goes through ContentCache under a fixed key per entity kind,
so the revalidation webhook can drop entries by prefix:
  products, product:{slug}, product-slugs,
  articles:{limit|all}, article:{slug}, article-slugs,
  team-members, export-statistics
Locale is accepted for symmetry with the site routes but does not change
the upstream request or the cache key: records carry every locale.
"""
from __future__ import annotations

from typing import Awaitable, Callable, Optional, TypeVar

from loguru import logger

from scpb_site.clients.cms_client import CMSClient, RawRecord
from scpb_site.core.content_cache import ContentCache
from scpb_site.core.errors import UpstreamError, UpstreamErrorCode
from scpb_site.models import (
    DEFAULT_LOCALE,
    SUPPORTED_LOCALES,
    Article,
    ArticleListItem,
    ExportStatistics,
    Product,
    TeamMember,
)
from scpb_site.utils import transformers

T = TypeVar("T")

# Cache keys per content type, used for targeted revalidation
CACHE_KEYS: dict[str, tuple[str, ...]] = {
    "product": ("products", "product-slugs"),
    "article": ("article-slugs",),
    "team": ("team-members",),
    "statistics": ("export-statistics",),
}
CACHE_PREFIXES: dict[str, tuple[str, ...]] = {
    "article": ("articles:",),
}
DETAIL_PREFIXES = {"product": "product:", "article": "article:"}


def check_locale(locale: str) -> str:
    if locale not in SUPPORTED_LOCALES:
        raise ValueError(f"Unsupported locale: {locale}")
    return locale


async def _or_empty(fetch: Callable[[], Awaitable[list[RawRecord]]]) -> list[RawRecord]:
    """A 404 from the CMS means no content, not an outage."""
    try:
        return await fetch()
    except UpstreamError as exc:
        if exc.code == UpstreamErrorCode.NOT_FOUND and exc.status_code == 404:
            return []
        raise


class ContentGateway:
    def __init__(
        self,
        cms: CMSClient,
        cache: ContentCache,
        load_timeout: Optional[float] = None,
    ) -> None:
        self._cms = cms
        self.cache = cache
        self._load_timeout = load_timeout

    async def _cached(self, key: str, loader: Callable[[], Awaitable[T]]) -> T:
        return await self.cache.get_or_load(key, loader, timeout=self._load_timeout)

    # ── Products ──────────────────────────────────────────────────────────────

    async def list_products(self, locale: str = DEFAULT_LOCALE.value) -> list[Product]:
        check_locale(locale)

        async def load() -> list[Product]:
            records = await _or_empty(self._cms.fetch_products)
            return [transformers.transform_product(record) for record in records]

        return await self._cached("products", load)

    async def get_product_by_slug(
        self, slug: str, locale: str = DEFAULT_LOCALE.value
    ) -> Optional[Product]:
        check_locale(locale)

        async def load() -> Optional[Product]:
            records = await _or_empty(lambda: self._cms.fetch_product_by_slug(slug))
            return transformers.transform_product(records[0]) if records else None

        return await self._cached(f"product:{slug}", load)

    async def list_product_slugs(self) -> list[str]:
        async def load() -> list[str]:
            return transformers.extract_slugs(await _or_empty(self._cms.fetch_product_slugs))

        return await self._cached("product-slugs", load)

    # ── Articles ──────────────────────────────────────────────────────────────

    async def list_articles(
        self, locale: str = DEFAULT_LOCALE.value, limit: Optional[int] = None
    ) -> list[ArticleListItem]:
        check_locale(locale)

        async def load() -> list[ArticleListItem]:
            records = await _or_empty(lambda: self._cms.fetch_articles(limit))
            return [transformers.transform_article_list_item(record) for record in records]

        return await self._cached(f"articles:{limit or 'all'}", load)

    async def get_article_by_slug(
        self, slug: str, locale: str = DEFAULT_LOCALE.value
    ) -> Optional[Article]:
        check_locale(locale)

        async def load() -> Optional[Article]:
            records = await _or_empty(lambda: self._cms.fetch_article_by_slug(slug))
            return transformers.transform_article(records[0]) if records else None

        return await self._cached(f"article:{slug}", load)

    async def list_article_slugs(self) -> list[str]:
        async def load() -> list[str]:
            return transformers.extract_slugs(await _or_empty(self._cms.fetch_article_slugs))

        return await self._cached("article-slugs", load)

    # ── Team ──────────────────────────────────────────────────────────────────

    async def list_team_members(self, locale: str = DEFAULT_LOCALE.value) -> list[TeamMember]:
        check_locale(locale)

        async def load() -> list[TeamMember]:
            records = await _or_empty(self._cms.fetch_team_members)
            members = [transformers.transform_team_member(record) for record in records]
            return transformers.sort_team_members(members)

        return await self._cached("team-members", load)

    # ── Statistics ────────────────────────────────────────────────────────────

    async def get_export_statistics(self) -> Optional[ExportStatistics]:
        """
        The single statistics record, or None when the CMS has none or
        cannot be reached with nothing cached; the site then shows its
        built-in figures.
        """

        async def load() -> Optional[ExportStatistics]:
            records = await _or_empty(self._cms.fetch_export_statistics)
            return transformers.transform_export_statistics(records[0]) if records else None

        try:
            return await self._cached("export-statistics", load)
        except UpstreamError as exc:
            logger.warning(f"Export statistics unavailable: {exc}")
            return None

    # ── Revalidation ──────────────────────────────────────────────────────────

    def invalidate(self, content_type: str, slug: Optional[str] = None) -> tuple[list[str], int]:
        """
        Drop cached entries for one content type ("product", "article",
        "team", "statistics" or "all"). With a slug only that entity's detail entry is
        dropped along with the listings. Returns (keys/prefixes, entries removed).
        """
        if content_type == "all":
            return ["*"], self.cache.invalidate_all()

        keys = list(CACHE_KEYS[content_type])
        prefixes = list(CACHE_PREFIXES.get(content_type, ()))
        if slug and content_type in DETAIL_PREFIXES:
            keys.append(f"{DETAIL_PREFIXES[content_type]}{slug}")
        elif content_type in DETAIL_PREFIXES:
            prefixes.append(DETAIL_PREFIXES[content_type])

        removed = sum(int(self.cache.invalidate(key)) for key in keys)
        removed += sum(self.cache.invalidate_prefix(prefix) for prefix in prefixes)
        return keys + prefixes, removed
