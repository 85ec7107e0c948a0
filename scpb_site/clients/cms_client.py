"""
scpb_site/clients/cms_client.py — Headless CMS (Strapi) REST client
Raw access to the content collections. Returns the untransformed records;
caching and mapping to domain entities live in services/content_gateway.py.
"""
from __future__ import annotations

import time
from typing import Any, Optional

import httpx

from scpb_site.core import logging as site_logging
from scpb_site.core.errors import UpstreamError, UpstreamErrorCode, UpstreamUnavailable

RawRecord = dict[str, Any]

_STATUS_CODES = {
    401: UpstreamErrorCode.UNAUTHORIZED,
    403: UpstreamErrorCode.UNAUTHORIZED,
    404: UpstreamErrorCode.NOT_FOUND,
    429: UpstreamErrorCode.RATE_LIMITED,
}


def _flatten(record: Any) -> RawRecord:
    """Accept both flat records and the {id, attributes} envelope."""
    if not isinstance(record, dict):
        raise UpstreamUnavailable(
            "CMS record is not an object",
            code=UpstreamErrorCode.INVALID_RESPONSE,
        )
    attributes = record.get("attributes")
    if isinstance(attributes, dict):
        return {"id": record.get("id"), **attributes}
    return record


class CMSClient:
    def __init__(
        self,
        base_url: str,
        api_token: str = "",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        headers = {"Content-Type": "application/json"}
        if api_token:
            headers["Authorization"] = f"Bearer {api_token}"
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._headers = headers

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch(self, endpoint: str, params: Optional[dict[str, Any]] = None) -> list[RawRecord]:
        """
        GET {base_url}/api{endpoint} and return the `data` records.
        Raises UpstreamError(NOT_FOUND) for 404 and UpstreamUnavailable for
        everything else that is not a usable 2xx JSON response.
        """
        url = f"{self.base_url}/api{endpoint}"
        started = time.monotonic()
        try:
            response = await self._client.get(url, params=params, headers=self._headers)
        except httpx.HTTPError as exc:
            site_logging.log_upstream_call(endpoint, None, _elapsed_ms(started), error=str(exc))
            raise UpstreamUnavailable(
                f"Failed to connect to CMS: {exc}",
                code=UpstreamErrorCode.CONNECTION_ERROR,
            ) from exc

        latency = _elapsed_ms(started)
        if response.status_code == 404:
            site_logging.log_upstream_call(endpoint, 404, latency, error="not found")
            raise UpstreamError(
                f"CMS endpoint not found: {endpoint}",
                code=UpstreamErrorCode.NOT_FOUND,
                status_code=404,
            )
        if not response.is_success:
            site_logging.log_upstream_call(endpoint, response.status_code, latency, error=response.reason_phrase)
            raise UpstreamUnavailable(
                f"CMS request failed: {response.status_code}",
                code=_STATUS_CODES.get(response.status_code, UpstreamErrorCode.UNKNOWN),
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            site_logging.log_upstream_call(endpoint, response.status_code, latency, error="invalid json")
            raise UpstreamUnavailable(
                "CMS returned invalid JSON",
                code=UpstreamErrorCode.INVALID_RESPONSE,
                status_code=response.status_code,
            ) from exc

        if not isinstance(payload, dict) or "data" not in payload:
            raise UpstreamUnavailable(
                "CMS response has no data field",
                code=UpstreamErrorCode.INVALID_RESPONSE,
                status_code=response.status_code,
            )

        site_logging.log_upstream_call(endpoint, response.status_code, latency)
        data = payload["data"]
        if data is None:
            return []
        if isinstance(data, list):
            return [_flatten(item) for item in data]
        return [_flatten(data)]

    # ── Collections ───────────────────────────────────────────────────────────

    async def fetch_products(self) -> list[RawRecord]:
        return await self.fetch("/products", {"populate": "*"})

    async def fetch_product_by_slug(self, slug: str) -> list[RawRecord]:
        return await self.fetch("/products", {"filters[slug][$eq]": slug, "populate": "*"})

    async def fetch_product_slugs(self) -> list[RawRecord]:
        return await self.fetch("/products", {"fields[0]": "slug"})

    async def fetch_articles(self, limit: Optional[int] = None) -> list[RawRecord]:
        params: dict[str, Any] = {"populate": "*", "sort": "published_at:desc"}
        if limit:
            params["pagination[limit]"] = limit
        return await self.fetch("/articles", params)

    async def fetch_article_by_slug(self, slug: str) -> list[RawRecord]:
        return await self.fetch("/articles", {"filters[slug][$eq]": slug, "populate": "*"})

    async def fetch_article_slugs(self) -> list[RawRecord]:
        return await self.fetch("/articles", {"fields[0]": "slug"})

    async def fetch_team_members(self) -> list[RawRecord]:
        return await self.fetch("/team-members", {"populate": "*", "sort": "order:asc"})

    async def fetch_export_statistics(self) -> list[RawRecord]:
        return await self.fetch("/export-statistics", {"populate": "*"})


def _elapsed_ms(started: float) -> float:
    return (time.monotonic() - started) * 1000
