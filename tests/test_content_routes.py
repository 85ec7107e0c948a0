"""
tests/test_content_routes.py — Integration tests for the content, health and admin endpoints
"""
from __future__ import annotations

import httpx

PRODUCTS_URL = "https://cms.test/api/products"
TEAM_URL = "https://cms.test/api/team-members"
STATISTICS_URL = "https://cms.test/api/export-statistics"


def strapi(data) -> httpx.Response:
    return httpx.Response(200, json={"data": data, "meta": {}})


async def test_list_products(api_client, respx_mock, raw_product):
    respx_mock.get(PRODUCTS_URL).mock(return_value=strapi([raw_product]))
    resp = await api_client.get("/api/en/products")
    assert resp.status_code == 200
    assert resp.json()[0]["slug"] == "cacao"
    assert resp.json()[0]["name"] == {"fr": "Fèves de cacao", "en": "Cocoa beans"}


async def test_unknown_locale_is_404(api_client):
    resp = await api_client.get("/api/de/products")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Unknown locale"


async def test_missing_product_is_404(api_client, respx_mock):
    respx_mock.get(PRODUCTS_URL).mock(return_value=strapi([]))
    resp = await api_client.get("/api/fr/products/vanille")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Product not found"


async def test_product_slugs_route(api_client, respx_mock):
    respx_mock.get(PRODUCTS_URL).mock(return_value=strapi([{"id": 1, "slug": "cacao"}]))
    resp = await api_client.get("/api/products/slugs")
    assert resp.json() == ["cacao"]


async def test_article_limit_is_bounded(api_client):
    resp = await api_client.get("/api/fr/articles", params={"limit": 0})
    assert resp.status_code == 422


async def test_team_route_sorted(api_client, respx_mock, raw_team):
    respx_mock.get(TEAM_URL).mock(return_value=strapi(raw_team))
    resp = await api_client.get("/api/fr/team")
    assert [member["name"] for member in resp.json()] == ["Bruno", "Chantal", "Alice"]


async def test_outage_without_cache_is_503(api_client, respx_mock):
    respx_mock.get(PRODUCTS_URL).mock(return_value=httpx.Response(502))
    resp = await api_client.get("/api/fr/products")
    assert resp.status_code == 503
    assert resp.json() == {"error": "Content temporarily unavailable"}


async def test_outage_with_stale_cache_is_200(api_client, respx_mock, raw_product, clock):
    route = respx_mock.get(PRODUCTS_URL)
    route.side_effect = [strapi([raw_product]), httpx.Response(502)]
    await api_client.get("/api/fr/products")
    clock.advance(7200)
    resp = await api_client.get("/api/fr/products")
    assert resp.status_code == 200
    assert resp.json()[0]["slug"] == "cacao"


async def test_security_headers(api_client):
    resp = await api_client.get("/api/ping")
    assert resp.json()["status"] == "ok"
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"


async def test_health_reports_cache_size(api_client, respx_mock, raw_product):
    respx_mock.get(PRODUCTS_URL).mock(return_value=strapi([raw_product]))
    await api_client.get("/api/fr/products")
    resp = await api_client.get("/api/health")
    assert resp.json()["redis"] == "ok"
    assert resp.json()["cache_entries"] == 1


# ──────────────────────────────────────────────────────────────────────────────
# Admin webhooks
# ──────────────────────────────────────────────────────────────────────────────

async def test_revalidate_rejects_bad_secret(api_client):
    resp = await api_client.post("/api/revalidate", json={"secret": "wrong"})
    assert resp.status_code == 401


async def test_revalidate_drops_product_entries(api_client, respx_mock, raw_product, gateway):
    route = respx_mock.get(PRODUCTS_URL).mock(return_value=strapi([raw_product]))
    await api_client.get("/api/fr/products")

    resp = await api_client.post(
        "/api/revalidate", json={"secret": "reval-secret", "tag": "products"}
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["revalidated"] is True
    assert body["invalidated"] == 1
    assert len(gateway.cache) == 0

    await api_client.get("/api/fr/products")
    assert route.call_count == 2


async def test_revalidate_without_type_clears_everything(api_client, respx_mock, raw_product, raw_team):
    respx_mock.get(PRODUCTS_URL).mock(return_value=strapi([raw_product]))
    respx_mock.get(TEAM_URL).mock(return_value=strapi(raw_team))
    await api_client.get("/api/fr/products")
    await api_client.get("/api/fr/team")

    resp = await api_client.post("/api/revalidate", json={"secret": "reval-secret"})
    assert resp.json()["prefixes"] == ["*"]
    assert resp.json()["invalidated"] == 2


async def test_clear_cache_uses_header_secret(api_client, respx_mock, raw_product):
    respx_mock.get(PRODUCTS_URL).mock(return_value=strapi([raw_product]))
    await api_client.get("/api/fr/products")

    denied = await api_client.post("/api/clear-cache")
    assert denied.status_code == 401

    resp = await api_client.post("/api/clear-cache", headers={"X-Revalidate-Secret": "reval-secret"})
    assert resp.status_code == 200
    assert resp.json()["invalidated"] == 1


async def test_revalidate_statistics_tag(api_client, respx_mock, raw_statistics, raw_product, gateway):
    route = respx_mock.get(STATISTICS_URL).mock(return_value=strapi(raw_statistics))
    respx_mock.get(PRODUCTS_URL).mock(return_value=strapi([raw_product]))
    await api_client.get("/api/statistics")
    await api_client.get("/api/fr/products")

    resp = await api_client.post(
        "/api/revalidate", json={"secret": "reval-secret", "tag": "export-statistics"}
    )
    assert resp.json()["invalidated"] == 1
    assert len(gateway.cache) == 1

    await api_client.get("/api/statistics")
    assert route.call_count == 2


# ──────────────────────────────────────────────────────────────────────────────
# Statistics
# ──────────────────────────────────────────────────────────────────────────────

async def test_statistics_route(api_client, respx_mock, raw_statistics):
    respx_mock.get(STATISTICS_URL).mock(return_value=strapi([raw_statistics]))
    resp = await api_client.get("/api/statistics")
    assert resp.status_code == 200
    body = resp.json()
    assert body["kpi"]["tonnes_exported"] == 30000
    assert body["top_destinations"][0]["port"] == "Le Havre"


async def test_statistics_unavailable_is_404(api_client, respx_mock):
    respx_mock.get(STATISTICS_URL).mock(return_value=httpx.Response(503))
    resp = await api_client.get("/api/statistics")
    assert resp.status_code == 404
