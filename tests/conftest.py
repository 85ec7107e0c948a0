"""
tests/conftest.py — Shared pytest fixtures
"""
from __future__ import annotations

from typing import Any, Optional

import httpx
import pytest
from fakeredis import aioredis as fake_aioredis

from scpb_site.clients.captcha_client import CaptchaResult
from scpb_site.clients.cms_client import CMSClient
from scpb_site.clients.email_client import SendResult
from scpb_site.config import CaptchaSettings, EmailSettings, Settings
from scpb_site.core.content_cache import ContentCache
from scpb_site.core.rate_limiter import SlidingWindowLimiter, limiter
from scpb_site.main import app
from scpb_site.services.content_gateway import ContentGateway
from scpb_site.services.newsletter import NewsletterRegistry

CMS_BASE = "https://cms.test"


class FakeClock:
    """Manually advanced time source, in seconds."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeEmailClient:
    """Records sends instead of calling Resend."""

    def __init__(self, configured: bool = True, fail: bool = False) -> None:
        self.config = EmailSettings(resend_api_key="re_test" if configured else "")
        self.fail = fail
        self.sent: list[dict[str, Any]] = []

    @property
    def configured(self) -> bool:
        return bool(self.config.resend_api_key)

    async def send(self, to, subject, html, text, reply_to=None, template="generic") -> SendResult:
        self.sent.append({
            "to": to,
            "subject": subject,
            "html": html,
            "text": text,
            "reply_to": reply_to,
            "template": template,
        })
        if self.fail:
            return SendResult(success=False, error="HTTP 500")
        return SendResult(success=True, message_id=f"msg_{len(self.sent)}")


class FakeCaptchaClient:
    def __init__(self, success: bool = True, enabled: bool = True) -> None:
        self.config = CaptchaSettings(secret_key="secret" if enabled else "")
        self.success = success
        self.calls: list[tuple[str, str]] = []

    @property
    def enabled(self) -> bool:
        return bool(self.config.secret_key)

    async def verify(self, token, route_class, remote_ip: Optional[str] = None) -> CaptchaResult:
        self.calls.append((token, route_class.value))
        return CaptchaResult(success=self.success, score=0.9 if self.success else 0.1)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def redis_client():
    client = fake_aioredis.FakeRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
def form_limiter(redis_client, clock) -> SlidingWindowLimiter:
    return SlidingWindowLimiter(redis_client, clock=clock)


@pytest.fixture
def content_cache(clock) -> ContentCache:
    return ContentCache(ttl_seconds=3600, clock=clock)


@pytest.fixture
async def cms_client():
    client = CMSClient(base_url=CMS_BASE + "/", api_token="token-123", timeout=2.0)
    yield client
    await client.aclose()


@pytest.fixture
def gateway(cms_client, content_cache) -> ContentGateway:
    return ContentGateway(cms_client, content_cache)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        environment="testing",
        revalidate_secret="reval-secret",
        email=EmailSettings(resend_api_key="re_test", contact_to="contact@ste-scpb.com"),
    )


@pytest.fixture
def newsletter_registry(clock) -> NewsletterRegistry:
    return NewsletterRegistry(clock=clock)


# ──────────────────────────────────────────────────────────────────────────────
# Raw CMS records
# ──────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def raw_product() -> dict:
    return {
        "id": 1,
        "slug": "cacao",
        "name_fr": "Fèves de cacao",
        "name_en": "Cocoa beans",
        "description_fr": "Cacao du Cameroun",
        "description_en": "Cameroon cocoa",
        "category": "cacao",
        "origin": ["Centre", "Sud"],
        "season": "Oct-Mar",
        "certifications": ["fairtrade"],
        "packaging_options": ["jute-pe"],
        "images": [{"url": "/uploads/cacao.jpg", "alt_fr": "Cacao", "alt_en": "Cocoa", "width": 800, "height": 600}],
        "constellation_config": None,
        "related_products": [{"id": 2, "slug": "cafe"}],
        "createdAt": "2024-01-10T08:00:00.000Z",
        "updatedAt": "2024-02-01T08:00:00.000Z",
    }


@pytest.fixture
def raw_article() -> dict:
    return {
        "id": 7,
        "slug": "recolte-2024",
        "title_fr": "Récolte 2024",
        "title_en": "2024 harvest",
        "excerpt_fr": "Bilan",
        "excerpt_en": "Review",
        "content_fr": "Contenu",
        "content_en": "Content",
        "featured_image": None,
        "category": {"id": 3, "slug": "marche", "name_fr": "Marché", "name_en": "Market"},
        "tags": [{"id": 4, "slug": "cacao", "name_fr": "Cacao", "name_en": "Cocoa"}],
        "author": None,
        "published_at": "2024-03-01T10:00:00.000Z",
        "createdAt": "2024-02-28T10:00:00.000Z",
        "updatedAt": "2024-03-01T10:00:00.000Z",
    }


@pytest.fixture
def raw_team() -> list[dict]:
    return [
        {"id": 1, "name": "Alice", "role_fr": "Logistique", "role_en": "Logistics",
         "bio_fr": "", "bio_en": "", "photo": None, "is_ceo": False, "order": 1},
        {"id": 2, "name": "Bruno", "role_fr": "Directeur", "role_en": "CEO",
         "bio_fr": "", "bio_en": "", "photo": {"url": "/b.jpg", "alt_en": "Bruno", "width": 100, "height": 100},
         "is_ceo": True, "order": 5},
        {"id": 3, "name": "Chantal", "role_fr": "Ventes", "role_en": "Sales",
         "bio_fr": "", "bio_en": "", "photo": None, "is_ceo": False, "order": 0},
    ]


@pytest.fixture
def raw_statistics() -> dict:
    return {
        "id": 1,
        "lastUpdated": "2024-06-30",
        "kpi": {"tonnesExported": 30000, "countriesServed": 5, "producerPartners": 20, "tracedLots": 95},
        "exportsByRegion": [
            {"region": "eu", "percentage": 55, "countries": ["France", "Belgique"]},
            {"region": "oceania", "percentage": 3},
        ],
        "topDestinations": [{"country": "France", "countryCode": "FR", "percentage": 30, "port": "Le Havre"}],
        "monthlyVolumes": [{"month": "Jan", "year": 2024, "volume": 2400}],
        "productMix": [{"product": "Cacao", "slug": "cacao", "volume": 18000, "percentage": 60, "color": "#8B4513"}],
    }


@pytest.fixture
def fake_email() -> FakeEmailClient:
    return FakeEmailClient()


@pytest.fixture
def fake_captcha() -> FakeCaptchaClient:
    return FakeCaptchaClient()


# ──────────────────────────────────────────────────────────────────────────────
# HTTP app with test doubles on app.state
# ──────────────────────────────────────────────────────────────────────────────

@pytest.fixture
async def api_client(
    test_settings,
    redis_client,
    form_limiter,
    gateway,
    fake_email,
    fake_captcha,
    newsletter_registry,
):
    app.state.settings = test_settings
    app.state.redis = redis_client
    app.state.form_limiter = form_limiter
    app.state.gateway = gateway
    app.state.email_client = fake_email
    app.state.captcha_client = fake_captcha
    app.state.newsletter = newsletter_registry
    limiter.reset()

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
