"""
tests/test_captcha_client.py — Unit tests for reCAPTCHA verification
"""
from __future__ import annotations

from urllib.parse import parse_qs

import httpx
import pytest

from scpb_site.clients.captcha_client import CaptchaClient
from scpb_site.config import CaptchaSettings
from scpb_site.core.errors import CaptchaError
from scpb_site.models import RouteClass

VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"


@pytest.fixture
async def captcha_client():
    client = CaptchaClient(CaptchaSettings(secret_key="captcha-secret"))
    yield client
    await client.aclose()


def google(**body) -> httpx.Response:
    return httpx.Response(200, json=body)


async def test_valid_token_passes(captcha_client, respx_mock):
    route = respx_mock.post(VERIFY_URL).mock(
        return_value=google(success=True, score=0.9, action="contact_submit")
    )
    result = await captcha_client.verify("tok", RouteClass.CONTACT, remote_ip="203.0.113.5")

    assert result.success
    assert result.score == 0.9
    form = parse_qs(route.calls.last.request.content.decode())
    assert form == {"secret": ["captcha-secret"], "response": ["tok"], "remoteip": ["203.0.113.5"]}


async def test_unknown_client_ip_is_not_sent(captcha_client, respx_mock):
    route = respx_mock.post(VERIFY_URL).mock(
        return_value=google(success=True, score=0.9, action="rfq_submit")
    )
    await captcha_client.verify("tok", RouteClass.RFQ, remote_ip="unknown")
    assert "remoteip" not in parse_qs(route.calls.last.request.content.decode())


@pytest.mark.parametrize("body", [
    {"success": True, "score": 0.3, "action": "contact_submit"},
    {"success": True, "score": 0.9, "action": "newsletter_subscribe"},
    {"success": False, "error-codes": ["timeout-or-duplicate"]},
    {"success": True, "action": "contact_submit"},
])
async def test_rejected_tokens(captcha_client, respx_mock, body):
    respx_mock.post(VERIFY_URL).mock(return_value=httpx.Response(200, json=body))
    result = await captcha_client.verify("tok", RouteClass.CONTACT)
    assert not result.success


async def test_http_error_is_a_failed_result(captcha_client, respx_mock):
    respx_mock.post(VERIFY_URL).mock(return_value=httpx.Response(502))
    result = await captcha_client.verify("tok", RouteClass.NEWSLETTER)
    assert not result.success
    assert result.error_codes == ["HTTP_ERROR_502"]


async def test_unreachable_raises(captcha_client, respx_mock):
    respx_mock.post(VERIFY_URL).mock(side_effect=httpx.ConnectError("refused"))
    with pytest.raises(CaptchaError):
        await captcha_client.verify("tok", RouteClass.CONTACT)


def test_enabled_requires_secret():
    assert not CaptchaClient(CaptchaSettings()).enabled
