"""
scpb_site/dependencies.py — FastAPI dependency getters
Services are built once in main.lifespan and stored on app.state;
routes receive them through these getters so tests can swap any of them.
"""
from __future__ import annotations

from fastapi import Request

from scpb_site.clients.captcha_client import CaptchaClient
from scpb_site.clients.email_client import EmailClient
from scpb_site.config import Settings
from scpb_site.core.rate_limiter import SlidingWindowLimiter
from scpb_site.services.content_gateway import ContentGateway
from scpb_site.services.newsletter import NewsletterRegistry


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_form_limiter(request: Request) -> SlidingWindowLimiter:
    return request.app.state.form_limiter


def get_gateway(request: Request) -> ContentGateway:
    return request.app.state.gateway


def get_email_client(request: Request) -> EmailClient:
    return request.app.state.email_client


def get_captcha_client(request: Request) -> CaptchaClient:
    return request.app.state.captcha_client


def get_newsletter_registry(request: Request) -> NewsletterRegistry:
    return request.app.state.newsletter
