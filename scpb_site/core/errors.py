"""
scpb_site/core/errors.py — Exception hierarchy
Every error raised across a component boundary carries a machine-readable
code, a human message and optional details for structured logging.
"""
from __future__ import annotations

from typing import Any, Optional


class SiteError(Exception):
    """Base class for all site errors."""

    code = "SITE_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_type": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


# ──────────────────────────────────────────────────────────────────────────────
# Upstream CMS
# ──────────────────────────────────────────────────────────────────────────────

class UpstreamErrorCode:
    CONNECTION_ERROR = "CONNECTION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    RATE_LIMITED = "RATE_LIMITED"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    UNKNOWN = "UNKNOWN"


class UpstreamError(SiteError):
    code = UpstreamErrorCode.UNKNOWN

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code=code, details=details)
        self.status_code = status_code


class UpstreamUnavailable(UpstreamError):
    """The CMS could not be reached or returned an unusable response."""


# ──────────────────────────────────────────────────────────────────────────────
# Rate limiting / client identification
# ──────────────────────────────────────────────────────────────────────────────

class LimiterStoreUnavailable(SiteError):
    """The shared counter store failed or timed out."""

    code = "LIMITER_STORE_UNAVAILABLE"


class InvalidClientHeader(SiteError):
    code = "INVALID_CLIENT_HEADER"


# ──────────────────────────────────────────────────────────────────────────────
# Outbound integrations
# ──────────────────────────────────────────────────────────────────────────────

class CaptchaError(SiteError):
    code = "CAPTCHA_UNAVAILABLE"
