"""
scpb_site/config.py — Pydantic BaseSettings configuration
Grouped settings for the CMS, content cache, Redis counter store,
form rate limits, transactional email and captcha verification.
Nested groups are read from env vars with a "__" delimiter,
e.g. CMS__BASE_URL, REDIS__URL, RATE_LIMITS__CONTACT__LIMIT.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CMSSettings(BaseModel):
    base_url: str = "http://localhost:1337"
    api_token: str = ""
    timeout_seconds: float = 10.0


class CacheSettings(BaseModel):
    ttl_seconds: int = Field(default=3600, gt=0)
    # Shorter TTL while editing content locally
    dev_ttl_seconds: int = Field(default=60, gt=0)


class RedisSettings(BaseModel):
    url: str = "redis://localhost:6379/0"
    token: Optional[str] = None
    timeout_seconds: float = 2.0


class RatePolicySettings(BaseModel):
    limit: int = Field(gt=0)
    window_seconds: int = Field(gt=0)


class RateLimitSettings(BaseModel):
    contact: RatePolicySettings = RatePolicySettings(limit=5, window_seconds=3600)
    rfq: RatePolicySettings = RatePolicySettings(limit=10, window_seconds=3600)
    newsletter: RatePolicySettings = RatePolicySettings(limit=3, window_seconds=3600)


class EmailSettings(BaseModel):
    resend_api_key: str = ""
    api_url: str = "https://api.resend.com/emails"
    from_email: str = "noreply@ste-scpb.com"
    from_name: str = "STE-SCPB"
    contact_to: str = ""
    sales_to: str = ""
    max_attempts: int = 3


class CaptchaSettings(BaseModel):
    secret_key: str = ""
    verify_url: str = "https://www.google.com/recaptcha/api/siteverify"
    score_threshold: float = 0.5


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    # ── Application ────────────────────────────────────────────────────────────
    environment: str = "development"
    log_level: str = "INFO"
    port: int = 8000
    site_name: str = "STE-SCPB"
    base_url: str = "https://ste-scpb.com"
    version: str = "1.0.0"

    # ── Upstream CMS ───────────────────────────────────────────────────────────
    cms: CMSSettings = CMSSettings()

    # ── Content cache ──────────────────────────────────────────────────────────
    cache: CacheSettings = CacheSettings()

    # ── Shared counter store ───────────────────────────────────────────────────
    redis: RedisSettings = RedisSettings()

    # ── Form rate limits (per client IP) ───────────────────────────────────────
    rate_limits: RateLimitSettings = RateLimitSettings()

    # ── Transactional email (Resend) ───────────────────────────────────────────
    email: EmailSettings = EmailSettings()

    # ── reCAPTCHA v3 ───────────────────────────────────────────────────────────
    captcha: CaptchaSettings = CaptchaSettings()

    # ── Admin webhooks ─────────────────────────────────────────────────────────
    revalidate_secret: str = ""
    admin_rate_limit: str = "10/minute"

    @field_validator("environment")
    @classmethod
    def validate_env(cls, v: str) -> str:
        allowed = {"development", "production", "testing"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def cache_ttl_seconds(self) -> int:
        if self.is_development:
            return self.cache.dev_ttl_seconds
        return self.cache.ttl_seconds


@lru_cache()
def get_settings() -> Settings:
    """Return cached Settings instance. Use this everywhere."""
    return Settings()
