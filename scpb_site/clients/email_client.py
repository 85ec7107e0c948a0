"""
scpb_site/clients/email_client.py — Resend transactional email client
Sends multipart (HTML + plain-text) mail through the Resend REST API.
Transient failures (transport errors, 429, 5xx) are retried with
exponential backoff; other 4xx responses fail immediately.
"""
from __future__ import annotations

import asyncio
from typing import Optional

import httpx
from pydantic import BaseModel

from scpb_site.config import EmailSettings
from scpb_site.core import logging as site_logging


class SendResult(BaseModel):
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class EmailClient:
    def __init__(
        self,
        config: EmailSettings,
        client: Optional[httpx.AsyncClient] = None,
        backoff_base: float = 1.0,
    ) -> None:
        self.config = config
        self._client = client or httpx.AsyncClient(timeout=10.0)
        self._backoff_base = backoff_base

    @property
    def configured(self) -> bool:
        return bool(self.config.resend_api_key)

    @property
    def sender(self) -> str:
        return f"{self.config.from_name} <{self.config.from_email}>"

    async def aclose(self) -> None:
        await self._client.aclose()

    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: str,
        reply_to: Optional[str] = None,
        template: str = "generic",
    ) -> SendResult:
        """Send one email. Never raises; the outcome is in the result."""
        if not self.configured:
            site_logging.log_email_send(template, False, 0, error="CONFIGURATION_ERROR")
            return SendResult(success=False, error="Email service is not configured")

        payload = {
            "from": self.sender,
            "to": [to],
            "subject": subject,
            "html": html,
            "text": text,
        }
        if reply_to:
            payload["reply_to"] = reply_to
        headers = {"Authorization": f"Bearer {self.config.resend_api_key}"}

        attempts = max(1, self.config.max_attempts)
        error = "unknown error"
        for attempt in range(attempts):
            try:
                response = await self._client.post(self.config.api_url, json=payload, headers=headers)
            except httpx.HTTPError as exc:
                error = f"transport error: {exc}"
            else:
                if response.is_success:
                    message_id = _message_id(response)
                    site_logging.log_email_send(template, True, attempt + 1, message_id=message_id)
                    return SendResult(success=True, message_id=message_id)
                error = _error_message(response)
                if response.status_code != 429 and response.status_code < 500:
                    site_logging.log_email_send(template, False, attempt + 1, error=error)
                    return SendResult(success=False, error=error)

            if attempt < attempts - 1:
                await asyncio.sleep(self._backoff_base * 2 ** attempt)

        site_logging.log_email_send(template, False, attempts, error=error)
        return SendResult(success=False, error=error)


def _message_id(response: httpx.Response) -> Optional[str]:
    # Accepted by Resend even when the body is unreadable
    try:
        body = response.json()
    except ValueError:
        return None
    return body.get("id") if isinstance(body, dict) else None


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict) and body.get("message"):
        return f"HTTP {response.status_code}: {body['message']}"
    return f"HTTP {response.status_code}"
