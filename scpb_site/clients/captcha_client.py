"""
scpb_site/clients/captcha_client.py — reCAPTCHA v3 verification
A token passes when Google reports success, the score meets the threshold
and the action matches the form it was issued for.
"""
from __future__ import annotations

from typing import Optional

import httpx
from pydantic import BaseModel, Field

from scpb_site.config import CaptchaSettings
from scpb_site.core.errors import CaptchaError
from scpb_site.models import RouteClass

CAPTCHA_ACTIONS = {
    RouteClass.CONTACT: "contact_submit",
    RouteClass.RFQ: "rfq_submit",
    RouteClass.NEWSLETTER: "newsletter_subscribe",
}


class CaptchaResult(BaseModel):
    success: bool
    score: float = 0.0
    action: str = ""
    error_codes: list[str] = Field(default_factory=list)


class CaptchaClient:
    def __init__(self, config: CaptchaSettings, client: Optional[httpx.AsyncClient] = None) -> None:
        self.config = config
        self._client = client or httpx.AsyncClient(timeout=5.0)

    @property
    def enabled(self) -> bool:
        return bool(self.config.secret_key)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def verify(
        self,
        token: str,
        route_class: RouteClass,
        remote_ip: Optional[str] = None,
    ) -> CaptchaResult:
        """
        Verify a token for the form's expected action.
        Raises CaptchaError when Google cannot be reached.
        """
        expected_action = CAPTCHA_ACTIONS[RouteClass(route_class)]
        data = {"secret": self.config.secret_key, "response": token}
        if remote_ip and remote_ip != "unknown":
            data["remoteip"] = remote_ip

        try:
            response = await self._client.post(self.config.verify_url, data=data)
        except httpx.HTTPError as exc:
            raise CaptchaError(f"reCAPTCHA verification unavailable: {exc}") from exc

        if not response.is_success:
            return CaptchaResult(
                success=False,
                action=expected_action,
                error_codes=[f"HTTP_ERROR_{response.status_code}"],
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise CaptchaError("reCAPTCHA returned invalid JSON") from exc

        score = body.get("score")
        passed = (
            body.get("success") is True
            and isinstance(score, (int, float))
            and score >= self.config.score_threshold
            and body.get("action") == expected_action
        )
        return CaptchaResult(
            success=passed,
            score=score if isinstance(score, (int, float)) else 0.0,
            action=body.get("action") or "",
            error_codes=body.get("error-codes") or [],
        )
