"""
scpb_site/routers/forms.py — Lead capture endpoints
POST /api/contact, /api/rfq, /api/sample-request, /api/newsletter and
GET /api/newsletter/confirm.
Every form runs the same pipeline:
  identify client → sliding-window limit → reCAPTCHA → validate → email → audit log
The limiter and reCAPTCHA fail open: an outage of either never blocks a lead.
Audit log entries carry no personal data.
"""

from datetime import datetime, timezone
from typing import Any, Optional, Type, TypeVar

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, ValidationError

from scpb_site.clients.captcha_client import CaptchaClient
from scpb_site.clients.email_client import EmailClient, SendResult
from scpb_site.config import Settings
from scpb_site.core import logging as site_logging
from scpb_site.core.client_ip import identify
from scpb_site.core.errors import CaptchaError, LimiterStoreUnavailable
from scpb_site.core.rate_limiter import SlidingWindowLimiter
from scpb_site.dependencies import (
    get_app_settings,
    get_captcha_client,
    get_email_client,
    get_form_limiter,
    get_newsletter_registry,
)
from scpb_site.models import (
    ContactSubmission,
    FormResponse,
    NewsletterSubscription,
    RFQSubmission,
    RouteClass,
    SampleRequestSubmission,
)
from scpb_site.services import notifications
from scpb_site.services.newsletter import NewsletterRegistry

router = APIRouter()

M = TypeVar("M", bound=BaseModel)


# ──────────────────────────────────────────────────────────────────────────────
# Shared pipeline steps
# ──────────────────────────────────────────────────────────────────────────────

def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


async def _read_json(request: Request) -> Optional[dict]:
    try:
        body = await request.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


async def _enforce_rate_limit(
    limiter: SlidingWindowLimiter,
    identity: str,
    route_class: RouteClass,
) -> Optional[JSONResponse]:
    """Return a 429 response when denied; None to continue."""
    try:
        result = await limiter.check(identity, route_class)
    except LimiterStoreUnavailable as exc:
        logger.warning(f"Rate limiter unavailable for {route_class.value}, allowing request: {exc}")
        return None

    if result.allowed:
        return None
    response = _error(
        status.HTTP_429_TOO_MANY_REQUESTS,
        "Trop de demandes. Veuillez réessayer plus tard.",
        retry_after=result.retry_after_seconds,
    )
    response.headers["Retry-After"] = str(result.retry_after_seconds)
    response.headers["X-RateLimit-Limit"] = str(result.limit)
    response.headers["X-RateLimit-Remaining"] = str(result.remaining)
    return response


async def _captcha_passes(
    captcha: CaptchaClient,
    settings: Settings,
    token: Any,
    route_class: RouteClass,
    identity: str,
) -> bool:
    """Verification only runs for a supplied token with a configured secret, outside development."""
    if not token or not isinstance(token, str) or not captcha.enabled or settings.is_development:
        return True
    try:
        result = await captcha.verify(token, route_class, remote_ip=identity)
    except CaptchaError as exc:
        logger.warning(f"reCAPTCHA unavailable for {route_class.value}, continuing: {exc}")
        return True
    return result.success


def _validate(model: Type[M], body: dict) -> tuple[Optional[M], dict[str, list[str]]]:
    try:
        return model.model_validate(body), {}
    except ValidationError as exc:
        errors: dict[str, list[str]] = {}
        for err in exc.errors():
            field = ".".join(str(part) for part in err["loc"]) or "__root__"
            errors.setdefault(field, []).append(err["msg"])
        return None, errors


def _email_failure_tolerated(settings: Settings, route: str, result: SendResult) -> bool:
    """In development a failed send is logged and the submission still succeeds."""
    if settings.is_development:
        logger.warning(f"[DEV] {route} email not sent ({result.error}); accepting submission")
        return True
    return False


def _request_locale(request: Request) -> str:
    return "en" if "en" in request.headers.get("accept-language", "") else "fr"


async def _guard(
    request: Request,
    route_class: RouteClass,
    limiter: SlidingWindowLimiter,
    captcha: CaptchaClient,
    settings: Settings,
    subject_field: Optional[str] = None,
) -> tuple[Optional[dict], Optional[JSONResponse]]:
    """Parse, rate limit and captcha-check a form post."""
    route = route_class.value
    identity = identify(request.headers)

    body = await _read_json(request)
    if body is None:
        site_logging.log_form_submission(route, False, "INVALID_BODY")
        return None, _error(status.HTTP_400_BAD_REQUEST, "Requête invalide")

    subject = body.get(subject_field) if subject_field else None
    subject = subject if isinstance(subject, str) else None

    denied = await _enforce_rate_limit(limiter, identity, route_class)
    if denied is not None:
        site_logging.log_form_submission(route, False, "RATE_LIMITED", subject=subject)
        return None, denied

    if not await _captcha_passes(captcha, settings, body.get("recaptchaToken"), route_class, identity):
        site_logging.log_form_submission(route, False, "RECAPTCHA_FAILED", subject=subject)
        return None, _error(
            status.HTTP_400_BAD_REQUEST,
            "Vérification de sécurité échouée. Veuillez réessayer.",
        )
    return body, None


# ──────────────────────────────────────────────────────────────────────────────
# POST /api/contact
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/contact", response_model=FormResponse)
async def submit_contact(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    limiter: SlidingWindowLimiter = Depends(get_form_limiter),
    captcha: CaptchaClient = Depends(get_captcha_client),
    email_client: EmailClient = Depends(get_email_client),
):
    submitted_at = datetime.now(timezone.utc)
    body, rejection = await _guard(request, RouteClass.CONTACT, limiter, captcha, settings, "subject")
    if rejection is not None:
        return rejection

    submission, errors = _validate(ContactSubmission, body)
    if submission is None:
        site_logging.log_form_submission("contact", False, "VALIDATION_FAILED")
        return _error(status.HTTP_400_BAD_REQUEST, "Données invalides", details=errors)

    recipient = settings.email.contact_to or settings.email.sales_to
    if not recipient or not email_client.configured:
        if not settings.is_development:
            logger.error("Contact form: no recipient or email API key configured")
            site_logging.log_form_submission("contact", False, "EMAIL_FAILED", subject=submission.subject)
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Erreur lors de l'envoi du message. Veuillez réessayer.")
        logger.info("[DEV] Email not configured; skipping contact notification")
    else:
        result = await notifications.send_contact_notification(
            email_client, recipient, submission, submitted_at, settings.site_name
        )
        if not result.success and not _email_failure_tolerated(settings, "contact", result):
            site_logging.log_form_submission("contact", False, "EMAIL_FAILED", subject=submission.subject)
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Erreur lors de l'envoi du message. Veuillez réessayer.")

    site_logging.log_form_submission("contact", True, subject=submission.subject)
    return FormResponse(message="Message envoyé avec succès")


# ──────────────────────────────────────────────────────────────────────────────
# POST /api/rfq
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/rfq", response_model=FormResponse)
async def submit_rfq(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    limiter: SlidingWindowLimiter = Depends(get_form_limiter),
    captcha: CaptchaClient = Depends(get_captcha_client),
    email_client: EmailClient = Depends(get_email_client),
):
    submitted_at = datetime.now(timezone.utc)
    body, rejection = await _guard(request, RouteClass.RFQ, limiter, captcha, settings)
    if rejection is not None:
        return rejection

    submission, errors = _validate(RFQSubmission, body)
    if submission is None:
        site_logging.log_form_submission("rfq", False, "VALIDATION_FAILED")
        return _error(status.HTTP_400_BAD_REQUEST, "Données invalides", details=errors)

    reference = notifications.generate_reference_id(submitted_at)
    locale = _request_locale(request)
    recipient = settings.email.sales_to or settings.email.contact_to

    if not recipient or not email_client.configured:
        if not settings.is_development:
            logger.error("RFQ form: no recipient or email API key configured")
            site_logging.log_form_submission("rfq", False, "EMAIL_FAILED")
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Erreur lors de l'envoi de la demande. Veuillez réessayer.")
        logger.info(f"[DEV] Email not configured; skipping RFQ notification {reference}")
    else:
        result = await notifications.send_rfq_notification(
            email_client, recipient, submission, submitted_at, reference, locale, settings.site_name
        )
        if not result.success and not _email_failure_tolerated(settings, "rfq", result):
            site_logging.log_form_submission("rfq", False, "EMAIL_FAILED")
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Erreur lors de l'envoi de la demande. Veuillez réessayer.")

        # The team already has the lead; a failed client confirmation is not fatal.
        confirmation = await notifications.send_rfq_confirmation(
            email_client, submission, submitted_at, reference, locale, settings.site_name
        )
        if not confirmation.success:
            logger.warning(f"RFQ {reference}: client confirmation failed: {confirmation.error}")

    site_logging.log_form_submission("rfq", True)
    return FormResponse(
        message="Demande de devis envoyée avec succès",
        reference=reference,
    )


# ──────────────────────────────────────────────────────────────────────────────
# POST /api/sample-request
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/sample-request", response_model=FormResponse)
async def submit_sample_request(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    limiter: SlidingWindowLimiter = Depends(get_form_limiter),
    captcha: CaptchaClient = Depends(get_captcha_client),
    email_client: EmailClient = Depends(get_email_client),
):
    """Free sample request. Shares the contact form's rate-limit bucket and captcha action."""
    submitted_at = datetime.now(timezone.utc)
    body, rejection = await _guard(request, RouteClass.CONTACT, limiter, captcha, settings)
    if rejection is not None:
        return rejection

    submission, errors = _validate(SampleRequestSubmission, body)
    if submission is None:
        site_logging.log_form_submission("sample_request", False, "VALIDATION_FAILED")
        return _error(status.HTTP_400_BAD_REQUEST, "Données invalides", details=errors)

    recipient = settings.email.contact_to or settings.email.sales_to
    if not recipient or not email_client.configured:
        if not settings.is_development:
            logger.error("Sample request form: no recipient or email API key configured")
            site_logging.log_form_submission("sample_request", False, "EMAIL_FAILED", subject=submission.product)
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Erreur lors de l'envoi de la demande")
        logger.info("[DEV] Email not configured; skipping sample request notification")
    else:
        result = await notifications.send_sample_notification(
            email_client, recipient, submission, submitted_at, settings.site_name
        )
        if not result.success and not _email_failure_tolerated(settings, "sample_request", result):
            site_logging.log_form_submission("sample_request", False, "EMAIL_FAILED", subject=submission.product)
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Erreur lors de l'envoi de la demande")

        confirmation = await notifications.send_sample_confirmation(
            email_client, submission, submitted_at, settings.site_name
        )
        if not confirmation.success:
            logger.warning(f"Sample request: client confirmation failed: {confirmation.error}")

    site_logging.log_form_submission("sample_request", True, subject=submission.product)
    return FormResponse(message="Demande envoyée avec succès")


# ──────────────────────────────────────────────────────────────────────────────
# POST /api/newsletter + GET /api/newsletter/confirm
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/newsletter", response_model=FormResponse)
async def subscribe_newsletter(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    limiter: SlidingWindowLimiter = Depends(get_form_limiter),
    captcha: CaptchaClient = Depends(get_captcha_client),
    email_client: EmailClient = Depends(get_email_client),
    registry: NewsletterRegistry = Depends(get_newsletter_registry),
):
    body, rejection = await _guard(request, RouteClass.NEWSLETTER, limiter, captcha, settings)
    if rejection is not None:
        return rejection

    subscription, errors = _validate(NewsletterSubscription, body)
    if subscription is None:
        site_logging.log_form_submission("newsletter", False, "VALIDATION_FAILED")
        return _error(status.HTTP_400_BAD_REQUEST, "Données invalides", details=errors)

    if registry.is_subscribed(subscription.email):
        site_logging.log_form_submission("newsletter", False, "ALREADY_SUBSCRIBED")
        return _error(
            status.HTTP_409_CONFLICT,
            "Cette adresse email est déjà inscrite.",
            code="ALREADY_SUBSCRIBED",
        )

    token = registry.start(subscription.email)
    confirmation_url = f"{settings.base_url.rstrip('/')}/api/newsletter/confirm?token={token}"

    if not email_client.configured and settings.is_development:
        logger.info("[DEV] Email not configured; skipping newsletter confirmation email")
    else:
        result = await notifications.send_newsletter_confirmation(
            email_client, subscription, confirmation_url, settings.site_name
        )
        if not result.success and not _email_failure_tolerated(settings, "newsletter", result):
            registry.cancel(token)
            site_logging.log_form_submission("newsletter", False, "EMAIL_FAILED")
            return _error(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Erreur lors de l'envoi de l'email de confirmation. Veuillez réessayer.",
            )

    site_logging.log_form_submission("newsletter", True)
    return FormResponse(
        message="Un email de confirmation a été envoyé. Veuillez vérifier votre boîte de réception.",
    )


@router.get("/newsletter/confirm", response_model=FormResponse)
async def confirm_newsletter(
    token: str = Query(..., min_length=16),
    registry: NewsletterRegistry = Depends(get_newsletter_registry),
):
    if registry.confirm(token) is None:
        site_logging.log_form_submission("newsletter_confirm", False, "INVALID_TOKEN")
        return _error(status.HTTP_400_BAD_REQUEST, "Lien de confirmation invalide ou expiré.")
    site_logging.log_form_submission("newsletter_confirm", True)
    return FormResponse(message="Inscription confirmée")
