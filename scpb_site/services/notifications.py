"""
scpb_site/services/notifications.py — Form notification emails
Renders the Jinja2 templates under scpb_site/templates and sends them
through the Resend client:
  * contact → team notification (reply-to the submitter)
  * rfq     → sales notification + confirmation to the submitter
  * sample request → team notification + confirmation to the submitter
  * newsletter → double opt-in confirmation link
"""
from __future__ import annotations

import html as html_lib
import random
import string
from datetime import datetime
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape
from loguru import logger

from scpb_site.clients.email_client import EmailClient, SendResult
from scpb_site.models import (
    ContactSubmission,
    NewsletterSubscription,
    RFQSubmission,
    SampleRequestSubmission,
)

TEMPLATES_DIR = Path(__file__).parent.parent / "templates"

SUBJECT_LABELS = {
    "products": "Produits",
    "certifications": "Certifications",
    "logistics": "Logistique",
    "availability": "Disponibilité",
    "other": "Autre",
}


def _get_jinja_env() -> Environment:
    """Build Jinja2 environment for email templates."""
    return Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(["html"]),
    )


def render_email(name: str, context: dict[str, Any]) -> tuple[str, str]:
    """
    Render the {name}.html and {name}.txt pair.
    A broken template falls back to a plain key/value dump so the team
    still receives the lead.
    """
    env = _get_jinja_env()
    try:
        html = env.get_template(f"{name}.html").render(**context)
        text = env.get_template(f"{name}.txt").render(**context)
        return html, text
    except Exception as exc:
        logger.error(f"Email template {name} render failed: {exc}")
        lines = [f"{key}: {value}" for key, value in context.items()]
        text = "\n".join(lines)
        return f"<pre>{html_lib.escape(text)}</pre>", text


def generate_reference_id(submitted_at: datetime) -> str:
    """RFQ-YYYYMMDD-HHMM-XXXX, quoted back to the client for tracking."""
    suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=4))
    return f"RFQ-{submitted_at:%Y%m%d}-{submitted_at:%H%M}-{suffix}"


# ──────────────────────────────────────────────────────────────────────────────
# Contact
# ──────────────────────────────────────────────────────────────────────────────

async def send_contact_notification(
    email_client: EmailClient,
    recipient: str,
    submission: ContactSubmission,
    submitted_at: datetime,
    site_name: str,
) -> SendResult:
    context = {
        "site_name": site_name,
        "name": submission.name,
        "email": submission.email,
        "company": submission.company,
        "subject": SUBJECT_LABELS.get(submission.subject, submission.subject),
        "message": submission.message,
        "submitted_at": submitted_at,
    }
    html, text = render_email("contact_notification", context)
    return await email_client.send(
        to=recipient,
        subject=f"[{site_name}] Nouveau message - {context['subject']} - {submission.name}",
        html=html,
        text=text,
        reply_to=submission.email,
        template="contact_notification",
    )


# ──────────────────────────────────────────────────────────────────────────────
# RFQ
# ──────────────────────────────────────────────────────────────────────────────

def _rfq_context(submission: RFQSubmission, submitted_at: datetime, reference: str, locale: str, site_name: str) -> dict:
    return {
        "site_name": site_name,
        "reference": reference,
        "locale": locale,
        "submitted_at": submitted_at,
        "company_name": submission.company_name,
        "contact_person": submission.contact_person,
        "email": submission.email,
        "phone": submission.phone,
        "country": submission.country,
        "products": submission.products,
        "cocoa_type": submission.cocoa_type,
        "cocoa_certification": submission.cocoa_certification,
        "quantity": submission.quantity,
        "unit": submission.unit,
        "order_frequency": submission.order_frequency,
        "incoterm": submission.incoterm,
        "destination_port": submission.destination_port,
        "packaging": submission.packaging,
        "container_size": submission.container_size,
        "delivery_start": submission.delivery_start,
        "delivery_end": submission.delivery_end,
        "special_requirements": submission.special_requirements,
    }


async def send_rfq_notification(
    email_client: EmailClient,
    recipient: str,
    submission: RFQSubmission,
    submitted_at: datetime,
    reference: str,
    locale: str,
    site_name: str,
) -> SendResult:
    context = _rfq_context(submission, submitted_at, reference, locale, site_name)
    html, text = render_email("rfq_notification", context)
    products = ", ".join(submission.products)
    return await email_client.send(
        to=recipient,
        subject=f"[{site_name}] Demande de devis {reference} - {submission.company_name} - {products}",
        html=html,
        text=text,
        reply_to=submission.email,
        template="rfq_notification",
    )


async def send_rfq_confirmation(
    email_client: EmailClient,
    submission: RFQSubmission,
    submitted_at: datetime,
    reference: str,
    locale: str,
    site_name: str,
) -> SendResult:
    context = _rfq_context(submission, submitted_at, reference, locale, site_name)
    html, text = render_email("rfq_confirmation", context)
    if locale == "en":
        subject = f"[{site_name}] Your quote request has been received ({reference})"
    else:
        subject = f"[{site_name}] Votre demande de devis a bien été reçue ({reference})"
    return await email_client.send(
        to=submission.email,
        subject=subject,
        html=html,
        text=text,
        template="rfq_confirmation",
    )


# ──────────────────────────────────────────────────────────────────────────────
# Sample request
# ──────────────────────────────────────────────────────────────────────────────

def _sample_context(submission: SampleRequestSubmission, submitted_at: datetime, site_name: str) -> dict:
    context = submission.model_dump(exclude={"recaptcha_token", "privacy_consent"})
    context.update(
        locale=submission.locale.value,
        submitted_at=submitted_at,
        site_name=site_name,
    )
    return context


async def send_sample_notification(
    email_client: EmailClient,
    recipient: str,
    submission: SampleRequestSubmission,
    submitted_at: datetime,
    site_name: str,
) -> SendResult:
    html, text = render_email("sample_request_notification", _sample_context(submission, submitted_at, site_name))
    return await email_client.send(
        to=recipient,
        subject=f"[{site_name}] Nouvelle demande d'échantillon - {submission.product}",
        html=html,
        text=text,
        reply_to=submission.email,
        template="sample_request_notification",
    )


async def send_sample_confirmation(
    email_client: EmailClient,
    submission: SampleRequestSubmission,
    submitted_at: datetime,
    site_name: str,
) -> SendResult:
    html, text = render_email("sample_request_confirmation", _sample_context(submission, submitted_at, site_name))
    if submission.locale.value == "en":
        subject = f"[{site_name}] Sample request confirmation - {submission.product}"
    else:
        subject = f"[{site_name}] Confirmation de demande d'échantillon - {submission.product}"
    return await email_client.send(
        to=submission.email,
        subject=subject,
        html=html,
        text=text,
        template="sample_request_confirmation",
    )


# ──────────────────────────────────────────────────────────────────────────────
# Newsletter
# ──────────────────────────────────────────────────────────────────────────────

async def send_newsletter_confirmation(
    email_client: EmailClient,
    subscription: NewsletterSubscription,
    confirmation_url: str,
    site_name: str,
) -> SendResult:
    locale = subscription.locale.value
    context = {
        "site_name": site_name,
        "locale": locale,
        "confirmation_url": confirmation_url,
    }
    html, text = render_email("newsletter_confirmation", context)
    if locale == "en":
        subject = f"[{site_name}] Confirm your newsletter subscription"
    else:
        subject = f"[{site_name}] Confirmez votre inscription à la newsletter"
    return await email_client.send(
        to=subscription.email,
        subject=subject,
        html=html,
        text=text,
        template="newsletter_confirmation",
    )
