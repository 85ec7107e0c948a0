"""
scpb_site/core/logging.py — loguru structured JSON logging setup
Mandatory events: cache fallbacks, rate-limit decisions, form submissions,
email sends, upstream CMS calls and errors. Form events never carry PII.
"""
from __future__ import annotations

import json
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Optional

from loguru import logger


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure loguru for structured JSON output to stdout.
    The hosting platform captures stdout, so no file sinks are added.
    """
    logger.remove()

    logger.add(
        sys.stdout,
        level=log_level.upper(),
        format="{message}",
        serialize=True,
        backtrace=True,
        diagnose=False,  # never dump locals, they may hold form data
        colorize=False,
    )


def _build_log_record(
    component: str,
    operation: str,
    extra: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """Build a base structured log record."""
    record: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "component": component,
        "operation": operation,
    }
    if extra:
        record.update(extra)
    return record


# ──────────────────────────────────────────────────────────────────────────────
# Event helpers
# ──────────────────────────────────────────────────────────────────────────────

def log_cache_event(
    operation: str,  # stale_fallback | invalidate | invalidate_all | invalidate_prefix
    key: str,
    error: Optional[str] = None,
    count: Optional[int] = None,
) -> None:
    record = _build_log_record("content_cache", operation, {
        "key": key,
        "error": error,
        "count": count,
    })
    if operation == "stale_fallback":
        logger.warning(json.dumps(record))
    else:
        logger.info(json.dumps(record))


def log_rate_limit_decision(
    route_class: str,
    allowed: bool,
    remaining: int,
    retry_after_seconds: int,
) -> None:
    """Identity is deliberately not logged: it is the client IP."""
    record = _build_log_record("rate_limiter", "check", {
        "route_class": route_class,
        "allowed": allowed,
        "remaining": remaining,
        "retry_after_seconds": retry_after_seconds,
    })
    if allowed:
        logger.debug(json.dumps(record))
    else:
        logger.info(json.dumps(record))


def log_form_submission(
    route: str,
    success: bool,
    error_type: Optional[str] = None,
    subject: Optional[str] = None,
) -> None:
    """Audit trail for form posts. Only non-personal fields are accepted."""
    record = _build_log_record("forms", "submission", {
        "route": route,
        "success": success,
        "error_type": error_type,
        "subject": subject,
    })
    logger.info(json.dumps(record))


def log_email_send(
    template: str,
    success: bool,
    attempts: int,
    message_id: Optional[str] = None,
    error: Optional[str] = None,
) -> None:
    record = _build_log_record("email_client", "email_send", {
        "template": template,
        "success": success,
        "attempts": attempts,
        "message_id": message_id,
        "error": error,
    })
    logger.info(json.dumps(record))


def log_upstream_call(
    endpoint: str,
    status_code: Optional[int],
    latency_ms: float,
    error: Optional[str] = None,
) -> None:
    record = _build_log_record("cms_client", "fetch", {
        "endpoint": endpoint,
        "status_code": status_code,
        "latency_ms": round(latency_ms, 2),
        "error": error,
    })
    if error:
        logger.warning(json.dumps(record))
    else:
        logger.debug(json.dumps(record))


def log_error(
    component: str,
    operation: str,
    error: Exception,
    context: Optional[dict[str, Any]] = None,
) -> None:
    """Every unexpected error is logged with its traceback and context."""
    tb = traceback.format_exc()
    record = _build_log_record(component, operation, {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "stack_trace": tb[:2000] if tb else "",
        "context": context or {},
    })
    logger.error(json.dumps(record))
