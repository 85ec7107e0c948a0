"""
scpb_site/services/newsletter.py — Newsletter double opt-in registry
Subscriptions are confirmed through a one-time token sent by email.
Pending tokens expire after 24 hours and are pruned on the next sign-up.
Process-local: a restart forgets pending and confirmed addresses; the
mailing provider is the source of truth for the list itself.
"""
from __future__ import annotations

import secrets
import time
from dataclasses import dataclass
from typing import Callable, Optional

CONFIRMATION_TTL_SECONDS = 24 * 60 * 60


@dataclass
class PendingConfirmation:
    email: str
    expires_at: float


def normalize_email(email: str) -> str:
    return email.strip().lower()


class NewsletterRegistry:
    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._subscribed: set[str] = set()
        self._pending: dict[str, PendingConfirmation] = {}

    def is_subscribed(self, email: str) -> bool:
        return normalize_email(email) in self._subscribed

    def start(self, email: str) -> str:
        """Register a pending subscription and return its confirmation token."""
        self._prune_expired()
        token = secrets.token_hex(32)
        self._pending[token] = PendingConfirmation(
            email=normalize_email(email),
            expires_at=self._clock() + CONFIRMATION_TTL_SECONDS,
        )
        return token

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def _prune_expired(self) -> None:
        now = self._clock()
        expired = [token for token, pending in self._pending.items() if pending.expires_at <= now]
        for token in expired:
            del self._pending[token]

    def cancel(self, token: str) -> None:
        self._pending.pop(token, None)

    def confirm(self, token: str) -> Optional[str]:
        """Return the confirmed address, or None for unknown/expired tokens."""
        pending = self._pending.pop(token, None)
        if pending is None or pending.expires_at <= self._clock():
            return None
        self._subscribed.add(pending.email)
        return pending.email
