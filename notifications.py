"""
Email verification for new accounts.

A signup is held in memory as a *pending* record until the one-time code
emailed to the address is confirmed. Codes are six digits and expire after
``Settings.otp_ttl_minutes``. Pending records live in memory only, so
restarting the server discards them.
"""

import logging
import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import lru_cache
from typing import Dict, Optional

from config import get_settings
from errors import InvalidOperation
from schemas import User

logger = logging.getLogger(__name__)


def generate_otp() -> str:
    return str(100000 + secrets.randbelow(900000))


@dataclass
class PendingSignup:
    user: User
    otp: str
    expires_at: datetime


class PendingSignupStore:
    def __init__(self, ttl: timedelta = timedelta(minutes=5)):
        self.ttl = ttl
        self._pending: Dict[str, PendingSignup] = {}
        self._lock = threading.Lock()

    def add(self, user: User, now: Optional[datetime] = None) -> PendingSignup:
        """Hold ``user`` until verified; replaces any earlier pending signup for the email."""
        now = now or datetime.now()
        pending = PendingSignup(user=user, otp=generate_otp(), expires_at=now + self.ttl)
        with self._lock:
            self._pending[user.email.lower()] = pending
        return pending

    def verify(self, email: str, otp: str, now: Optional[datetime] = None) -> User:
        """Return the pending user when ``otp`` matches and has not expired.

        A wrong code keeps the record so the user can retry; an expired one
        drops it.
        """
        now = now or datetime.now()
        key = email.lower()
        with self._lock:
            pending = self._pending.get(key)
            if pending is None:
                raise InvalidOperation("No pending signup for this email.", field="email")
            if pending.expires_at <= now:
                del self._pending[key]
                raise InvalidOperation("Invalid or expired OTP provided.", field="otp")
            if not secrets.compare_digest(pending.otp, otp):
                raise InvalidOperation("Invalid or expired OTP provided.", field="otp")
            del self._pending[key]
        return pending.user.model_copy(update={"is_email_verified": True})

    def __contains__(self, email: str) -> bool:
        with self._lock:
            return email.lower() in self._pending


class EmailSender:
    """Delivery seam. The default implementation only logs."""

    def send(self, to: str, subject: str, body: str) -> None:
        logger.info(f"Email to {to} | {subject} | {body}")


@lru_cache
def get_pending_store() -> PendingSignupStore:
    return PendingSignupStore(ttl=timedelta(minutes=get_settings().otp_ttl_minutes))


@lru_cache
def get_email_sender() -> EmailSender:
    return EmailSender()


def start_verification(user: User, store: PendingSignupStore, sender: EmailSender) -> PendingSignup:
    pending = store.add(user)
    sender.send(user.email, "Verify your email address", f"Your verification code is: {pending.otp}")
    logger.info(f"Verification code issued for {user.email}, expires {pending.expires_at:%H:%M:%S}")
    return pending
