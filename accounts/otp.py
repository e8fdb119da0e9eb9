"""Pending registration state kept in Django's cache.

A registration is started with a one-time code that is emailed to the user.
Until it is verified the submitted details live in the cache under a key
derived from the email address, so the state expires on its own and is
shared by every process pointing at the same cache backend.
"""
import hmac
import logging

from django.conf import settings
from django.core.cache import caches
from django.utils import timezone
from django.utils.crypto import get_random_string

from projectbuzz.exceptions import MarketplaceError, ValidationError

logger = logging.getLogger(__name__)


class ResendTooSoon(MarketplaceError):
    status_code = 429


def _rules():
    cfg = settings.MARKETPLACE
    return (
        int(cfg.get("OTP_TTL_SECONDS", 600)),
        int(cfg.get("OTP_MAX_ATTEMPTS", 3)),
        int(cfg.get("OTP_RESEND_COOLDOWN_SECONDS", 60)),
    )


class PendingRegistrationStore:
    key_prefix = "pending-registration"

    def __init__(self, cache_alias="default"):
        self.cache = caches[cache_alias]

    def _key(self, email: str) -> str:
        return f"{self.key_prefix}:{email.strip().lower()}"

    def get(self, email: str):
        return self.cache.get(self._key(email))

    def start(self, email: str, payload: dict) -> str:
        """Store ``payload`` for ``email`` and return a fresh 6 digit code."""
        ttl, _, cooldown = _rules()
        now = timezone.now().timestamp()
        existing = self.get(email)
        if existing and now - existing["sent_at"] < cooldown:
            wait = int(cooldown - (now - existing["sent_at"])) + 1
            raise ResendTooSoon(f"Please wait {wait} seconds before requesting a new code")

        code = get_random_string(6, allowed_chars="0123456789")
        entry = {
            "code": code,
            "payload": payload,
            "attempts": 0,
            "sent_at": now,
            "expires_at": now + ttl,
        }
        self.cache.set(self._key(email), entry, timeout=ttl)
        return code

    def verify(self, email: str, code: str) -> dict:
        """Check ``code`` and return the stored payload, consuming the entry."""
        _, max_attempts, _ = _rules()
        key = self._key(email)
        entry = self.cache.get(key)
        now = timezone.now().timestamp()
        if not entry or now > entry["expires_at"]:
            self.cache.delete(key)
            raise ValidationError("Verification code expired or was never requested")

        if not hmac.compare_digest(str(code or ""), entry["code"]):
            entry["attempts"] += 1
            remaining = max_attempts - entry["attempts"]
            if remaining <= 0:
                self.cache.delete(key)
                logger.warning("Registration for %s locked after %s failed attempts", email, entry["attempts"])
                raise ValidationError("Too many invalid attempts. Please register again")
            self.cache.set(key, entry, timeout=max(1, int(entry["expires_at"] - now)))
            raise ValidationError(f"Invalid code. {remaining} attempt(s) left")

        self.cache.delete(key)
        return entry["payload"]

    def discard(self, email: str) -> None:
        self.cache.delete(self._key(email))


pending_registrations = PendingRegistrationStore()
