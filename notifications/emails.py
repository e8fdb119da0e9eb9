import logging

from django.conf import settings
from django.core.mail import EmailMultiAlternatives

logger = logging.getLogger(__name__)


def _fail_silently() -> bool:
    return getattr(settings, "EMAIL_FAIL_SILENTLY", True)


def send_notification_email(*, to: str, subject: str, body: str) -> bool:
    """Send a plain-text notification email. Returns True when handed to the backend."""
    if not to:
        return False
    try:
        from_email = getattr(settings, "DEFAULT_FROM_EMAIL", None) or getattr(settings, "EMAIL_HOST_USER", None)
        msg = EmailMultiAlternatives(subject, body, from_email, [to])
        return bool(msg.send(fail_silently=_fail_silently()))
    except Exception:
        logger.exception("Failed to send notification email to %s", to)
        return False
