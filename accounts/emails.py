from django.conf import settings
import logging
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string


logger = logging.getLogger(__name__)


def _should_fail_silently() -> bool:
    """Controlled via settings.EMAIL_FAIL_SILENTLY (default: True)."""
    return getattr(settings, "EMAIL_FAIL_SILENTLY", True)


def send_signup_otp_email(*, email: str, username: str, code: str) -> bool:
    """Send the registration verification code.

    Returns True on success, False if sending fails.
    """
    if not email:
        return False
    try:
        subject = "Your ProjectBuzz verification code"
        ttl_minutes = int(settings.MARKETPLACE.get("OTP_TTL_SECONDS", 600)) // 60
        context = {"username": username, "code": code, "ttl_minutes": ttl_minutes}
        text_body = render_to_string("emails/otp_email.txt", context)
        html_body = render_to_string("emails/otp_email.html", context)
        from_email = getattr(settings, "DEFAULT_FROM_EMAIL", None) or getattr(settings, "EMAIL_HOST_USER", None)
        logger.info("Sending signup OTP email to=%s host=%s", email, getattr(settings, "EMAIL_HOST", None))
        msg = EmailMultiAlternatives(subject, text_body, from_email, [email])
        msg.attach_alternative(html_body, "text/html")
        sent_count = msg.send(fail_silently=_should_fail_silently())
        return bool(sent_count)
    except Exception:
        # Do not raise in user flow; log error for diagnosis
        logger.exception("Failed to send signup OTP email to %s", email)
        return False


def send_welcome_email(*, user) -> None:
    if not user or not getattr(user, "email", None):
        return

    subject = "Welcome to ProjectBuzz"
    context = {
        "username": user.get_full_name() or user.get_username(),
        "email": user.email,
    }
    try:
        text_body = render_to_string("emails/welcome_email.txt", context)
        from_email = getattr(settings, "DEFAULT_FROM_EMAIL", None)
        msg = EmailMultiAlternatives(subject, text_body, from_email, [user.email])
        msg.send(fail_silently=_should_fail_silently())
    except Exception:
        logger.exception("Failed to send welcome email to %s", user.email)
