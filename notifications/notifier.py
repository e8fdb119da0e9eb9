"""Fire-and-forget user notifications.

Each event type maps to a category, a payload builder and an email template.
Callers inside a database transaction should use notify_on_commit so that
nothing is sent for work that is rolled back.
"""
import logging

from django.contrib.auth import get_user_model
from django.db import transaction
from django.template.loader import render_to_string

from wallets.money import format_inr

from .emails import send_notification_email
from .models import Notification

logger = logging.getLogger(__name__)

PURCHASE_CONFIRMATION = "PURCHASE_CONFIRMATION"
PAYMENT_SUCCESS = "PAYMENT_SUCCESS"
PAYMENT_FAILED = "PAYMENT_FAILED"
SALE_NOTIFICATION = "SALE_NOTIFICATION"
PAYOUT_REQUEST = "PAYOUT_REQUEST"
PAYOUT_APPROVED = "PAYOUT_APPROVED"
PAYOUT_REJECTED = "PAYOUT_REJECTED"
PAYOUT_COMPLETED = "PAYOUT_COMPLETED"
PAYOUT_CANCELLED = "PAYOUT_CANCELLED"


def _money(related, key="amount"):
    value = related.get(key)
    return format_inr(value) if isinstance(value, int) else ""


def _purchase_confirmation(related):
    return {
        "title": f"Purchase confirmed: {related.get('project_title', 'your project')}",
        "amount": _money(related),
        "order_id": related.get("order_id", ""),
        "project_title": related.get("project_title", ""),
    }


def _payment_success(related):
    return {
        "title": f"Payment of {_money(related)} received",
        "amount": _money(related),
        "order_id": related.get("order_id", ""),
        "payment_id": related.get("payment_id", ""),
    }


def _payment_failed(related):
    return {
        "title": "Payment failed",
        "order_id": related.get("order_id", ""),
        "reason": related.get("reason", "") or "The payment could not be completed",
    }


def _sale(related):
    return {
        "title": f"You made a sale: {related.get('project_title', 'your project')}",
        "project_title": related.get("project_title", ""),
        "amount": _money(related),
        "seller_share": _money(related, "seller_share"),
    }


def _payout(title):
    def build(related):
        return {
            "title": title,
            "payout_id": related.get("payout_id", ""),
            "reason": related.get("reason", ""),
            "utr": related.get("utr", ""),
        }
    return build


EVENTS = {
    PURCHASE_CONFIRMATION: ("purchase", _purchase_confirmation, "notifications/email/purchase_confirmation.txt"),
    PAYMENT_SUCCESS: ("payment", _payment_success, "notifications/email/payment_success.txt"),
    PAYMENT_FAILED: ("payment", _payment_failed, "notifications/email/payment_failed.txt"),
    SALE_NOTIFICATION: ("sale", _sale, "notifications/email/sale.txt"),
    PAYOUT_REQUEST: ("payout", _payout("Payout request received"), "notifications/email/payout.txt"),
    PAYOUT_APPROVED: ("payout", _payout("Payout approved"), "notifications/email/payout.txt"),
    PAYOUT_REJECTED: ("payout", _payout("Payout rejected"), "notifications/email/payout.txt"),
    PAYOUT_COMPLETED: ("payout", _payout("Payout completed"), "notifications/email/payout.txt"),
    PAYOUT_CANCELLED: ("payout", _payout("Payout cancelled"), "notifications/email/payout.txt"),
}


def notify(event_type, recipient_id, related=None) -> bool:
    """Record and email a notification. Never raises; returns False on failure."""
    related = dict(related or {})
    try:
        category, build, template = EVENTS[event_type]
        user = get_user_model().objects.get(pk=recipient_id)
        context = build(related)
        context["username"] = user.get_full_name() or user.get_username()
        message = render_to_string(template, context).strip()
        notification = Notification.objects.create(
            recipient=user,
            type=event_type,
            category=category,
            title=context["title"],
            message=message,
            related=related,
        )
    except Exception:
        logger.exception("Notification %s for user=%s failed", event_type, recipient_id)
        return False

    if send_notification_email(to=user.email, subject=context["title"], body=message):
        Notification.objects.filter(pk=notification.pk).update(email_sent=True)
    return True


def notify_on_commit(event_type, recipient_id, related=None) -> None:
    transaction.on_commit(lambda: notify(event_type, recipient_id, related))
