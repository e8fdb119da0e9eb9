"""Turning a captured gateway payment into purchases, wallet credit and notifications.

Both the buyer's verify call and the gateway webhook end up in
settle_payment(). Everything it writes happens in one database transaction
that also sets ``Payment.settled``; replays see the flag under the row lock
and return without touching anything. Notifications are queued with
on_commit, so they go out once and only after the money is recorded.
"""
import json
import logging

from django.db import transaction
from django.utils import timezone

from accounts.services import record_purchase_stats, record_sale_stats
from catalog.services import record_purchase
from negotiations import services as discounts
from negotiations.models import DiscountCode
from notifications import notifier
from projectbuzz.exceptions import Conflict, Forbidden, NotFound, SignatureInvalid, ValidationError
from wallets.models import Transaction
from wallets.money import split
from wallets.services import credit, get_or_create_wallet, record_platform_commission

from .integrations import razorpay
from .models import Payment

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("projectbuzz.security")

CAPTURE_EVENTS = ("payment.captured", "order.paid")
FAILURE_EVENTS = ("payment.failed",)


def details_from_entity(entity, payload=None) -> dict:
    """Normalise a gateway payment entity into what Payment.mark_paid expects."""
    entity = entity or {}
    return {
        "payment_id": entity.get("id", ""),
        "method": entity.get("method", ""),
        "bank": entity.get("bank"),
        "wallet": entity.get("wallet"),
        "vpa": entity.get("vpa"),
        "card_id": entity.get("card_id"),
        "email": entity.get("email"),
        "contact": entity.get("contact"),
        "payload": payload if payload is not None else entity,
    }


def settle_payment(payment, gateway_details=None):
    """Apply the side effects of a successful payment exactly once.

    Returns ``(payment, settled_now)``; ``settled_now`` is False when an
    earlier call already settled it.
    """
    details = gateway_details or {}
    with transaction.atomic():
        payment = Payment.objects.select_for_update().get(pk=payment.pk)
        if payment.settled:
            logger.info("Payment %s already settled; nothing to do", payment.order_id)
            return payment, False

        incoming_id = details.get("payment_id")
        if incoming_id and payment.gateway_payment_id and incoming_id != payment.gateway_payment_id:
            logger.warning(
                "Payment %s captured as %s but %s was already recorded",
                payment.order_id, incoming_id, payment.gateway_payment_id,
            )
            details = dict(details, payment_id=payment.gateway_payment_id)

        payment.mark_paid(details)
        project = payment.project
        buyer = payment.buyer
        seller = project.seller
        idempotency_key = payment.gateway_payment_id or payment.order_id

        record_purchase(
            project=project,
            buyer=buyer,
            amount=payment.amount,
            order_id=payment.order_id,
            gateway_payment_id=payment.gateway_payment_id,
        )

        seller_share, platform_share = split(payment.amount)

        # denormalised counters; a failure here must not block the money
        try:
            with transaction.atomic():
                record_purchase_stats(buyer, payment.amount)
                record_sale_stats(seller, seller_share)
        except Exception:
            logger.exception("Stats update failed for payment %s", payment.order_id)

        wallet = get_or_create_wallet(seller)
        if seller_share > 0:
            credit(
                wallet,
                seller_share,
                idempotency_key=idempotency_key,
                description=f"Sale: {project.title}"[:255],
                category=Transaction.CATEGORY_SALE,
                related_payment=payment,
                related_project=project,
            )
        record_platform_commission(
            platform_share,
            idempotency_key=idempotency_key,
            description=f"Commission: {project.title}"[:255],
            related_payment=payment,
            related_project=project,
        )

        if payment.discount_code:
            code = DiscountCode.objects.filter(code=payment.discount_code).first()
            if code is None or not discounts.consume(code, payment):
                # money is already captured, so the sale stands
                logger.warning("Discount code %s for payment %s was missing or already used",
                               payment.discount_code, payment.order_id)

        payment.settled = True
        payment.settled_at = timezone.now()
        payment.save(update_fields=["settled", "settled_at", "updated_at"])

        related = {
            "order_id": payment.order_id,
            "payment_id": payment.gateway_payment_id,
            "project_id": project.pk,
            "project_title": project.title,
            "amount": payment.amount,
        }
        notifier.notify_on_commit(notifier.PURCHASE_CONFIRMATION, buyer.pk, related)
        notifier.notify_on_commit(notifier.PAYMENT_SUCCESS, buyer.pk, related)
        notifier.notify_on_commit(notifier.SALE_NOTIFICATION, seller.pk, dict(related, seller_share=seller_share))

    logger.info(
        "Settled payment %s amount=%s seller=%s seller_share=%s platform_share=%s",
        payment.order_id, payment.amount, seller.pk, seller_share, platform_share,
    )
    return payment, True


def handle_payment_failed(payment, reason="") -> bool:
    """Mark an open payment FAILED and tell the buyer. Paid or settled payments are left alone."""
    with transaction.atomic():
        payment = Payment.objects.select_for_update().get(pk=payment.pk)
        if payment.settled or payment.status == Payment.STATUS_PAID:
            logger.warning("Ignoring failure event for paid payment %s", payment.order_id)
            return False
        if not payment.mark_failed(reason):
            return False
        notifier.notify_on_commit(
            notifier.PAYMENT_FAILED, payment.buyer_id, {"order_id": payment.order_id, "reason": payment.failure_reason}
        )
    logger.info("Payment %s failed: %s", payment.order_id, payment.failure_reason)
    return True


def verify_client_payment(user, gateway_order_id, gateway_payment_id, signature):
    """Settle a payment reported by the buyer's checkout."""
    if not razorpay.verify_payment_signature(gateway_order_id, gateway_payment_id, signature):
        security_logger.warning(
            "Invalid payment signature user=%s order=%s payment=%s", user.pk, gateway_order_id, gateway_payment_id
        )
        raise SignatureInvalid("Payment verification failed: invalid signature")

    payment = Payment.objects.filter(gateway_order_id=gateway_order_id).first()
    if payment is None:
        raise NotFound("Payment not found")
    if payment.buyer_id != user.pk:
        security_logger.warning("User %s tried to verify payment %s of another buyer", user.pk, payment.order_id)
        raise Forbidden("This payment belongs to another user")

    details = {"payment_id": gateway_payment_id}
    if not payment.settled:
        try:
            details = details_from_entity(razorpay.get_payment_details(gateway_payment_id))
            details["payment_id"] = gateway_payment_id
        except razorpay.RazorpayError as e:
            # the signature already proves the capture; method details are optional
            logger.warning("Could not fetch payment details for %s: %s", gateway_payment_id, e)
    return settle_payment(payment, details)


def _locate(gateway_payment_id, gateway_order_id):
    if gateway_payment_id:
        payment = Payment.objects.filter(gateway_payment_id=gateway_payment_id).first()
        if payment:
            return payment
    if gateway_order_id:
        return Payment.objects.filter(gateway_order_id=gateway_order_id).first()
    return None


def handle_webhook(raw_body: bytes, signature: str) -> dict:
    """Process a signed gateway event. Returns a small status dict for the response."""
    if not razorpay.verify_webhook_signature(raw_body, signature):
        security_logger.warning("Rejected webhook with invalid signature (%s bytes)", len(raw_body or b""))
        raise SignatureInvalid("Invalid webhook signature")

    try:
        event = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        raise ValidationError("Invalid webhook payload")
    if not isinstance(event, dict):
        raise ValidationError("Invalid webhook payload")

    event_type = event.get("event", "")
    body = event.get("payload") or {}
    entity = (body.get("payment") or {}).get("entity") or {}
    order_entity = (body.get("order") or {}).get("entity") or {}
    gateway_payment_id = entity.get("id", "")
    gateway_order_id = entity.get("order_id") or order_entity.get("id", "")

    if event_type not in CAPTURE_EVENTS + FAILURE_EVENTS:
        logger.info("Ignoring webhook event %s", event_type)
        return {"status": "ignored", "event": event_type}

    payment = _locate(gateway_payment_id, gateway_order_id)
    if payment is None:
        logger.warning("Webhook %s for unknown order=%s payment=%s", event_type, gateway_order_id, gateway_payment_id)
        return {"status": "not_found", "event": event_type}

    Payment.objects.filter(pk=payment.pk).update(webhook_received=True)

    if event_type in FAILURE_EVENTS:
        reason = entity.get("error_description") or entity.get("error_reason") or "Payment failed"
        changed = handle_payment_failed(payment, reason)
        return {"status": "failed" if changed else "unchanged", "event": event_type, "order_id": payment.order_id}

    try:
        payment, settled_now = settle_payment(payment, details_from_entity(entity, payload=event))
    except Conflict as e:
        # e.g. captured after the order expired; money is with the gateway, needs a human
        logger.error("Captured payment for order %s could not be settled: %s", payment.order_id, e)
        return {"status": "needs_review", "event": event_type, "order_id": payment.order_id}
    return {
        "status": "settled" if settled_now else "already_settled",
        "event": event_type,
        "order_id": payment.order_id,
    }
