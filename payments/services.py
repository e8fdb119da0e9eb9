"""Purchase attempts: creating, reading, cancelling and expiring payments."""
import logging
from datetime import timedelta

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from catalog.models import Project
from negotiations import services as discounts
from negotiations.models import DiscountCode
from projectbuzz.exceptions import Conflict, Forbidden, NotFound, ValidationError
from wallets.money import format_inr

from .integrations.razorpay import RazorpayError, create_order as gateway_create_order
from .models import Payment
from .utils import generate_customer_id, generate_order_id

logger = logging.getLogger(__name__)


def _rules():
    return settings.MARKETPLACE


def validate_amount(amount: int) -> None:
    low = int(_rules().get("MIN_ORDER_AMOUNT", 100))
    high = int(_rules().get("MAX_ORDER_AMOUNT", 50_000_000))
    if amount < low:
        raise ValidationError(f"Minimum payment amount is {format_inr(low)}")
    if amount > high:
        raise ValidationError(f"Maximum payment amount is {format_inr(high)}")


def _expire_open_payments(buyer, project) -> None:
    """Lock open payments for the pair; expire stale ones, reject live ones."""
    now = timezone.now()
    for payment in Payment.objects.select_for_update().filter(
        buyer=buyer, project=project, status__in=Payment.OPEN_STATUSES
    ):
        if payment.is_expired(now):
            payment.mark_expired()
            logger.info("Expired stale payment %s before new attempt", payment.order_id)
        else:
            raise Conflict("A payment for this project is already in progress. Complete or cancel it first.")


def _reserve_discount_code(code) -> None:
    """A code may back only one open payment at a time; stale holders are expired."""
    DiscountCode.objects.select_for_update().get(code=code)
    now = timezone.now()
    for payment in Payment.objects.select_for_update().filter(discount_code=code, status__in=Payment.OPEN_STATUSES):
        if payment.is_expired(now):
            payment.mark_expired()
            logger.info("Expired stale payment %s holding discount code %s", payment.order_id, code)
        else:
            raise Conflict("This discount code is already applied to another payment in progress")


def create_order(buyer, project, discount_code=None, customer_phone="") -> Payment:
    if not project.is_purchasable_by(buyer):
        if project.seller_id == buyer.pk:
            raise ValidationError("You cannot purchase your own project")
        raise ValidationError("Project is not available for purchase")
    if project.has_buyer(buyer):
        raise Conflict("You already own this project")

    with transaction.atomic():
        _expire_open_payments(buyer, project)

        original_price = project.price
        final_price = project.price
        discount_amount = 0
        applied_code = ""
        if discount_code:
            result = discounts.validate_for_purchase(discount_code, buyer, project)
            if not result["valid"]:
                if result["reason"] == discounts.ALREADY_USED:
                    raise Conflict(result["error"])
                raise ValidationError(result["error"])
            applied_code = result["discount_code"].code
            _reserve_discount_code(applied_code)
            original_price = result["original_price"]
            final_price = result["final_price"]
            discount_amount = result["discount_amount"]

        validate_amount(final_price)

        ttl = int(_rules().get("PAYMENT_TTL_MINUTES", 30))
        try:
            with transaction.atomic():
                payment = Payment.objects.create(
                    order_id=generate_order_id(),
                    buyer=buyer,
                    project=project,
                    amount=final_price,
                    currency=_rules().get("CURRENCY", "INR"),
                    discount_code=applied_code,
                    discount_amount=discount_amount,
                    original_price=original_price,
                    final_price=final_price,
                    customer_id=generate_customer_id(buyer.pk),
                    customer_name=buyer.get_full_name() or buyer.get_username(),
                    customer_email=buyer.email or "",
                    customer_phone=(customer_phone or "")[:16],
                    expires_at=timezone.now() + timedelta(minutes=ttl),
                )
        except IntegrityError:
            raise Conflict("A payment for this project is already in progress. Complete or cancel it first.")

    # Gateway I/O stays outside the database transaction.
    try:
        order = gateway_create_order(
            receipt=payment.order_id,
            amount=payment.amount,
            currency=payment.currency,
            notes={
                "project_id": str(project.pk),
                "project_title": project.title[:200],
                "user_id": str(buyer.pk),
                "customer_id": payment.customer_id,
            },
        )
    except RazorpayError as e:
        payment.mark_failed(f"Gateway order creation failed: {e}")
        logger.error("Gateway order creation failed for %s: %s", payment.order_id, e)
        raise

    payment.gateway_order_id = order["id"]
    payment.gateway_payload = order
    payment.status = Payment.STATUS_ACTIVE
    payment.save(update_fields=["gateway_order_id", "gateway_payload", "status", "updated_at"])
    logger.info(
        "Payment %s created buyer=%s project=%s amount=%s discount=%s",
        payment.order_id, buyer.pk, project.pk, payment.amount, applied_code or "-",
    )
    return payment


def get_order_for_buyer(buyer, order_id) -> Payment:
    try:
        payment = Payment.objects.select_related("project").get(order_id=order_id)
    except Payment.DoesNotExist:
        raise NotFound("Payment not found")
    if payment.buyer_id != buyer.pk:
        raise Forbidden("This payment belongs to another user")
    if payment.is_open and payment.is_expired():
        with transaction.atomic():
            locked = Payment.objects.select_for_update().get(pk=payment.pk)
            if locked.is_open and locked.is_expired():
                locked.mark_expired()
        payment.refresh_from_db()
    return payment


@transaction.atomic
def cancel_order(buyer, order_id) -> Payment:
    try:
        payment = Payment.objects.select_for_update().get(order_id=order_id)
    except Payment.DoesNotExist:
        raise NotFound("Payment not found")
    if payment.buyer_id != buyer.pk:
        raise Forbidden("This payment belongs to another user")
    if payment.status == Payment.STATUS_PAID or payment.settled:
        raise Conflict("Payment has already been completed and cannot be cancelled")
    if payment.status == Payment.STATUS_CANCELLED:
        return payment
    if not payment.is_open:
        raise Conflict(f"Payment is already {payment.status}")

    payment.status = Payment.STATUS_CANCELLED
    payment.failure_reason = "Cancelled by buyer"
    payment.save(update_fields=["status", "failure_reason", "updated_at"])
    logger.info("Payment %s cancelled by buyer", payment.order_id)
    return payment


def expire_stale_payments(now=None, limit=None) -> int:
    """Move open payments past their expiry to EXPIRED. Returns how many changed."""
    now = now or timezone.now()
    ids = Payment.objects.filter(status__in=Payment.OPEN_STATUSES, expires_at__lt=now).values_list("pk", flat=True)
    if limit:
        ids = ids[:limit]
    # The status filter is re-applied so a payment captured meanwhile is left alone.
    count = Payment.objects.filter(pk__in=list(ids), status__in=Payment.OPEN_STATUSES, expires_at__lt=now).update(
        status=Payment.STATUS_EXPIRED, updated_at=now
    )
    if count:
        logger.info("Expired %s stale payments", count)
    return count


def project_for_order(project_id) -> Project:
    try:
        return Project.objects.get(pk=project_id)
    except (Project.DoesNotExist, ValueError, TypeError):
        raise NotFound("Project not found")
