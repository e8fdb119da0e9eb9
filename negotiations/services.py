"""Price negotiation and the discount codes it produces.

An accepted negotiation mints a single-use code for exactly one buyer and
project; the code is redeemed when the discounted payment settles.
"""
import logging
import string
from datetime import timedelta
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone
from django.utils.crypto import get_random_string

from catalog.models import Project
from projectbuzz.exceptions import Conflict, Forbidden, NotFound, ValidationError
from wallets.money import format_inr, percent_of

from .models import DiscountCode, Negotiation

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits

# reasons returned by validate_for_purchase
NOT_FOUND = "not_found"
INACTIVE = "inactive"
ALREADY_USED = "already_used"
EXPIRED = "expired"
WRONG_BUYER = "wrong_buyer"
WRONG_PROJECT = "wrong_project"
BELOW_MINIMUM = "below_minimum"


def _rules():
    return settings.MARKETPLACE


def minimum_price_for(price: int) -> int:
    rate = Decimal(str(_rules().get("NEGOTIATION_FLOOR_RATE", "0.70")))
    return int((Decimal(price) * rate).quantize(Decimal("1"), rounding=ROUND_DOWN))


def discount_percentage(original: int, discount: int) -> int:
    if original <= 0:
        return 0
    pct = Decimal(discount) * 100 / Decimal(original)
    return int(pct.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def generate_unique_code(prefix="NEGO") -> str:
    while True:
        code = f"{prefix}-{get_random_string(8, allowed_chars=CODE_ALPHABET)}"
        if not DiscountCode.objects.filter(code=code).exists():
            return code


def _expire_if_stale(negotiation) -> bool:
    if negotiation.status == Negotiation.STATUS_ACTIVE and negotiation.is_expired():
        negotiation.status = Negotiation.STATUS_EXPIRED
        negotiation.save(update_fields=["status", "updated_at"])
        return True
    return False


def _require_active(negotiation):
    if _expire_if_stale(negotiation):
        raise Conflict("Negotiation has expired")
    if negotiation.status != Negotiation.STATUS_ACTIVE:
        raise Conflict(f"Negotiation is {negotiation.status}")


def get_negotiation_for(user, negotiation_id) -> Negotiation:
    try:
        negotiation = Negotiation.objects.select_related("project").get(pk=negotiation_id)
    except Negotiation.DoesNotExist:
        raise NotFound("Negotiation not found")
    if user.pk not in (negotiation.buyer_id, negotiation.seller_id):
        raise Forbidden("You are not part of this negotiation")
    _expire_if_stale(negotiation)
    return negotiation


def start_negotiation(buyer, project) -> Negotiation:
    if project.status != Project.STATUS_APPROVED:
        raise ValidationError("Project is not available for purchase")
    if project.seller_id == buyer.pk:
        raise ValidationError("You cannot negotiate on your own project")
    if project.has_buyer(buyer):
        raise Conflict("You already own this project")

    for existing in Negotiation.objects.filter(
        project=project, buyer=buyer, status__in=[Negotiation.STATUS_ACTIVE, Negotiation.STATUS_ACCEPTED]
    ):
        if _expire_if_stale(existing):
            continue
        if existing.status == Negotiation.STATUS_ACCEPTED:
            raise Conflict("Offer already accepted; use your discount code to purchase")
        return existing

    now = timezone.now()
    try:
        with transaction.atomic():
            negotiation = Negotiation.objects.create(
                project=project,
                buyer=buyer,
                seller=project.seller,
                original_price=project.price,
                minimum_price=minimum_price_for(project.price),
                last_activity=now,
                expires_at=now + timedelta(days=int(_rules().get("NEGOTIATION_TTL_DAYS", 7))),
            )
    except IntegrityError:
        raise Conflict("A negotiation for this project is already open")
    logger.info("Negotiation %s started project=%s buyer=%s", negotiation.pk, project.pk, buyer.pk)
    return negotiation


@transaction.atomic
def make_offer(negotiation, user, amount) -> Negotiation:
    negotiation = Negotiation.objects.select_for_update().get(pk=negotiation.pk)
    if user.pk not in (negotiation.buyer_id, negotiation.seller_id):
        raise Forbidden("You are not part of this negotiation")
    _require_active(negotiation)
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError("Offer must be an integer number of paise")
    if amount < negotiation.minimum_price:
        raise ValidationError(f"Offer must be at least {format_inr(negotiation.minimum_price)}")
    if amount >= negotiation.original_price:
        raise ValidationError("Offer must be below the listed price")

    negotiation.current_offer = amount
    negotiation.last_offer_by = user
    negotiation.offer_count += 1
    negotiation.last_activity = timezone.now()
    negotiation.save()
    return negotiation


@transaction.atomic
def accept_offer(seller, negotiation) -> DiscountCode:
    negotiation = Negotiation.objects.select_for_update().get(pk=negotiation.pk)
    if negotiation.seller_id != seller.pk:
        raise Forbidden("Only the seller can accept offers")
    _require_active(negotiation)
    if negotiation.current_offer is None:
        raise ValidationError("No offer to accept")
    if negotiation.current_offer < negotiation.minimum_price:
        raise ValidationError(f"Offer is below the minimum of {format_inr(negotiation.minimum_price)}")

    original = negotiation.original_price
    discount = original - negotiation.current_offer
    code = DiscountCode.objects.create(
        code=generate_unique_code("NEGO"),
        type=DiscountCode.TYPE_NEGOTIATION,
        buyer_id=negotiation.buyer_id,
        seller_id=negotiation.seller_id,
        project_id=negotiation.project_id,
        negotiation=negotiation,
        original_price=original,
        discounted_price=negotiation.current_offer,
        discount_amount=discount,
        discount_percentage=discount_percentage(original, discount),
        expires_at=timezone.now() + timedelta(hours=int(_rules().get("DISCOUNT_CODE_TTL_HOURS", 48))),
    )

    negotiation.status = Negotiation.STATUS_ACCEPTED
    negotiation.final_price = negotiation.current_offer
    negotiation.last_activity = timezone.now()
    negotiation.save()
    logger.info("Negotiation %s accepted, code=%s discount=%s", negotiation.pk, code.code, discount)
    return code


@transaction.atomic
def reject_offer(seller, negotiation, reason="") -> Negotiation:
    negotiation = Negotiation.objects.select_for_update().get(pk=negotiation.pk)
    if negotiation.seller_id != seller.pk:
        raise Forbidden("Only the seller can reject offers")
    _require_active(negotiation)
    negotiation.status = Negotiation.STATUS_REJECTED
    negotiation.rejection_reason = (reason or "")[:200]
    negotiation.last_activity = timezone.now()
    negotiation.save()
    return negotiation


def welcome_eligibility(buyer) -> dict:
    from payments.models import Payment

    existing = DiscountCode.objects.filter(buyer=buyer, type=DiscountCode.TYPE_WELCOME).first()
    if existing:
        return {"eligible": False, "reason": "already_has_code", "code": existing}
    if Payment.objects.filter(buyer=buyer, status=Payment.STATUS_PAID).exists():
        return {"eligible": False, "reason": "already_purchased"}
    return {"eligible": True}


def create_welcome_code(buyer):
    """Issue the first-purchase code, or return None if the buyer has bought before."""
    eligibility = welcome_eligibility(buyer)
    if eligibility.get("code"):
        return eligibility["code"]
    if not eligibility["eligible"]:
        return None
    rules = _rules()
    code = DiscountCode.objects.create(
        code=generate_unique_code("WELCOME"),
        type=DiscountCode.TYPE_WELCOME,
        buyer=buyer,
        discount_percentage=int(rules.get("WELCOME_DISCOUNT_PERCENT", 20)),
        max_discount_amount=int(rules.get("WELCOME_MAX_DISCOUNT", 50000)),
        min_purchase_amount=int(rules.get("WELCOME_MIN_PURCHASE", 10000)),
        expires_at=timezone.now() + timedelta(days=int(rules.get("WELCOME_TTL_DAYS", 30))),
    )
    logger.info("Welcome code %s issued to buyer=%s", code.code, buyer.pk)
    return code


def _invalid(reason, error):
    return {"valid": False, "reason": reason, "error": error}


def validate_for_purchase(code, buyer, project) -> dict:
    """Check ``code`` for this buyer and project.

    Checks run in a fixed order and stop at the first failure, whose message
    is shown to the user as-is.
    """
    normalized = (code or "").strip().upper()
    discount = DiscountCode.objects.filter(code=normalized).first()
    if discount is None:
        return _invalid(NOT_FOUND, "Invalid discount code")
    if not discount.is_active:
        return _invalid(INACTIVE, "This discount code is no longer active")
    if discount.is_used:
        return _invalid(ALREADY_USED, "This discount code has already been used")
    if timezone.now() > discount.expires_at:
        return _invalid(EXPIRED, "This discount code has expired")
    if discount.buyer_id != buyer.pk:
        return _invalid(WRONG_BUYER, "This discount code belongs to another user")

    if discount.type == DiscountCode.TYPE_NEGOTIATION:
        if discount.project_id != project.pk:
            return _invalid(WRONG_PROJECT, "This discount code is not valid for this project")
        return {
            "valid": True,
            "discount_code": discount,
            "discount_amount": discount.discount_amount,
            "final_price": discount.discounted_price,
            "original_price": discount.original_price,
        }

    minimum = discount.min_purchase_amount or 0
    if project.price < minimum:
        return _invalid(BELOW_MINIMUM, f"Minimum purchase amount is {format_inr(minimum)}")
    amount = percent_of(project.price, discount.discount_percentage)
    if discount.max_discount_amount is not None:
        amount = min(amount, discount.max_discount_amount)
    return {
        "valid": True,
        "discount_code": discount,
        "discount_amount": amount,
        "final_price": project.price - amount,
        "original_price": project.price,
    }


def consume(discount_code, payment) -> bool:
    """Mark the code used by ``payment``. False if another payment got there first."""
    updated = DiscountCode.objects.filter(pk=discount_code.pk, is_used=False).update(
        is_used=True, used_at=timezone.now(), payment=payment
    )
    return updated == 1
