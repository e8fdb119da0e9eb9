"""Seller withdrawals.

pending -> approved -> processing -> completed, pending -> rejected, and any
open state -> cancelled. The wallet is debited only when an admin approves;
requesting a payout reserves nothing.
"""
import logging
import string
import time

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone
from django.utils.crypto import get_random_string

from notifications import notifier
from projectbuzz.exceptions import Conflict, Forbidden, InsufficientFunds, NotFound, ValidationError

from .models import Payout, Transaction, Wallet
from .money import format_inr
from .services import credit, debit, get_or_create_wallet

logger = logging.getLogger(__name__)

BANK_FIELDS = ("account_holder_name", "account_number", "ifsc_code", "bank_name", "upi_id")


def generate_payout_id() -> str:
    rand = get_random_string(9, allowed_chars=string.ascii_uppercase + string.digits)
    return f"PAYOUT_{int(time.time() * 1000)}_{rand}"


def min_payout_amount() -> int:
    return int(settings.MARKETPLACE.get("MIN_PAYOUT_AMOUNT", 25000))


def _bank_snapshot(wallet, bank_details):
    snapshot = wallet.bank_details()
    for field in BANK_FIELDS:
        value = (bank_details or {}).get(field)
        if value:
            snapshot[field] = str(value).strip()
    has_account = snapshot["account_number"] and snapshot["ifsc_code"]
    if not (has_account or snapshot["upi_id"]):
        raise ValidationError("Bank account number and IFSC, or a UPI id, are required")
    return snapshot


def _locked_payout(payout_id) -> Payout:
    try:
        return Payout.objects.select_for_update().get(payout_id=payout_id)
    except Payout.DoesNotExist:
        raise NotFound("Payout not found")


def request_payout(user, amount, bank_details=None) -> Payout:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError("Amount must be a positive integer number of paise")
    minimum = min_payout_amount()
    if amount < minimum:
        raise ValidationError(f"Minimum payout amount is {format_inr(minimum)}")

    wallet = get_or_create_wallet(user)
    with transaction.atomic():
        wallet = Wallet.objects.select_for_update().get(pk=wallet.pk)
        if not wallet.is_active:
            raise Forbidden(f"Wallet is {wallet.status}; payouts are disabled")
        if not wallet.can_withdraw(amount):
            raise InsufficientFunds(
                f"Insufficient balance. Available: {format_inr(wallet.balance)}, requested: {format_inr(amount)}"
            )
        if Payout.objects.filter(user=user, status__in=Payout.OPEN_STATUSES).exists():
            raise Conflict("You already have a payout request in progress")

        snapshot = _bank_snapshot(wallet, bank_details)
        try:
            with transaction.atomic():
                payout = Payout.objects.create(
                    payout_id=generate_payout_id(),
                    user=user,
                    wallet=wallet,
                    amount=amount,
                    fees=0,
                    net_amount=amount,
                    bank_details=snapshot,
                )
        except IntegrityError:
            raise Conflict("You already have a payout request in progress")

        notifier.notify_on_commit(notifier.PAYOUT_REQUEST, user.pk, {"payout_id": payout.payout_id})

    logger.info("Payout requested payout_id=%s user=%s amount=%s", payout.payout_id, user.pk, amount)
    return payout


@transaction.atomic
def approve_payout(admin, payout_id, comments="") -> Payout:
    payout = _locked_payout(payout_id)
    if payout.status != Payout.STATUS_PENDING:
        raise Conflict(f"Only pending payouts can be approved (current status: {payout.status})")

    wallet = Wallet.objects.select_for_update().get(pk=payout.wallet_id)
    if not wallet.is_active:
        raise Forbidden(f"Wallet is {wallet.status}; payouts are disabled")
    if not wallet.can_withdraw(payout.amount):
        raise InsufficientFunds(
            f"Insufficient balance. Available: {format_inr(wallet.balance)}, payout: {format_inr(payout.amount)}"
        )

    now = timezone.now()
    payout.status = Payout.STATUS_APPROVED
    payout.approved_at = now
    payout.reviewed_by = admin
    payout.review_action = "approved"
    payout.review_comments = comments or ""
    payout.reviewed_at = now

    debit(
        wallet,
        payout.amount,
        idempotency_key=payout.payout_id,
        description=f"Payout {payout.payout_id}",
        category=Transaction.CATEGORY_PAYOUT,
        related_payout=payout,
    )

    payout.status = Payout.STATUS_PROCESSING
    payout.processed_at = now
    payout.save()

    notifier.notify_on_commit(notifier.PAYOUT_APPROVED, payout.user_id, {"payout_id": payout.payout_id})
    logger.info("Payout approved payout_id=%s by=%s", payout.payout_id, getattr(admin, "pk", None))
    return payout


@transaction.atomic
def reject_payout(admin, payout_id, reason, comments="") -> Payout:
    if not (reason or "").strip():
        raise ValidationError("A rejection reason is required")
    payout = _locked_payout(payout_id)
    if payout.status != Payout.STATUS_PENDING:
        raise Conflict(f"Only pending payouts can be rejected (current status: {payout.status})")

    now = timezone.now()
    payout.status = Payout.STATUS_REJECTED
    payout.reviewed_by = admin
    payout.review_action = "rejected"
    payout.review_reason = reason.strip()
    payout.review_comments = comments or ""
    payout.reviewed_at = now
    payout.save()

    notifier.notify_on_commit(
        notifier.PAYOUT_REJECTED, payout.user_id, {"payout_id": payout.payout_id, "reason": payout.review_reason}
    )
    logger.info("Payout rejected payout_id=%s reason=%s", payout.payout_id, payout.review_reason)
    return payout


@transaction.atomic
def complete_payout(admin, payout_id, utr="") -> Payout:
    payout = _locked_payout(payout_id)
    if payout.status != Payout.STATUS_PROCESSING:
        raise Conflict(f"Only processing payouts can be completed (current status: {payout.status})")

    payout.status = Payout.STATUS_COMPLETED
    payout.utr = (utr or "").strip()
    payout.completed_at = timezone.now()
    payout.save()

    notifier.notify_on_commit(
        notifier.PAYOUT_COMPLETED, payout.user_id, {"payout_id": payout.payout_id, "utr": payout.utr}
    )
    logger.info("Payout completed payout_id=%s utr=%s", payout.payout_id, payout.utr)
    return payout


@transaction.atomic
def cancel_payout(actor, payout_id, reason="") -> Payout:
    payout = _locked_payout(payout_id)
    if payout.user_id != actor.pk and not actor.is_staff:
        raise Forbidden("You cannot cancel this payout")
    if not payout.is_open:
        raise Conflict(f"Payout is already {payout.status}")

    if payout.status == Payout.STATUS_PROCESSING:
        # money already left the wallet at approval; give it back
        credit(
            payout.wallet,
            payout.amount,
            idempotency_key=payout.payout_id,
            description=f"Cancelled payout {payout.payout_id}",
            category=Transaction.CATEGORY_REFUND,
            related_payout=payout,
        )

    payout.status = Payout.STATUS_CANCELLED
    payout.cancellation_reason = (reason or "").strip()
    payout.cancelled_at = timezone.now()
    payout.save()

    notifier.notify_on_commit(notifier.PAYOUT_CANCELLED, payout.user_id, {"payout_id": payout.payout_id})
    logger.info("Payout cancelled payout_id=%s by=%s", payout.payout_id, actor.pk)
    return payout
