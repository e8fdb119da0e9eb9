"""Wallet ledger operations.

Every balance change is a Transaction row plus a conditional F() update of
the wallet, written in the same database transaction. The unique
(wallet, category, idempotency_key) constraint makes replays harmless.
"""
import logging

from django.db import IntegrityError, transaction
from django.db.models import Case, F, Sum, When
from django.utils import timezone

from projectbuzz.exceptions import InsufficientFunds, ValidationError

from .models import Transaction, Wallet

logger = logging.getLogger(__name__)


def get_or_create_wallet(user) -> Wallet:
    wallet = Wallet.objects.filter(user=user).first()
    if wallet:
        return wallet
    try:
        with transaction.atomic():
            wallet = Wallet.objects.create(user=user)
            logger.info("Created wallet for user=%s", user.pk)
            return wallet
    except IntegrityError:
        return Wallet.objects.get(user=user)


def _validate_amount(amount):
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError("Amount must be a positive integer number of paise")


def _existing(wallet, category, idempotency_key):
    return Transaction.objects.filter(wallet=wallet, category=category, idempotency_key=idempotency_key).first()


@transaction.atomic
def credit(wallet, amount, *, idempotency_key, description="", category=Transaction.CATEGORY_SALE,
           related_payment=None, related_project=None, related_payout=None) -> Transaction:
    """Credit ``wallet`` once per (category, idempotency_key).

    A replay returns the originally recorded transaction and changes nothing.
    Refunds of a withdrawal give the money back without counting it as
    earnings, so they reduce ``total_withdrawn`` instead of raising
    ``total_earned``.
    """
    _validate_amount(amount)
    found = _existing(wallet, category, idempotency_key)
    if found:
        logger.info("Duplicate credit ignored wallet=%s key=%s category=%s", wallet.pk, idempotency_key, category)
        return found

    locked = Wallet.objects.select_for_update().get(pk=wallet.pk)
    try:
        with transaction.atomic():
            txn = Transaction.objects.create(
                wallet=locked,
                user_id=locked.user_id,
                direction=Transaction.DIRECTION_CREDIT,
                amount=amount,
                category=category,
                description=description,
                idempotency_key=idempotency_key,
                balance_after=locked.balance + amount,
                related_payment=related_payment,
                related_project=related_project,
                related_payout=related_payout,
            )
    except IntegrityError:
        # a concurrent writer recorded the same key first
        return Transaction.objects.get(wallet=locked, category=category, idempotency_key=idempotency_key)

    if category == Transaction.CATEGORY_REFUND:
        counters = {"total_withdrawn": F("total_withdrawn") - amount}
    else:
        counters = {"total_earned": F("total_earned") + amount}
    Wallet.objects.filter(pk=locked.pk).update(
        balance=F("balance") + amount,
        last_transaction_at=timezone.now(),
        **counters,
    )
    wallet.refresh_from_db()
    return txn


@transaction.atomic
def debit(wallet, amount, *, idempotency_key, description="", category=Transaction.CATEGORY_PAYOUT,
          related_payout=None) -> Transaction:
    """Debit ``wallet`` once per (category, idempotency_key), never below zero."""
    _validate_amount(amount)
    found = _existing(wallet, category, idempotency_key)
    if found:
        logger.info("Duplicate debit ignored wallet=%s key=%s category=%s", wallet.pk, idempotency_key, category)
        return found

    locked = Wallet.objects.select_for_update().get(pk=wallet.pk)
    if locked.balance < amount:
        raise InsufficientFunds(
            f"Insufficient balance: available {locked.balance}, requested {amount}"
        )

    # Conditional update: zero rows means the balance moved underneath us.
    updated = Wallet.objects.filter(pk=locked.pk, balance__gte=amount).update(
        balance=F("balance") - amount,
        total_withdrawn=F("total_withdrawn") + amount,
        last_transaction_at=timezone.now(),
    )
    if updated != 1:
        raise InsufficientFunds("Insufficient balance")

    txn = Transaction.objects.create(
        wallet=locked,
        user_id=locked.user_id,
        direction=Transaction.DIRECTION_DEBIT,
        amount=amount,
        category=category,
        description=description,
        idempotency_key=idempotency_key,
        balance_after=locked.balance - amount,
        related_payout=related_payout,
    )
    wallet.refresh_from_db()
    return txn


def record_platform_commission(amount, *, idempotency_key, description="", related_payment=None,
                               related_project=None):
    """Write the platform's share as an unattached ledger row.

    Returns None for a zero share; replays return the existing row.
    """
    if amount <= 0:
        return None
    category = Transaction.CATEGORY_PLATFORM_COMMISSION
    found = Transaction.objects.filter(wallet__isnull=True, category=category, idempotency_key=idempotency_key).first()
    if found:
        return found
    try:
        with transaction.atomic():
            return Transaction.objects.create(
                wallet=None,
                direction=Transaction.DIRECTION_CREDIT,
                amount=amount,
                category=category,
                description=description,
                idempotency_key=idempotency_key,
                related_payment=related_payment,
                related_project=related_project,
            )
    except IntegrityError:
        return Transaction.objects.get(wallet__isnull=True, category=category, idempotency_key=idempotency_key)


def ledger_balance(wallet) -> int:
    """Balance recomputed from the ledger (reconciliation only, not the hot path)."""
    total = wallet.transactions.filter(status=Transaction.STATUS_COMPLETED).aggregate(
        total=Sum(
            Case(
                When(direction=Transaction.DIRECTION_CREDIT, then=F("amount")),
                default=-F("amount"),
            )
        )
    )["total"]
    return total or 0


def ledger_drift(wallet) -> int:
    wallet.refresh_from_db()
    return wallet.balance - ledger_balance(wallet)


def wallet_summary(wallet) -> dict:
    return {
        "balance": wallet.balance,
        "available_balance": wallet.balance if wallet.is_active else 0,
        "total_earned": wallet.total_earned,
        "total_withdrawn": wallet.total_withdrawn,
        "currency": wallet.currency,
        "status": wallet.status,
        "last_transaction_at": wallet.last_transaction_at.isoformat() if wallet.last_transaction_at else None,
    }
