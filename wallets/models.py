from django.conf import settings
from django.db import models
from django.db.models import Q


class Wallet(models.Model):
    STATUS_ACTIVE = "active"
    STATUS_SUSPENDED = "suspended"
    STATUS_FROZEN = "frozen"
    STATUS_CHOICES = [
        (STATUS_ACTIVE, "Active"),
        (STATUS_SUSPENDED, "Suspended"),
        (STATUS_FROZEN, "Frozen"),
    ]

    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="wallet")
    # All amounts in paise. balance is what can be withdrawn right now.
    balance = models.BigIntegerField(default=0)
    total_earned = models.BigIntegerField(default=0)
    total_withdrawn = models.BigIntegerField(default=0)
    currency = models.CharField(max_length=8, default="INR")
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_ACTIVE)

    account_holder_name = models.CharField(max_length=150, blank=True, default="")
    account_number = models.CharField(max_length=34, blank=True, default="")
    ifsc_code = models.CharField(max_length=11, blank=True, default="")
    bank_name = models.CharField(max_length=100, blank=True, default="")
    upi_id = models.CharField(max_length=100, blank=True, default="")

    last_transaction_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.CheckConstraint(condition=Q(balance__gte=0), name="wallet_balance_non_negative"),
        ]

    def __str__(self):
        return f"Wallet({self.user_id}) balance={self.balance}"

    @property
    def is_active(self) -> bool:
        return self.status == self.STATUS_ACTIVE

    def can_withdraw(self, amount: int) -> bool:
        return self.is_active and self.balance >= amount

    def bank_details(self) -> dict:
        return {
            "account_holder_name": self.account_holder_name,
            "account_number": self.account_number,
            "ifsc_code": self.ifsc_code,
            "bank_name": self.bank_name,
            "upi_id": self.upi_id,
        }


class Payout(models.Model):
    STATUS_PENDING = "pending"
    STATUS_APPROVED = "approved"
    STATUS_PROCESSING = "processing"
    STATUS_COMPLETED = "completed"
    STATUS_REJECTED = "rejected"
    STATUS_CANCELLED = "cancelled"
    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_APPROVED, "Approved"),
        (STATUS_PROCESSING, "Processing"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_REJECTED, "Rejected"),
        (STATUS_CANCELLED, "Cancelled"),
    ]
    OPEN_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_PROCESSING)

    payout_id = models.CharField(max_length=40, unique=True, db_index=True)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="payouts")
    wallet = models.ForeignKey(Wallet, on_delete=models.PROTECT, related_name="payouts")
    amount = models.BigIntegerField()
    fees = models.BigIntegerField(default=0)
    net_amount = models.BigIntegerField()
    currency = models.CharField(max_length=8, default="INR")
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)

    # Snapshot at request time; later wallet edits do not change it.
    bank_details = models.JSONField(default=dict, blank=True)

    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, blank=True, null=True, related_name="reviewed_payouts"
    )
    review_action = models.CharField(max_length=16, blank=True, default="")
    review_reason = models.CharField(max_length=255, blank=True, default="")
    review_comments = models.TextField(blank=True, default="")
    reviewed_at = models.DateTimeField(blank=True, null=True)

    utr = models.CharField(max_length=64, blank=True, default="")
    failure_reason = models.CharField(max_length=255, blank=True, default="")
    cancellation_reason = models.CharField(max_length=255, blank=True, default="")

    requested_at = models.DateTimeField(auto_now_add=True)
    approved_at = models.DateTimeField(blank=True, null=True)
    processed_at = models.DateTimeField(blank=True, null=True)
    completed_at = models.DateTimeField(blank=True, null=True)
    cancelled_at = models.DateTimeField(blank=True, null=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-requested_at",)
        constraints = [
            models.UniqueConstraint(
                fields=["user"],
                condition=Q(status__in=["pending", "approved", "processing"]),
                name="uniq_open_payout_per_user",
            ),
        ]

    def __str__(self):
        return f"{self.payout_id} ({self.status})"

    @property
    def is_open(self) -> bool:
        return self.status in self.OPEN_STATUSES


class Transaction(models.Model):
    """Append-only ledger row. Never updated or deleted once written."""

    DIRECTION_CREDIT = "credit"
    DIRECTION_DEBIT = "debit"
    DIRECTION_CHOICES = [(DIRECTION_CREDIT, "Credit"), (DIRECTION_DEBIT, "Debit")]

    CATEGORY_SALE = "sale"
    CATEGORY_PAYOUT = "payout"
    CATEGORY_REFUND = "refund"
    CATEGORY_ADJUSTMENT = "adjustment"
    CATEGORY_BONUS = "bonus"
    CATEGORY_PENALTY = "penalty"
    CATEGORY_PLATFORM_COMMISSION = "platform_commission"
    CATEGORY_CHOICES = [
        (CATEGORY_SALE, "Sale"),
        (CATEGORY_PAYOUT, "Payout"),
        (CATEGORY_REFUND, "Refund"),
        (CATEGORY_ADJUSTMENT, "Adjustment"),
        (CATEGORY_BONUS, "Bonus"),
        (CATEGORY_PENALTY, "Penalty"),
        (CATEGORY_PLATFORM_COMMISSION, "Platform commission"),
    ]

    STATUS_COMPLETED = "completed"
    STATUS_PENDING = "pending"
    STATUS_CHOICES = [(STATUS_COMPLETED, "Completed"), (STATUS_PENDING, "Pending")]

    # Null only for platform commission rows, which belong to no wallet.
    wallet = models.ForeignKey(Wallet, on_delete=models.PROTECT, related_name="transactions", blank=True, null=True)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="wallet_transactions", blank=True, null=True)
    direction = models.CharField(max_length=8, choices=DIRECTION_CHOICES)
    amount = models.BigIntegerField()
    currency = models.CharField(max_length=8, default="INR")
    category = models.CharField(max_length=32, choices=CATEGORY_CHOICES)
    description = models.CharField(max_length=255, blank=True, default="")
    idempotency_key = models.CharField(max_length=100)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_COMPLETED)
    balance_after = models.BigIntegerField(blank=True, null=True)

    related_payment = models.ForeignKey(
        "payments.Payment", on_delete=models.PROTECT, blank=True, null=True, related_name="ledger_entries"
    )
    related_project = models.ForeignKey(
        "catalog.Project", on_delete=models.PROTECT, blank=True, null=True, related_name="ledger_entries"
    )
    related_payout = models.ForeignKey(
        Payout, on_delete=models.PROTECT, blank=True, null=True, related_name="ledger_entries"
    )

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ("-created_at", "-id")
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name="transaction_amount_positive"),
            models.UniqueConstraint(
                fields=["wallet", "category", "idempotency_key"],
                name="uniq_txn_key_per_wallet_category",
            ),
            models.UniqueConstraint(
                fields=["category", "idempotency_key"],
                condition=Q(wallet__isnull=True),
                name="uniq_txn_key_unattached_category",
            ),
        ]

    def __str__(self):
        return f"{self.direction} {self.amount} {self.category} [{self.idempotency_key}]"

    @property
    def signed_amount(self) -> int:
        return self.amount if self.direction == self.DIRECTION_CREDIT else -self.amount

    def save(self, *args, **kwargs):
        if self.pk is not None and not self._state.adding:
            raise ValueError("Ledger transactions are immutable")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Ledger transactions cannot be deleted")
