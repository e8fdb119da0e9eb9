from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

from projectbuzz.exceptions import Conflict


class Payment(models.Model):
    STATUS_PENDING = "PENDING"
    STATUS_ACTIVE = "ACTIVE"
    STATUS_PAID = "PAID"
    STATUS_FAILED = "FAILED"
    STATUS_EXPIRED = "EXPIRED"
    STATUS_CANCELLED = "CANCELLED"
    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_ACTIVE, "Active"),
        (STATUS_PAID, "Paid"),
        (STATUS_FAILED, "Failed"),
        (STATUS_EXPIRED, "Expired"),
        (STATUS_CANCELLED, "Cancelled"),
    ]
    OPEN_STATUSES = (STATUS_PENDING, STATUS_ACTIVE)
    TERMINAL_STATUSES = (STATUS_PAID, STATUS_FAILED, STATUS_EXPIRED, STATUS_CANCELLED)

    order_id = models.CharField(max_length=40, unique=True, db_index=True)  # our id, also the gateway receipt
    gateway_order_id = models.CharField(max_length=64, blank=True, default="", db_index=True)
    gateway_payment_id = models.CharField(max_length=64, blank=True, default="", db_index=True)

    buyer = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="payments")
    project = models.ForeignKey("catalog.Project", on_delete=models.PROTECT, related_name="payments")
    amount = models.PositiveIntegerField(help_text="Amount charged in paise")
    currency = models.CharField(max_length=8, default="INR")
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)

    # Set once, together with the wallet credit, in the settlement transaction.
    settled = models.BooleanField(default=False)
    settled_at = models.DateTimeField(blank=True, null=True)

    discount_code = models.CharField(max_length=40, blank=True, default="")
    discount_amount = models.PositiveIntegerField(default=0)
    original_price = models.PositiveIntegerField(default=0)
    final_price = models.PositiveIntegerField(default=0)

    customer_id = models.CharField(max_length=64, blank=True, default="")
    customer_name = models.CharField(max_length=150, blank=True, default="")
    customer_email = models.EmailField(blank=True, default="")
    customer_phone = models.CharField(max_length=16, blank=True, default="")

    payment_method = models.CharField(max_length=32, blank=True, default="")
    method_details = models.JSONField(blank=True, null=True)
    failure_reason = models.CharField(max_length=255, blank=True, default="")
    gateway_payload = models.JSONField(blank=True, null=True)
    webhook_received = models.BooleanField(default=False)

    expires_at = models.DateTimeField()
    paid_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created_at",)
        constraints = [
            models.UniqueConstraint(
                fields=["buyer", "project"],
                condition=Q(status__in=["PENDING", "ACTIVE"]),
                name="uniq_open_payment_per_buyer_project",
            ),
        ]

    def __str__(self):
        return f"{self.order_id} ({self.status})"

    @property
    def is_open(self) -> bool:
        return self.status in self.OPEN_STATUSES

    @property
    def is_paid(self) -> bool:
        return self.status == self.STATUS_PAID

    def is_expired(self, now=None) -> bool:
        return (now or timezone.now()) > self.expires_at

    def mark_paid(self, gateway_details=None) -> bool:
        """Move to PAID. Returns False (and changes nothing) if already PAID."""
        if self.status == self.STATUS_PAID:
            return False
        if self.status not in self.OPEN_STATUSES:
            raise Conflict(f"Payment {self.order_id} is {self.status} and cannot be marked paid")

        details = gateway_details or {}
        self.status = self.STATUS_PAID
        self.gateway_payment_id = details.get("payment_id") or self.gateway_payment_id
        self.payment_method = details.get("method") or self.payment_method
        method_details = {k: details[k] for k in ("bank", "wallet", "vpa", "card_id", "email", "contact") if details.get(k)}
        if method_details:
            self.method_details = method_details
        if details.get("payload") is not None:
            self.gateway_payload = details["payload"]
        self.failure_reason = ""
        self.paid_at = timezone.now()
        self.save()
        return True

    def mark_failed(self, reason="") -> bool:
        """Move an open payment to FAILED. Returns False if it was already terminal."""
        if self.status not in self.OPEN_STATUSES:
            return False
        self.status = self.STATUS_FAILED
        self.failure_reason = (reason or "Payment failed")[:255]
        self.save(update_fields=["status", "failure_reason", "updated_at"])
        return True

    def mark_expired(self) -> bool:
        if self.status not in self.OPEN_STATUSES:
            return False
        self.status = self.STATUS_EXPIRED
        self.save(update_fields=["status", "updated_at"])
        return True
