from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone


class Negotiation(models.Model):
    STATUS_ACTIVE = "active"
    STATUS_ACCEPTED = "accepted"
    STATUS_REJECTED = "rejected"
    STATUS_EXPIRED = "expired"
    STATUS_CHOICES = [
        (STATUS_ACTIVE, "Active"),
        (STATUS_ACCEPTED, "Accepted"),
        (STATUS_REJECTED, "Rejected"),
        (STATUS_EXPIRED, "Expired"),
    ]

    project = models.ForeignKey("catalog.Project", on_delete=models.CASCADE, related_name="negotiations")
    buyer = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="negotiations_as_buyer")
    seller = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="negotiations_as_seller")
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)

    # paise
    original_price = models.PositiveIntegerField()
    minimum_price = models.PositiveIntegerField()
    current_offer = models.PositiveIntegerField(blank=True, null=True)
    final_price = models.PositiveIntegerField(blank=True, null=True)

    last_offer_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, blank=True, null=True, related_name="+"
    )
    offer_count = models.PositiveIntegerField(default=0)
    rejection_reason = models.CharField(max_length=200, blank=True, default="")

    last_activity = models.DateTimeField(default=timezone.now)
    expires_at = models.DateTimeField()
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-last_activity",)
        constraints = [
            models.UniqueConstraint(
                fields=["project", "buyer"],
                condition=Q(status__in=["active", "accepted"]),
                name="uniq_live_negotiation_per_buyer_project",
            ),
        ]

    def __str__(self):
        return f"Negotiation({self.project_id}, buyer={self.buyer_id}, {self.status})"

    def is_expired(self, now=None) -> bool:
        return (now or timezone.now()) > self.expires_at


class DiscountCode(models.Model):
    TYPE_NEGOTIATION = "negotiation"
    TYPE_WELCOME = "welcome"
    TYPE_CHOICES = [(TYPE_NEGOTIATION, "Negotiation"), (TYPE_WELCOME, "Welcome")]

    code = models.CharField(max_length=40, unique=True)
    type = models.CharField(max_length=16, choices=TYPE_CHOICES)
    buyer = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="discount_codes")

    # negotiation codes only
    project = models.ForeignKey("catalog.Project", on_delete=models.CASCADE, blank=True, null=True, related_name="discount_codes")
    seller = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, blank=True, null=True, related_name="issued_discount_codes"
    )
    negotiation = models.OneToOneField(
        Negotiation, on_delete=models.SET_NULL, blank=True, null=True, related_name="discount_code"
    )
    original_price = models.PositiveIntegerField(blank=True, null=True)
    discounted_price = models.PositiveIntegerField(blank=True, null=True)

    discount_amount = models.PositiveIntegerField(default=0)
    discount_percentage = models.PositiveSmallIntegerField(default=0)

    # welcome codes only
    max_discount_amount = models.PositiveIntegerField(blank=True, null=True)
    min_purchase_amount = models.PositiveIntegerField(blank=True, null=True)

    is_active = models.BooleanField(default=True)
    is_used = models.BooleanField(default=False)
    used_at = models.DateTimeField(blank=True, null=True)
    expires_at = models.DateTimeField()
    payment = models.ForeignKey(
        "payments.Payment", on_delete=models.SET_NULL, blank=True, null=True, related_name="discount_codes_used"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("-created_at",)
        indexes = [models.Index(fields=["buyer", "type"], name="discount_buyer_type_idx")]

    def __str__(self):
        return self.code

    def is_valid(self, now=None) -> bool:
        return self.is_active and not self.is_used and (now or timezone.now()) <= self.expires_at
