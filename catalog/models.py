from django.conf import settings
from django.db import models


class Project(models.Model):
    STATUS_DRAFT = "draft"
    STATUS_PENDING = "pending"
    STATUS_APPROVED = "approved"
    STATUS_REJECTED = "rejected"
    STATUS_SUSPENDED = "suspended"
    STATUS_CHOICES = [
        (STATUS_DRAFT, "Draft"),
        (STATUS_PENDING, "Pending review"),
        (STATUS_APPROVED, "Approved"),
        (STATUS_REJECTED, "Rejected"),
        (STATUS_SUSPENDED, "Suspended"),
    ]

    seller = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="projects")
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    price = models.PositiveIntegerField(help_text="List price in paise")
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_DRAFT, db_index=True)

    sales_count = models.PositiveIntegerField(default=0)
    revenue = models.BigIntegerField(default=0)

    published_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created_at",)

    def __str__(self):
        return f"{self.title} ({self.status})"

    def is_purchasable_by(self, user) -> bool:
        return self.status == self.STATUS_APPROVED and self.seller_id != user.pk

    def has_buyer(self, user) -> bool:
        return self.purchases.filter(buyer=user).exists()


class Purchase(models.Model):
    """Ownership record; one row per (project, buyer)."""

    project = models.ForeignKey(Project, on_delete=models.PROTECT, related_name="purchases")
    buyer = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="purchases")
    amount = models.PositiveIntegerField(help_text="Amount paid in paise")
    order_id = models.CharField(max_length=40, blank=True, default="")
    gateway_payment_id = models.CharField(max_length=64, blank=True, default="")
    purchased_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("-purchased_at",)
        constraints = [
            models.UniqueConstraint(fields=["project", "buyer"], name="uniq_purchase_per_buyer"),
        ]

    def __str__(self):
        return f"{self.buyer_id} -> {self.project_id}"
