from django.conf import settings
from django.db import models


class Profile(models.Model):
    ROLE_BUYER = "buyer"
    ROLE_SELLER = "seller"
    ROLE_ADMIN = "admin"
    ROLE_CHOICES = [
        (ROLE_BUYER, "Buyer"),
        (ROLE_SELLER, "Seller"),
        (ROLE_ADMIN, "Admin"),
    ]

    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="profile")
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default=ROLE_BUYER)
    display_name = models.CharField(max_length=150, blank=True, default="")
    phone = models.CharField(max_length=20, blank=True, default="")

    # Denormalised counters, maintained best-effort by settlement (paise).
    projects_purchased = models.PositiveIntegerField(default=0)
    total_spent = models.BigIntegerField(default=0)
    projects_sold = models.PositiveIntegerField(default=0)
    total_earned = models.BigIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created_at",)

    def __str__(self) -> str:
        return f"{self.display_name or self.user.get_username()} ({self.role})"

    @property
    def is_seller(self) -> bool:
        return self.role == self.ROLE_SELLER
