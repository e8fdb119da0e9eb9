from django.db.models import F

from .models import Profile


def get_profile(user) -> Profile:
    profile, _ = Profile.objects.get_or_create(
        user=user,
        defaults={"display_name": (user.get_full_name() or user.get_username())},
    )
    return profile


def record_purchase_stats(buyer, amount: int) -> None:
    get_profile(buyer)
    Profile.objects.filter(user=buyer).update(
        projects_purchased=F("projects_purchased") + 1,
        total_spent=F("total_spent") + amount,
    )


def record_sale_stats(seller, amount: int) -> None:
    """Bump seller counters by the seller's share of a sale."""
    get_profile(seller)
    Profile.objects.filter(user=seller).update(
        projects_sold=F("projects_sold") + 1,
        total_earned=F("total_earned") + amount,
    )
