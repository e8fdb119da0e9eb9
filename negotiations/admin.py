from django.contrib import admin
from .models import DiscountCode, Negotiation


@admin.register(Negotiation)
class NegotiationAdmin(admin.ModelAdmin):
    list_display = ("project", "buyer", "seller", "status", "original_price", "current_offer", "final_price", "last_activity")
    search_fields = ("project__title", "buyer__username", "seller__username")
    list_filter = ("status", "created_at")
    raw_id_fields = ("project", "buyer", "seller", "last_offer_by")
    readonly_fields = ("minimum_price", "created_at", "updated_at")


@admin.register(DiscountCode)
class DiscountCodeAdmin(admin.ModelAdmin):
    list_display = ("code", "type", "buyer", "project", "discount_amount", "discount_percentage", "is_active", "is_used", "expires_at")
    search_fields = ("code", "buyer__username")
    list_filter = ("type", "is_active", "is_used")
    raw_id_fields = ("buyer", "seller", "project", "negotiation", "payment")
    readonly_fields = ("used_at", "created_at")
