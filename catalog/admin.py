from django.contrib import admin
from .models import Project, Purchase


@admin.register(Project)
class ProjectAdmin(admin.ModelAdmin):
    list_display = ("title", "seller", "price", "status", "sales_count", "revenue", "created_at")
    search_fields = ("title", "seller__username", "seller__email")
    list_filter = ("status", "created_at")
    raw_id_fields = ("seller",)
    readonly_fields = ("sales_count", "revenue", "created_at", "updated_at")


@admin.register(Purchase)
class PurchaseAdmin(admin.ModelAdmin):
    list_display = ("project", "buyer", "amount", "order_id", "purchased_at")
    search_fields = ("order_id", "gateway_payment_id", "buyer__username", "project__title")
    raw_id_fields = ("project", "buyer")
    readonly_fields = ("purchased_at",)
