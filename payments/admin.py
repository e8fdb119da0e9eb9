from django.contrib import admin
from .models import Payment

@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("order_id", "status", "settled", "amount", "currency", "buyer", "project", "created_at", "paid_at")
    search_fields = ("order_id", "gateway_order_id", "gateway_payment_id", "customer_email", "discount_code")
    list_filter = ("status", "settled", "currency", "webhook_received", "created_at")
    raw_id_fields = ("buyer", "project")
    readonly_fields = ("settled", "settled_at", "created_at", "updated_at", "gateway_payload", "method_details")
