from django.contrib import admin
from .models import Payout, Transaction, Wallet


@admin.register(Wallet)
class WalletAdmin(admin.ModelAdmin):
    list_display = ("user", "balance", "total_earned", "total_withdrawn", "status", "last_transaction_at")
    search_fields = ("user__username", "user__email", "account_number", "upi_id")
    list_filter = ("status",)
    raw_id_fields = ("user",)
    # balances only move through the ledger services
    readonly_fields = ("balance", "total_earned", "total_withdrawn", "last_transaction_at", "created_at", "updated_at")


@admin.register(Payout)
class PayoutAdmin(admin.ModelAdmin):
    list_display = ("payout_id", "user", "amount", "status", "requested_at", "completed_at")
    search_fields = ("payout_id", "user__username", "utr")
    list_filter = ("status", "requested_at")
    raw_id_fields = ("user", "wallet", "reviewed_by")
    readonly_fields = [f.name for f in Payout._meta.fields]


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    list_display = ("created_at", "wallet", "direction", "amount", "category", "idempotency_key", "balance_after")
    search_fields = ("idempotency_key", "description", "user__username")
    list_filter = ("direction", "category", "status", "created_at")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
