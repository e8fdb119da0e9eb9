from django.urls import path
from . import views
app_name = "wallets"
urlpatterns = [
    path("wallet/balance", views.wallet_balance_view, name="wallet_balance"),
    path("wallet/transactions", views.wallet_transactions_view, name="wallet_transactions"),
    path("wallet/bank-details", views.wallet_bank_details_view, name="wallet_bank_details"),
    path("payouts/", views.my_payouts_view, name="my_payouts"),
    path("payouts/request", views.payout_request_view, name="payout_request"),
    path("payouts/<str:payout_id>/cancel", views.payout_cancel_view, name="payout_cancel"),
    path("payouts/admin/pending", views.admin_pending_payouts_view, name="admin_pending_payouts"),
    path("payouts/admin/<str:payout_id>/approve", views.admin_approve_payout_view, name="admin_approve_payout"),
    path("payouts/admin/<str:payout_id>/reject", views.admin_reject_payout_view, name="admin_reject_payout"),
    path("payouts/admin/<str:payout_id>/complete", views.admin_complete_payout_view, name="admin_complete_payout"),
]
