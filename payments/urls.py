from django.urls import path
from . import views
app_name = "payments"
urlpatterns = [
    path("", views.my_payments_view, name="my_payments"),
    path("create-order", views.create_order_view, name="create_order"),
    path("verify-payment", views.verify_payment_view, name="verify_payment"),
    path("webhook", views.webhook_view, name="webhook"),
    path("cancel/<str:order_id>", views.cancel_order_view, name="cancel_order"),
    path("order/<str:order_id>", views.order_status_view, name="order_status"),
]
