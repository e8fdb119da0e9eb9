from django.urls import path
from . import views
app_name = "accounts"
urlpatterns = [
    path("register/start", views.register_start_view, name="register_start"),
    path("register/resend", views.register_resend_view, name="register_resend"),
    path("register/verify", views.register_verify_view, name="register_verify"),
    path("me", views.me_view, name="me"),
]
