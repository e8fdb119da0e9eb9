from django.contrib import admin
from django.urls import include, path

from . import views

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/health", views.health_view, name="health"),
    path("api/projects/", include("catalog.urls")),
    path("api/payments/", include("payments.urls")),
    path("api/negotiations/", include("negotiations.urls")),
    path("api/", include("wallets.urls")),
    path("api/notifications/", include("notifications.urls")),
    path("api/auth/", include("accounts.urls")),
]

handler404 = "projectbuzz.views.error_404_view"
