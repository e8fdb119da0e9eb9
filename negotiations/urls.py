from django.urls import path
from . import views
app_name = "negotiations"
urlpatterns = [
    path("start", views.start_negotiation_view, name="start"),
    path("my", views.my_negotiations_view, name="my"),
    path("validate-code", views.validate_code_view, name="validate_code"),
    path("welcome-code", views.welcome_code_view, name="welcome_code"),
    path("codes", views.my_codes_view, name="my_codes"),
    path("<int:negotiation_id>", views.negotiation_detail_view, name="detail"),
    path("<int:negotiation_id>/offer", views.make_offer_view, name="offer"),
    path("<int:negotiation_id>/accept", views.accept_offer_view, name="accept"),
    path("<int:negotiation_id>/reject", views.reject_offer_view, name="reject"),
]
