from django.urls import path
from . import views
app_name = "catalog"
urlpatterns = [
    path("", views.project_list_view, name="project_list"),
    path("purchased", views.my_purchases_view, name="my_purchases"),
    path("<int:project_id>", views.project_detail_view, name="project_detail"),
]
