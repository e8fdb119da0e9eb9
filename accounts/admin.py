from django.contrib import admin
from .models import Profile


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "role", "display_name", "projects_purchased", "total_spent", "projects_sold", "total_earned", "created_at")
    search_fields = ("user__username", "user__email", "display_name", "phone")
    list_filter = ("role", "created_at")
    raw_id_fields = ("user",)
    readonly_fields = ("created_at", "updated_at")
