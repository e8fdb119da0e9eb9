from django.contrib import admin
from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("type", "recipient", "title", "is_read", "email_sent", "created_at")
    search_fields = ("recipient__username", "recipient__email", "title")
    list_filter = ("type", "category", "is_read", "email_sent", "created_at")
    raw_id_fields = ("recipient",)
    readonly_fields = ("created_at", "related")
