from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("catalog", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("order_id", models.CharField(db_index=True, max_length=40, unique=True)),
                ("gateway_order_id", models.CharField(blank=True, db_index=True, default="", max_length=64)),
                ("gateway_payment_id", models.CharField(blank=True, db_index=True, default="", max_length=64)),
                ("amount", models.PositiveIntegerField(help_text="Amount charged in paise")),
                ("currency", models.CharField(default="INR", max_length=8)),
                ("status", models.CharField(choices=[("PENDING", "Pending"), ("ACTIVE", "Active"), ("PAID", "Paid"), ("FAILED", "Failed"), ("EXPIRED", "Expired"), ("CANCELLED", "Cancelled")], db_index=True, default="PENDING", max_length=16)),
                ("settled", models.BooleanField(default=False)),
                ("settled_at", models.DateTimeField(blank=True, null=True)),
                ("discount_code", models.CharField(blank=True, default="", max_length=40)),
                ("discount_amount", models.PositiveIntegerField(default=0)),
                ("original_price", models.PositiveIntegerField(default=0)),
                ("final_price", models.PositiveIntegerField(default=0)),
                ("customer_id", models.CharField(blank=True, default="", max_length=64)),
                ("customer_name", models.CharField(blank=True, default="", max_length=150)),
                ("customer_email", models.EmailField(blank=True, default="", max_length=254)),
                ("customer_phone", models.CharField(blank=True, default="", max_length=16)),
                ("payment_method", models.CharField(blank=True, default="", max_length=32)),
                ("method_details", models.JSONField(blank=True, null=True)),
                ("failure_reason", models.CharField(blank=True, default="", max_length=255)),
                ("gateway_payload", models.JSONField(blank=True, null=True)),
                ("webhook_received", models.BooleanField(default=False)),
                ("expires_at", models.DateTimeField()),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("buyer", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payments", to=settings.AUTH_USER_MODEL)),
                ("project", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="catalog.project")),
            ],
            options={
                "ordering": ("-created_at",),
                "constraints": [models.UniqueConstraint(condition=models.Q(("status__in", ["PENDING", "ACTIVE"])), fields=("buyer", "project"), name="uniq_open_payment_per_buyer_project")],
            },
        ),
    ]
