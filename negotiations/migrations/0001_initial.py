from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("catalog", "0001_initial"),
        ("payments", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Negotiation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("status", models.CharField(choices=[("active", "Active"), ("accepted", "Accepted"), ("rejected", "Rejected"), ("expired", "Expired")], db_index=True, default="active", max_length=16)),
                ("original_price", models.PositiveIntegerField()),
                ("minimum_price", models.PositiveIntegerField()),
                ("current_offer", models.PositiveIntegerField(blank=True, null=True)),
                ("final_price", models.PositiveIntegerField(blank=True, null=True)),
                ("offer_count", models.PositiveIntegerField(default=0)),
                ("rejection_reason", models.CharField(blank=True, default="", max_length=200)),
                ("last_activity", models.DateTimeField(default=django.utils.timezone.now)),
                ("expires_at", models.DateTimeField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("buyer", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="negotiations_as_buyer", to=settings.AUTH_USER_MODEL)),
                ("last_offer_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("project", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="negotiations", to="catalog.project")),
                ("seller", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="negotiations_as_seller", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ("-last_activity",),
                "constraints": [models.UniqueConstraint(condition=models.Q(("status__in", ["active", "accepted"])), fields=("project", "buyer"), name="uniq_live_negotiation_per_buyer_project")],
            },
        ),
        migrations.CreateModel(
            name="DiscountCode",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=40, unique=True)),
                ("type", models.CharField(choices=[("negotiation", "Negotiation"), ("welcome", "Welcome")], max_length=16)),
                ("original_price", models.PositiveIntegerField(blank=True, null=True)),
                ("discounted_price", models.PositiveIntegerField(blank=True, null=True)),
                ("discount_amount", models.PositiveIntegerField(default=0)),
                ("discount_percentage", models.PositiveSmallIntegerField(default=0)),
                ("max_discount_amount", models.PositiveIntegerField(blank=True, null=True)),
                ("min_purchase_amount", models.PositiveIntegerField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("is_used", models.BooleanField(default=False)),
                ("used_at", models.DateTimeField(blank=True, null=True)),
                ("expires_at", models.DateTimeField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("buyer", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="discount_codes", to=settings.AUTH_USER_MODEL)),
                ("negotiation", models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="discount_code", to="negotiations.negotiation")),
                ("payment", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="discount_codes_used", to="payments.payment")),
                ("project", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name="discount_codes", to="catalog.project")),
                ("seller", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name="issued_discount_codes", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ("-created_at",),
                "indexes": [models.Index(fields=["buyer", "type"], name="discount_buyer_type_idx")],
            },
        ),
    ]
