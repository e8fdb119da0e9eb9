from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Project",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True, default="")),
                ("price", models.PositiveIntegerField(help_text="List price in paise")),
                ("status", models.CharField(choices=[("draft", "Draft"), ("pending", "Pending review"), ("approved", "Approved"), ("rejected", "Rejected"), ("suspended", "Suspended")], db_index=True, default="draft", max_length=16)),
                ("sales_count", models.PositiveIntegerField(default=0)),
                ("revenue", models.BigIntegerField(default=0)),
                ("published_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("seller", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="projects", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ("-created_at",),
            },
        ),
        migrations.CreateModel(
            name="Purchase",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", models.PositiveIntegerField(help_text="Amount paid in paise")),
                ("order_id", models.CharField(blank=True, default="", max_length=40)),
                ("gateway_payment_id", models.CharField(blank=True, default="", max_length=64)),
                ("purchased_at", models.DateTimeField(auto_now_add=True)),
                ("buyer", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="purchases", to=settings.AUTH_USER_MODEL)),
                ("project", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="purchases", to="catalog.project")),
            ],
            options={
                "ordering": ("-purchased_at",),
                "constraints": [models.UniqueConstraint(fields=("project", "buyer"), name="uniq_purchase_per_buyer")],
            },
        ),
    ]
