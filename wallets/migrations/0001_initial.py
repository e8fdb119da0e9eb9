from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("catalog", "0001_initial"),
        ("payments", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Wallet",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("balance", models.BigIntegerField(default=0)),
                ("total_earned", models.BigIntegerField(default=0)),
                ("total_withdrawn", models.BigIntegerField(default=0)),
                ("currency", models.CharField(default="INR", max_length=8)),
                ("status", models.CharField(choices=[("active", "Active"), ("suspended", "Suspended"), ("frozen", "Frozen")], default="active", max_length=16)),
                ("account_holder_name", models.CharField(blank=True, default="", max_length=150)),
                ("account_number", models.CharField(blank=True, default="", max_length=34)),
                ("ifsc_code", models.CharField(blank=True, default="", max_length=11)),
                ("bank_name", models.CharField(blank=True, default="", max_length=100)),
                ("upi_id", models.CharField(blank=True, default="", max_length=100)),
                ("last_transaction_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("user", models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name="wallet", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "constraints": [models.CheckConstraint(condition=models.Q(("balance__gte", 0)), name="wallet_balance_non_negative")],
            },
        ),
        migrations.CreateModel(
            name="Payout",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("payout_id", models.CharField(db_index=True, max_length=40, unique=True)),
                ("amount", models.BigIntegerField()),
                ("fees", models.BigIntegerField(default=0)),
                ("net_amount", models.BigIntegerField()),
                ("currency", models.CharField(default="INR", max_length=8)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("approved", "Approved"), ("processing", "Processing"), ("completed", "Completed"), ("rejected", "Rejected"), ("cancelled", "Cancelled")], db_index=True, default="pending", max_length=16)),
                ("bank_details", models.JSONField(blank=True, default=dict)),
                ("review_action", models.CharField(blank=True, default="", max_length=16)),
                ("review_reason", models.CharField(blank=True, default="", max_length=255)),
                ("review_comments", models.TextField(blank=True, default="")),
                ("reviewed_at", models.DateTimeField(blank=True, null=True)),
                ("utr", models.CharField(blank=True, default="", max_length=64)),
                ("failure_reason", models.CharField(blank=True, default="", max_length=255)),
                ("cancellation_reason", models.CharField(blank=True, default="", max_length=255)),
                ("requested_at", models.DateTimeField(auto_now_add=True)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("reviewed_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="reviewed_payouts", to=settings.AUTH_USER_MODEL)),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payouts", to=settings.AUTH_USER_MODEL)),
                ("wallet", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payouts", to="wallets.wallet")),
            ],
            options={
                "ordering": ("-requested_at",),
                "constraints": [models.UniqueConstraint(condition=models.Q(("status__in", ["pending", "approved", "processing"])), fields=("user",), name="uniq_open_payout_per_user")],
            },
        ),
        migrations.CreateModel(
            name="Transaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("direction", models.CharField(choices=[("credit", "Credit"), ("debit", "Debit")], max_length=8)),
                ("amount", models.BigIntegerField()),
                ("currency", models.CharField(default="INR", max_length=8)),
                ("category", models.CharField(choices=[("sale", "Sale"), ("payout", "Payout"), ("refund", "Refund"), ("adjustment", "Adjustment"), ("bonus", "Bonus"), ("penalty", "Penalty"), ("platform_commission", "Platform commission")], max_length=32)),
                ("description", models.CharField(blank=True, default="", max_length=255)),
                ("idempotency_key", models.CharField(max_length=100)),
                ("status", models.CharField(choices=[("completed", "Completed"), ("pending", "Pending")], default="completed", max_length=16)),
                ("balance_after", models.BigIntegerField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("related_payment", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="ledger_entries", to="payments.payment")),
                ("related_payout", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="ledger_entries", to="wallets.payout")),
                ("related_project", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="ledger_entries", to="catalog.project")),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="wallet_transactions", to=settings.AUTH_USER_MODEL)),
                ("wallet", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="transactions", to="wallets.wallet")),
            ],
            options={
                "ordering": ("-created_at", "-id"),
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="transaction_amount_positive"),
                    models.UniqueConstraint(fields=("wallet", "category", "idempotency_key"), name="uniq_txn_key_per_wallet_category"),
                    models.UniqueConstraint(condition=models.Q(("wallet__isnull", True)), fields=("category", "idempotency_key"), name="uniq_txn_key_unattached_category"),
                ],
            },
        ),
    ]
