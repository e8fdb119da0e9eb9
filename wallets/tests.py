import json
from decimal import Decimal
from io import StringIO

from django.contrib.auth.models import User
from django.core.management import call_command
from django.test import TestCase, override_settings

from notifications.models import Notification
from projectbuzz.exceptions import Conflict, Forbidden, InsufficientFunds, ValidationError

from . import payouts
from .models import Payout, Transaction, Wallet
from .money import format_inr, percent_of, rupees_to_paise, split
from .services import credit, debit, get_or_create_wallet, ledger_balance, ledger_drift, record_platform_commission

BANK = {"account_holder_name": "Asha Rao", "account_number": "1234567890", "ifsc_code": "HDFC0001234"}


class MoneyTests(TestCase):
    def test_split_always_adds_up(self):
        for amount in list(range(0, 2000)) + [99999, 100000, 123457, 50_000_000]:
            seller, platform = split(amount)
            self.assertEqual(seller + platform, amount)
            self.assertGreaterEqual(platform, 0)
            self.assertLessEqual(seller, amount * 85 // 100)

    def test_split_floors_the_seller_share(self):
        self.assertEqual(split(100000), (85000, 15000))
        self.assertEqual(split(1), (0, 1))
        self.assertEqual(split(7), (5, 2))
        self.assertEqual(split(1000, Decimal("0.5")), (500, 500))

    @override_settings(MARKETPLACE={"SELLER_COMMISSION_RATE": "0.90"})
    def test_split_reads_the_configured_rate(self):
        self.assertEqual(split(1000), (900, 100))

    def test_split_rejects_non_integers(self):
        with self.assertRaises(TypeError):
            split(10.5)
        with self.assertRaises(TypeError):
            split(True)
        with self.assertRaises(ValueError):
            split(-1)
        with self.assertRaises(TypeError):
            split(100, 0.85)

    def test_formatting_and_conversion(self):
        self.assertEqual(format_inr(5000000), "Rs 50,000.00")
        self.assertEqual(format_inr(50_000_000), "Rs 5,00,000.00")
        self.assertEqual(format_inr(25000), "Rs 250.00")
        self.assertEqual(format_inr(-150), "-Rs 1.50")
        self.assertEqual(rupees_to_paise("1000.50"), 100050)
        self.assertEqual(percent_of(250000, 20), 50000)


class LedgerTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user("seller", email="seller@example.com", password="x")
        self.wallet = get_or_create_wallet(self.user)

    def test_wallet_created_once(self):
        self.assertEqual(get_or_create_wallet(self.user).pk, self.wallet.pk)
        self.assertEqual(self.wallet.balance, 0)

    def test_credit_is_idempotent(self):
        first = credit(self.wallet, 85000, idempotency_key="pay_1")
        second = credit(self.wallet, 85000, idempotency_key="pay_1")
        self.assertEqual(first.pk, second.pk)
        self.wallet.refresh_from_db()
        self.assertEqual(self.wallet.balance, 85000)
        self.assertEqual(self.wallet.total_earned, 85000)
        self.assertEqual(first.balance_after, 85000)
        self.assertEqual(Transaction.objects.filter(wallet=self.wallet).count(), 1)

    def test_balance_matches_ledger(self):
        credit(self.wallet, 85000, idempotency_key="pay_1")
        credit(self.wallet, 42500, idempotency_key="pay_2")
        debit(self.wallet, 30000, idempotency_key="PAYOUT_1")
        self.assertEqual(self.wallet.balance, 97500)
        self.assertEqual(ledger_balance(self.wallet), 97500)
        self.assertEqual(ledger_drift(self.wallet), 0)
        self.assertEqual(self.wallet.total_withdrawn, 30000)

    def test_debit_cannot_overdraw(self):
        credit(self.wallet, 50000, idempotency_key="pay_1")
        with self.assertRaises(InsufficientFunds):
            debit(self.wallet, 50001, idempotency_key="PAYOUT_1")
        self.wallet.refresh_from_db()
        self.assertEqual(self.wallet.balance, 50000)
        self.assertFalse(Transaction.objects.filter(direction=Transaction.DIRECTION_DEBIT).exists())

    def test_amount_must_be_positive_int(self):
        for bad in (0, -5, 10.0, "100"):
            with self.assertRaises(ValidationError):
                credit(self.wallet, bad, idempotency_key=f"bad-{bad}")

    def test_transactions_are_immutable(self):
        txn = credit(self.wallet, 1000, idempotency_key="pay_1")
        txn.description = "edited"
        with self.assertRaises(ValueError):
            txn.save()
        with self.assertRaises(ValueError):
            txn.delete()

    def test_platform_commission_recorded_once(self):
        a = record_platform_commission(15000, idempotency_key="pay_1")
        b = record_platform_commission(15000, idempotency_key="pay_1")
        self.assertEqual(a.pk, b.pk)
        self.assertIsNone(a.wallet)
        self.assertIsNone(record_platform_commission(0, idempotency_key="pay_2"))

    def test_check_ledger_command_reports_drift(self):
        credit(self.wallet, 1000, idempotency_key="pay_1")
        out = StringIO()
        call_command("check_wallet_ledger", stdout=out)
        self.assertIn("All 1 wallets match", out.getvalue())

        Wallet.objects.filter(pk=self.wallet.pk).update(balance=5000)
        out = StringIO()
        call_command("check_wallet_ledger", stdout=out)
        self.assertIn("drift=4000", out.getvalue())
        self.assertIn("1 of 1 wallets drifted", out.getvalue())


class PayoutTests(TestCase):
    def setUp(self):
        self.seller = User.objects.create_user("seller", email="seller@example.com", password="x")
        self.admin = User.objects.create_user("admin", email="admin@example.com", password="x", is_staff=True)
        self.wallet = get_or_create_wallet(self.seller)
        credit(self.wallet, 50000, idempotency_key="pay_1")

    def test_below_minimum_is_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            payouts.request_payout(self.seller, 24999, BANK)
        self.assertIn("Rs 250.00", ctx.exception.message)

    def test_more_than_balance_is_rejected(self):
        with self.assertRaises(InsufficientFunds):
            payouts.request_payout(self.seller, 60000, BANK)
        self.assertFalse(Payout.objects.exists())

    def test_bank_details_required(self):
        with self.assertRaises(ValidationError):
            payouts.request_payout(self.seller, 30000, {})

    def test_only_one_open_payout(self):
        payouts.request_payout(self.seller, 30000, BANK)
        with self.assertRaises(Conflict):
            payouts.request_payout(self.seller, 25000, BANK)

    def test_inactive_wallet_cannot_withdraw(self):
        Wallet.objects.filter(pk=self.wallet.pk).update(status=Wallet.STATUS_FROZEN)
        with self.assertRaises(Forbidden):
            payouts.request_payout(self.seller, 30000, BANK)

    def test_request_does_not_reserve_funds(self):
        with self.captureOnCommitCallbacks(execute=True):
            payout = payouts.request_payout(self.seller, 30000, BANK)
        self.wallet.refresh_from_db()
        self.assertEqual(self.wallet.balance, 50000)
        self.assertEqual(payout.status, Payout.STATUS_PENDING)
        self.assertEqual(payout.bank_details["ifsc_code"], "HDFC0001234")
        self.assertTrue(payout.payout_id.startswith("PAYOUT_"))
        self.assertEqual(Notification.objects.get(recipient=self.seller).title, "Payout request received")

    def test_approve_debits_once(self):
        payout = payouts.request_payout(self.seller, 30000, BANK)
        payout = payouts.approve_payout(self.admin, payout.payout_id, "ok")
        self.assertEqual(payout.status, Payout.STATUS_PROCESSING)
        self.assertEqual(payout.reviewed_by, self.admin)
        self.wallet.refresh_from_db()
        self.assertEqual(self.wallet.balance, 20000)
        self.assertEqual(self.wallet.total_withdrawn, 30000)

        with self.assertRaises(Conflict):
            payouts.approve_payout(self.admin, payout.payout_id)
        self.wallet.refresh_from_db()
        self.assertEqual(self.wallet.balance, 20000)
        self.assertEqual(ledger_drift(self.wallet), 0)

    def test_approval_rechecks_balance(self):
        payout = payouts.request_payout(self.seller, 40000, BANK)
        debit(self.wallet, 20000, idempotency_key="adjust-1", category=Transaction.CATEGORY_PENALTY)
        with self.assertRaises(InsufficientFunds):
            payouts.approve_payout(self.admin, payout.payout_id)
        payout.refresh_from_db()
        self.assertEqual(payout.status, Payout.STATUS_PENDING)

    def test_suspended_wallet_blocks_approval(self):
        payout = payouts.request_payout(self.seller, 30000, BANK)
        Wallet.objects.filter(pk=self.wallet.pk).update(status=Wallet.STATUS_SUSPENDED)
        with self.assertRaises(Forbidden) as ctx:
            payouts.approve_payout(self.admin, payout.payout_id)
        self.assertIn("suspended", ctx.exception.message)
        payout.refresh_from_db()
        self.assertEqual(payout.status, Payout.STATUS_PENDING)
        self.wallet.refresh_from_db()
        self.assertEqual(self.wallet.balance, 50000)

    def test_reject_needs_reason_and_keeps_balance(self):
        payout = payouts.request_payout(self.seller, 30000, BANK)
        with self.assertRaises(ValidationError):
            payouts.reject_payout(self.admin, payout.payout_id, "  ")
        payout = payouts.reject_payout(self.admin, payout.payout_id, "Bank details mismatch")
        self.assertEqual(payout.status, Payout.STATUS_REJECTED)
        self.wallet.refresh_from_db()
        self.assertEqual(self.wallet.balance, 50000)

    def test_complete_requires_processing(self):
        payout = payouts.request_payout(self.seller, 30000, BANK)
        with self.assertRaises(Conflict):
            payouts.complete_payout(self.admin, payout.payout_id, "UTR1")
        payouts.approve_payout(self.admin, payout.payout_id)
        payout = payouts.complete_payout(self.admin, payout.payout_id, "UTR123")
        self.assertEqual(payout.status, Payout.STATUS_COMPLETED)
        self.assertEqual(payout.utr, "UTR123")
        self.assertIsNotNone(payout.completed_at)

    def test_cancel_after_approval_refunds(self):
        payout = payouts.request_payout(self.seller, 30000, BANK)
        payouts.approve_payout(self.admin, payout.payout_id)
        payout = payouts.cancel_payout(self.seller, payout.payout_id, "changed my mind")
        self.assertEqual(payout.status, Payout.STATUS_CANCELLED)
        self.wallet.refresh_from_db()
        self.assertEqual(self.wallet.balance, 50000)
        self.assertEqual(self.wallet.total_withdrawn, 0)
        self.assertEqual(ledger_drift(self.wallet), 0)
        self.assertTrue(Transaction.objects.filter(category=Transaction.CATEGORY_REFUND, related_payout=payout).exists())

    def test_other_users_cannot_cancel(self):
        payout = payouts.request_payout(self.seller, 30000, BANK)
        stranger = User.objects.create_user("stranger", password="x")
        with self.assertRaises(Forbidden):
            payouts.cancel_payout(stranger, payout.payout_id)

    def test_wallet_created_on_first_request(self):
        newcomer = User.objects.create_user("newcomer", password="x")
        with self.assertRaises(InsufficientFunds):
            payouts.request_payout(newcomer, 30000, BANK)
        self.assertTrue(Wallet.objects.filter(user=newcomer).exists())


class WalletViewsTests(TestCase):
    def setUp(self):
        self.seller = User.objects.create_user("seller", email="seller@example.com", password="x")
        self.admin = User.objects.create_user("admin", password="x", is_staff=True)
        credit(get_or_create_wallet(self.seller), 50000, idempotency_key="pay_1")

    def post(self, url, data=None):
        return self.client.post(url, data=json.dumps(data or {}), content_type="application/json")

    def test_balance_and_transactions(self):
        self.client.force_login(self.seller)
        resp = self.client.get("/api/wallet/balance")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["wallet"]["balance"], 50000)

        resp = self.client.get("/api/wallet/transactions?category=sale")
        self.assertEqual(len(resp.json()["transactions"]), 1)
        self.assertFalse(resp.json()["has_next"])

    def test_payout_request_errors_are_json(self):
        self.client.force_login(self.seller)
        resp = self.post("/api/payouts/request", {"amount": 60000, "bank_details": BANK})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "InsufficientFunds")

        resp = self.post("/api/payouts/request", {"amount": "300", "bank_details": BANK})
        self.assertEqual(resp.status_code, 400)

    def test_payout_flow_over_http(self):
        self.client.force_login(self.seller)
        self.post("/api/wallet/bank-details", BANK)
        resp = self.post("/api/payouts/request", {"amount": 30000})
        self.assertEqual(resp.status_code, 201)
        payout_id = resp.json()["payout"]["payout_id"]

        resp = self.client.get("/api/payouts/admin/pending")
        self.assertEqual(resp.status_code, 403)

        self.client.force_login(self.admin)
        self.assertEqual(len(self.client.get("/api/payouts/admin/pending").json()["payouts"]), 1)
        resp = self.post(f"/api/payouts/admin/{payout_id}/approve", {"comments": "ok"})
        self.assertEqual(resp.json()["payout"]["status"], Payout.STATUS_PROCESSING)
        resp = self.post(f"/api/payouts/admin/{payout_id}/approve")
        self.assertEqual(resp.status_code, 409)
        resp = self.post(f"/api/payouts/admin/{payout_id}/complete", {"utr": "UTR9"})
        self.assertEqual(resp.json()["payout"]["status"], Payout.STATUS_COMPLETED)

    def test_requires_login(self):
        self.assertEqual(self.client.get("/api/wallet/balance").status_code, 401)
