import json
from datetime import timedelta
from io import StringIO
from unittest.mock import patch

from django.contrib.auth.models import User
from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone

from catalog.models import Project, Purchase
from negotiations import services as negotiation_services
from negotiations.models import DiscountCode
from notifications import notifier
from notifications.models import Notification
from projectbuzz.exceptions import Conflict, Forbidden, SignatureInvalid, ValidationError
from wallets.models import Transaction, Wallet
from wallets.services import ledger_drift

from . import services, settlement
from .integrations import razorpay
from .integrations.razorpay import RazorpayError
from .models import Payment
from .utils import generate_customer_id, generate_order_id


class PaymentTestMixin:
    def setUp(self):
        self.seller = User.objects.create_user("seller", email="seller@example.com", password="x")
        self.buyer = User.objects.create_user("buyer", email="buyer@example.com", password="x", first_name="Ravi")
        self.project = Project.objects.create(seller=self.seller, title="Chat app", price=100000,
                                              status=Project.STATUS_APPROVED)

    def verify(self, payment, gateway_payment_id="pay_123"):
        signature = razorpay.payment_signature(payment.gateway_order_id, gateway_payment_id)
        return settlement.verify_client_payment(self.buyer, payment.gateway_order_id, gateway_payment_id, signature)

    def webhook(self, event, entity, signature=None):
        raw = json.dumps({"event": event, "payload": {"payment": {"entity": entity}}}).encode()
        return self.client.post(
            "/api/payments/webhook",
            data=raw,
            content_type="application/json",
            HTTP_X_RAZORPAY_SIGNATURE=signature if signature is not None else razorpay.webhook_signature(raw),
        )


class UtilsTests(TestCase):
    def test_id_formats(self):
        order_id = generate_order_id()
        prefix, millis, rand = order_id.split("_")
        self.assertEqual(prefix, "ORDER")
        self.assertTrue(millis.isdigit())
        self.assertEqual(len(rand), 6)
        self.assertNotEqual(order_id, generate_order_id())
        self.assertTrue(generate_customer_id(42).startswith("CUST_42_"))

    def test_signatures(self):
        sig = razorpay.payment_signature("order_1", "pay_1")
        self.assertTrue(razorpay.verify_payment_signature("order_1", "pay_1", sig))
        self.assertFalse(razorpay.verify_payment_signature("order_1", "pay_2", sig))
        self.assertFalse(razorpay.verify_payment_signature("order_1", "pay_1", ""))

    @override_settings(RAZORPAY={"KEY_SECRET": "k", "WEBHOOK_SECRET": "", "MOCK": True})
    def test_webhook_secret_falls_back_to_key_secret(self):
        body = b'{"event": "payment.captured"}'
        sig = razorpay._hmac_hex("k", body)
        self.assertTrue(razorpay.verify_webhook_signature(body, sig))


class CreateOrderTests(PaymentTestMixin, TestCase):
    def test_mock_order_is_active(self):
        payment = services.create_order(self.buyer, self.project, customer_phone="9876543210")
        self.assertEqual(payment.status, Payment.STATUS_ACTIVE)
        self.assertEqual(payment.amount, 100000)
        self.assertEqual(payment.gateway_order_id, f"order_{payment.order_id}_mock")
        self.assertEqual(payment.customer_email, "buyer@example.com")
        self.assertEqual(payment.customer_name, "Ravi")
        self.assertGreater(payment.expires_at, timezone.now() + timedelta(minutes=29))

    def test_one_live_attempt_per_project(self):
        first = services.create_order(self.buyer, self.project)
        with self.assertRaises(Conflict):
            services.create_order(self.buyer, self.project)

        Payment.objects.filter(pk=first.pk).update(expires_at=timezone.now() - timedelta(seconds=1))
        second = services.create_order(self.buyer, self.project)
        first.refresh_from_db()
        self.assertEqual(first.status, Payment.STATUS_EXPIRED)
        self.assertEqual(second.status, Payment.STATUS_ACTIVE)

    def test_cannot_buy_own_or_owned_project(self):
        with self.assertRaises(ValidationError):
            services.create_order(self.seller, self.project)
        Purchase.objects.create(project=self.project, buyer=self.buyer, amount=100000)
        with self.assertRaises(Conflict):
            services.create_order(self.buyer, self.project)

    def test_unapproved_project(self):
        self.project.status = Project.STATUS_SUSPENDED
        self.project.save()
        with self.assertRaises(ValidationError):
            services.create_order(self.buyer, self.project)

    @override_settings(MARKETPLACE={"MIN_ORDER_AMOUNT": 100, "MAX_ORDER_AMOUNT": 50000, "PAYMENT_TTL_MINUTES": 30})
    def test_amount_window(self):
        with self.assertRaises(ValidationError) as ctx:
            services.create_order(self.buyer, self.project)
        self.assertEqual(ctx.exception.message, "Maximum payment amount is Rs 500.00")
        self.assertFalse(Payment.objects.exists())

    def test_negotiated_code_sets_price(self):
        n = negotiation_services.start_negotiation(self.buyer, self.project)
        negotiation_services.make_offer(n, self.buyer, 80000)
        code = negotiation_services.accept_offer(self.seller, n)

        payment = services.create_order(self.buyer, self.project, discount_code=code.code)
        self.assertEqual(payment.amount, 80000)
        self.assertEqual(payment.original_price, 100000)
        self.assertEqual(payment.discount_amount, 20000)
        self.assertEqual(payment.discount_code, code.code)

    def test_used_code_conflicts(self):
        code = negotiation_services.create_welcome_code(self.buyer)
        DiscountCode.objects.filter(pk=code.pk).update(is_used=True)
        with self.assertRaises(Conflict):
            services.create_order(self.buyer, self.project, discount_code=code.code)
        with self.assertRaises(ValidationError):
            services.create_order(self.buyer, self.project, discount_code="NOPE")

    def test_code_backs_one_open_payment(self):
        other_project = Project.objects.create(seller=self.seller, title="Todo app", price=100000,
                                               status=Project.STATUS_APPROVED)
        code = negotiation_services.create_welcome_code(self.buyer)
        first = services.create_order(self.buyer, self.project, discount_code=code.code)
        self.assertEqual(first.discount_amount, 20000)

        with self.assertRaises(Conflict):
            services.create_order(self.buyer, other_project, discount_code=code.code)
        self.assertFalse(Payment.objects.filter(project=other_project).exists())

        # releasing the first payment frees the code
        services.cancel_order(self.buyer, first.order_id)
        second = services.create_order(self.buyer, other_project, discount_code=code.code)
        self.assertEqual(second.amount, 80000)

    def test_expired_holder_releases_code(self):
        other_project = Project.objects.create(seller=self.seller, title="Todo app", price=100000,
                                               status=Project.STATUS_APPROVED)
        code = negotiation_services.create_welcome_code(self.buyer)
        first = services.create_order(self.buyer, self.project, discount_code=code.code)
        Payment.objects.filter(pk=first.pk).update(expires_at=timezone.now() - timedelta(seconds=1))

        second = services.create_order(self.buyer, other_project, discount_code=code.code)
        self.assertEqual(second.discount_code, code.code)
        first.refresh_from_db()
        self.assertEqual(first.status, Payment.STATUS_EXPIRED)

        self.verify(second)
        code.refresh_from_db()
        self.assertTrue(code.is_used)
        self.assertEqual(code.payment_id, second.pk)

    def test_gateway_failure_marks_failed(self):
        with patch("payments.services.gateway_create_order", side_effect=RazorpayError("gateway down")):
            with self.assertRaises(RazorpayError):
                services.create_order(self.buyer, self.project)
        payment = Payment.objects.get()
        self.assertEqual(payment.status, Payment.STATUS_FAILED)
        self.assertIn("gateway down", payment.failure_reason)
        # a failed attempt does not block the next one
        self.assertEqual(services.create_order(self.buyer, self.project).status, Payment.STATUS_ACTIVE)

    def test_cancel_order(self):
        payment = services.create_order(self.buyer, self.project)
        other = User.objects.create_user("other", password="x")
        with self.assertRaises(Forbidden):
            services.cancel_order(other, payment.order_id)
        payment = services.cancel_order(self.buyer, payment.order_id)
        self.assertEqual(payment.status, Payment.STATUS_CANCELLED)
        self.assertEqual(services.cancel_order(self.buyer, payment.order_id).status, Payment.STATUS_CANCELLED)

    def test_expire_command(self):
        payment = services.create_order(self.buyer, self.project)
        Payment.objects.filter(pk=payment.pk).update(expires_at=timezone.now() - timedelta(minutes=1))
        out = StringIO()
        call_command("expire_stale_payments", stdout=out)
        self.assertIn("Expired 1 payment(s).", out.getvalue())
        payment.refresh_from_db()
        self.assertEqual(payment.status, Payment.STATUS_EXPIRED)

    def test_order_lookup_expires_lazily(self):
        payment = services.create_order(self.buyer, self.project)
        Payment.objects.filter(pk=payment.pk).update(expires_at=timezone.now() - timedelta(minutes=1))
        self.assertEqual(services.get_order_for_buyer(self.buyer, payment.order_id).status, Payment.STATUS_EXPIRED)


class SettlementTests(PaymentTestMixin, TestCase):
    def test_verified_payment_is_settled(self):
        payment = services.create_order(self.buyer, self.project)
        with self.captureOnCommitCallbacks(execute=True):
            payment, settled_now = self.verify(payment)

        self.assertTrue(settled_now)
        self.assertEqual(payment.status, Payment.STATUS_PAID)
        self.assertTrue(payment.settled)
        self.assertEqual(payment.gateway_payment_id, "pay_123")
        self.assertEqual(payment.payment_method, "card")

        wallet = Wallet.objects.get(user=self.seller)
        self.assertEqual(wallet.balance, 85000)
        self.assertEqual(wallet.total_earned, 85000)
        self.assertEqual(ledger_drift(wallet), 0)
        commission = Transaction.objects.get(category=Transaction.CATEGORY_PLATFORM_COMMISSION)
        self.assertEqual(commission.amount, 15000)
        self.assertEqual(commission.related_payment, payment)

        self.assertTrue(self.project.has_buyer(self.buyer))
        self.project.refresh_from_db()
        self.assertEqual(self.project.sales_count, 1)
        self.assertEqual(self.project.revenue, 100000)
        self.assertEqual(self.seller.profile.total_earned, 85000)

        types = sorted(Notification.objects.values_list("type", flat=True))
        self.assertEqual(types, sorted([notifier.PURCHASE_CONFIRMATION, notifier.PAYMENT_SUCCESS,
                                        notifier.SALE_NOTIFICATION]))

    def test_second_settlement_changes_nothing(self):
        payment = services.create_order(self.buyer, self.project)
        with self.captureOnCommitCallbacks(execute=True):
            self.verify(payment)
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            _, settled_now = self.verify(payment)

        self.assertFalse(settled_now)
        self.assertEqual(callbacks, [])
        self.assertEqual(Wallet.objects.get(user=self.seller).balance, 85000)
        self.assertEqual(Transaction.objects.count(), 2)
        self.assertEqual(Notification.objects.count(), 3)

    def test_failure_before_commit_rolls_back_and_retry_settles_once(self):
        payment = services.create_order(self.buyer, self.project)
        with patch("payments.settlement.record_platform_commission", side_effect=RuntimeError("db hiccup")):
            with self.assertRaises(RuntimeError):
                self.verify(payment)

        payment.refresh_from_db()
        self.assertEqual(payment.status, Payment.STATUS_ACTIVE)
        self.assertFalse(payment.settled)
        self.assertFalse(Purchase.objects.exists())
        self.assertFalse(Transaction.objects.exists())
        self.assertEqual(Wallet.objects.filter(user=self.seller, balance__gt=0).count(), 0)

        payment, settled_now = self.verify(payment)
        self.assertTrue(settled_now)
        self.assertTrue(payment.settled)
        self.assertEqual(Wallet.objects.get(user=self.seller).balance, 85000)
        _, settled_again = self.verify(payment)
        self.assertFalse(settled_again)
        self.assertEqual(Wallet.objects.get(user=self.seller).balance, 85000)

    def test_verify_then_webhook_credits_once(self):
        payment = services.create_order(self.buyer, self.project)
        self.verify(payment, "pay_both")
        resp = self.webhook("payment.captured", {
            "id": "pay_both", "order_id": payment.gateway_order_id, "method": "card",
        })
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["status"], "already_settled")
        self.assertEqual(Wallet.objects.get(user=self.seller).balance, 85000)
        self.assertEqual(Transaction.objects.filter(category=Transaction.CATEGORY_SALE).count(), 1)
        self.assertEqual(Transaction.objects.filter(category=Transaction.CATEGORY_PLATFORM_COMMISSION).count(), 1)

    def test_reconcile_does_not_expire_a_row_settled_meanwhile(self):
        payment = services.create_order(self.buyer, self.project)
        past = timezone.now() - timedelta(minutes=5)
        Payment.objects.filter(pk=payment.pk).update(updated_at=past, expires_at=past)

        def settled_by_webhook(gateway_order_id):
            Payment.objects.filter(pk=payment.pk).update(status=Payment.STATUS_PAID, settled=True)
            return []

        out = StringIO()
        with patch("payments.management.commands.reconcile_pending_payments.get_order_payments",
                   side_effect=settled_by_webhook):
            call_command("reconcile_pending_payments", "--sleep", "0", stdout=out)
        payment.refresh_from_db()
        self.assertEqual(payment.status, Payment.STATUS_PAID)
        self.assertTrue(payment.settled)
        self.assertNotIn(f"Expired {payment.order_id}", out.getvalue())

    def test_reconcile_expires_stale_uncaptured_payment(self):
        payment = services.create_order(self.buyer, self.project)
        past = timezone.now() - timedelta(minutes=5)
        Payment.objects.filter(pk=payment.pk).update(updated_at=past, expires_at=past)
        out = StringIO()
        with patch("payments.management.commands.reconcile_pending_payments.get_order_payments", return_value=[]):
            call_command("reconcile_pending_payments", "--sleep", "0", stdout=out)
        self.assertIn(f"Expired {payment.order_id}", out.getvalue())
        payment.refresh_from_db()
        self.assertEqual(payment.status, Payment.STATUS_EXPIRED)

    def test_bad_signature_changes_nothing(self):
        payment = services.create_order(self.buyer, self.project)
        with self.assertRaises(SignatureInvalid):
            settlement.verify_client_payment(self.buyer, payment.gateway_order_id, "pay_123", "deadbeef")
        payment.refresh_from_db()
        self.assertEqual(payment.status, Payment.STATUS_ACTIVE)
        self.assertFalse(Wallet.objects.exists())

    def test_other_buyer_cannot_verify(self):
        payment = services.create_order(self.buyer, self.project)
        other = User.objects.create_user("other", password="x")
        sig = razorpay.payment_signature(payment.gateway_order_id, "pay_123")
        with self.assertRaises(Forbidden):
            settlement.verify_client_payment(other, payment.gateway_order_id, "pay_123", sig)

    def test_discount_code_consumed_at_settlement(self):
        code = negotiation_services.create_welcome_code(self.buyer)
        payment = services.create_order(self.buyer, self.project, discount_code=code.code)
        self.assertEqual(payment.amount, 80000)
        code.refresh_from_db()
        self.assertFalse(code.is_used)

        self.verify(payment)
        code.refresh_from_db()
        self.assertTrue(code.is_used)
        self.assertEqual(code.payment_id, payment.pk)
        self.assertEqual(Wallet.objects.get(user=self.seller).balance, 68000)

    def test_cancelled_order_cannot_be_cancelled_after_payment(self):
        payment = services.create_order(self.buyer, self.project)
        self.verify(payment)
        with self.assertRaises(Conflict):
            services.cancel_order(self.buyer, payment.order_id)

    def test_reconcile_settles_captured_payments(self):
        payment = services.create_order(self.buyer, self.project)
        Payment.objects.filter(pk=payment.pk).update(updated_at=timezone.now() - timedelta(minutes=5))
        captured = [{"id": "pay_poll", "status": "captured", "method": "upi", "vpa": "ravi@upi"}]
        out = StringIO()
        with patch("payments.management.commands.reconcile_pending_payments.get_order_payments", return_value=captured):
            call_command("reconcile_pending_payments", "--sleep", "0", stdout=out)
        self.assertIn(f"Settled {payment.order_id} -> pay_poll", out.getvalue())
        payment.refresh_from_db()
        self.assertTrue(payment.settled)
        self.assertEqual(payment.method_details, {"vpa": "ravi@upi"})


class WebhookTests(PaymentTestMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.payment = services.create_order(self.buyer, self.project)

    def entity(self, **extra):
        return dict({"id": "pay_w1", "order_id": self.payment.gateway_order_id, "method": "upi"}, **extra)

    def test_invalid_signature_is_rejected(self):
        resp = self.webhook("payment.captured", self.entity(), signature="0" * 64)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "SignatureInvalid")
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.STATUS_ACTIVE)
        self.assertFalse(self.payment.webhook_received)

    def test_captured_event_settles(self):
        with self.captureOnCommitCallbacks(execute=True):
            resp = self.webhook("payment.captured", self.entity())
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["status"], "settled")
        self.payment.refresh_from_db()
        self.assertTrue(self.payment.settled)
        self.assertTrue(self.payment.webhook_received)
        self.assertEqual(Wallet.objects.get(user=self.seller).balance, 85000)

        resp = self.webhook("payment.captured", self.entity())
        self.assertEqual(resp.json()["status"], "already_settled")
        self.assertEqual(Wallet.objects.get(user=self.seller).balance, 85000)

    def test_failed_event(self):
        with self.captureOnCommitCallbacks(execute=True):
            resp = self.webhook("payment.failed", self.entity(error_description="Card declined"))
        self.assertEqual(resp.json()["status"], "failed")
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.STATUS_FAILED)
        self.assertEqual(self.payment.failure_reason, "Card declined")
        self.assertEqual(Notification.objects.get().type, notifier.PAYMENT_FAILED)

    def test_unknown_order_is_accepted(self):
        resp = self.webhook("payment.captured", {"id": "pay_x", "order_id": "order_unknown"})
        self.assertEqual(resp.status_code, 202)
        self.assertEqual(resp.json()["status"], "not_found")

    def test_signed_non_object_payload_is_rejected(self):
        raw = b"[]"
        resp = self.client.post("/api/payments/webhook", data=raw, content_type="application/json",
                                HTTP_X_RAZORPAY_SIGNATURE=razorpay.webhook_signature(raw))
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "ValidationError")

    def test_unhandled_event_is_ignored(self):
        resp = self.webhook("refund.created", self.entity())
        self.assertEqual(resp.json()["status"], "ignored")

    def test_capture_after_expiry_needs_review(self):
        self.payment.mark_expired()
        resp = self.webhook("payment.captured", self.entity())
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["status"], "needs_review")
        self.assertFalse(Wallet.objects.exists())


class PaymentViewsTests(PaymentTestMixin, TestCase):
    def post(self, url, data=None):
        return self.client.post(url, data=json.dumps(data or {}), content_type="application/json")

    def test_checkout_flow(self):
        self.assertEqual(self.post("/api/payments/create-order", {"project_id": self.project.pk}).status_code, 401)

        self.client.force_login(self.buyer)
        resp = self.post("/api/payments/create-order", {"project_id": self.project.pk})
        self.assertEqual(resp.status_code, 201)
        body = resp.json()
        self.assertEqual(body["checkout"]["key"], "rzp_test_key")
        self.assertEqual(body["checkout"]["amount"], 100000)
        gateway_order_id = body["checkout"]["order_id"]

        resp = self.post("/api/payments/create-order", {"project_id": self.project.pk})
        self.assertEqual(resp.status_code, 409)

        resp = self.post("/api/payments/verify-payment", {
            "razorpay_order_id": gateway_order_id,
            "razorpay_payment_id": "pay_v1",
            "razorpay_signature": razorpay.payment_signature(gateway_order_id, "pay_v1"),
        })
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["payment"]["status"], Payment.STATUS_PAID)

        resp = self.client.get(f"/api/payments/order/{body['payment']['order_id']}")
        self.assertTrue(resp.json()["payment"]["settled"])
        self.assertEqual(len(self.client.get("/api/payments/").json()["payments"]), 1)

    def test_verify_requires_all_fields(self):
        self.client.force_login(self.buyer)
        resp = self.post("/api/payments/verify-payment", {"razorpay_order_id": "order_1"})
        self.assertEqual(resp.status_code, 400)
        self.assertIn("payment id", resp.json()["message"])

    def test_gateway_failure_is_502(self):
        self.client.force_login(self.buyer)
        with patch("payments.services.gateway_create_order", side_effect=RazorpayError("timeout")):
            resp = self.post("/api/payments/create-order", {"project_id": self.project.pk})
        self.assertEqual(resp.status_code, 502)

    def test_unknown_project(self):
        self.client.force_login(self.buyer)
        self.assertEqual(self.post("/api/payments/create-order", {"project_id": 9999}).status_code, 404)
