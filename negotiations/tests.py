import json
from datetime import timedelta

from django.contrib.auth.models import User
from django.test import TestCase
from django.utils import timezone

from catalog.models import Project
from catalog.services import record_purchase
from payments.models import Payment
from projectbuzz.exceptions import Conflict, Forbidden, ValidationError

from . import services
from .models import DiscountCode, Negotiation


class NegotiationTests(TestCase):
    def setUp(self):
        self.seller = User.objects.create_user("seller", password="x")
        self.buyer = User.objects.create_user("buyer", password="x")
        self.project = Project.objects.create(seller=self.seller, title="Inventory app", price=250000,
                                              status=Project.STATUS_APPROVED)

    def test_start_sets_floor_and_expiry(self):
        n = services.start_negotiation(self.buyer, self.project)
        self.assertEqual(n.original_price, 250000)
        self.assertEqual(n.minimum_price, 175000)
        self.assertEqual(n.seller, self.seller)
        self.assertAlmostEqual((n.expires_at - timezone.now()).total_seconds(), 7 * 86400, delta=60)
        # starting again returns the open negotiation
        self.assertEqual(services.start_negotiation(self.buyer, self.project).pk, n.pk)

    def test_cannot_negotiate_on_own_or_owned_project(self):
        with self.assertRaises(ValidationError):
            services.start_negotiation(self.seller, self.project)
        record_purchase(project=self.project, buyer=self.buyer, amount=250000, order_id="ORDER_X")
        with self.assertRaises(Conflict):
            services.start_negotiation(self.buyer, self.project)

    def test_offer_bounds(self):
        n = services.start_negotiation(self.buyer, self.project)
        with self.assertRaises(ValidationError):
            services.make_offer(n, self.buyer, 174999)
        with self.assertRaises(ValidationError):
            services.make_offer(n, self.buyer, 250000)
        n = services.make_offer(n, self.buyer, 175000)
        self.assertEqual(n.current_offer, 175000)
        self.assertEqual(n.offer_count, 1)
        self.assertEqual(n.last_offer_by, self.buyer)

    def test_accept_mints_discount_code(self):
        n = services.start_negotiation(self.buyer, self.project)
        services.make_offer(n, self.buyer, 200000)
        code = services.accept_offer(self.seller, n)

        self.assertTrue(code.code.startswith("NEGO-"))
        self.assertEqual(len(code.code), len("NEGO-") + 8)
        self.assertEqual(code.discount_amount, 50000)
        self.assertEqual(code.discount_percentage, 20)
        self.assertEqual(code.discounted_price, 200000)
        self.assertEqual(code.buyer, self.buyer)
        self.assertAlmostEqual((code.expires_at - timezone.now()).total_seconds(), 48 * 3600, delta=60)

        n.refresh_from_db()
        self.assertEqual(n.status, Negotiation.STATUS_ACCEPTED)
        self.assertEqual(n.final_price, 200000)
        with self.assertRaises(Conflict):
            services.start_negotiation(self.buyer, self.project)

    def test_only_seller_can_accept_or_reject(self):
        n = services.start_negotiation(self.buyer, self.project)
        services.make_offer(n, self.buyer, 200000)
        with self.assertRaises(Forbidden):
            services.accept_offer(self.buyer, n)
        with self.assertRaises(Forbidden):
            services.reject_offer(self.buyer, n)
        n = services.reject_offer(self.seller, n, "Too low")
        self.assertEqual(n.status, Negotiation.STATUS_REJECTED)
        self.assertFalse(DiscountCode.objects.exists())

    def test_accept_without_offer(self):
        n = services.start_negotiation(self.buyer, self.project)
        with self.assertRaises(ValidationError):
            services.accept_offer(self.seller, n)

    def test_expired_negotiation_is_closed(self):
        n = services.start_negotiation(self.buyer, self.project)
        Negotiation.objects.filter(pk=n.pk).update(expires_at=timezone.now() - timedelta(minutes=1))
        with self.assertRaises(Conflict):
            services.make_offer(n, self.buyer, 200000)
        # a fresh negotiation can be opened afterwards
        self.assertNotEqual(services.start_negotiation(self.buyer, self.project).pk, n.pk)
        n.refresh_from_db()
        self.assertEqual(n.status, Negotiation.STATUS_EXPIRED)


class DiscountValidationTests(TestCase):
    def setUp(self):
        self.seller = User.objects.create_user("seller", password="x")
        self.buyer = User.objects.create_user("buyer", password="x")
        self.project = Project.objects.create(seller=self.seller, title="Inventory app", price=250000,
                                              status=Project.STATUS_APPROVED)
        n = services.start_negotiation(self.buyer, self.project)
        services.make_offer(n, self.buyer, 200000)
        self.code = services.accept_offer(self.seller, n)

    def test_valid_code(self):
        result = services.validate_for_purchase(self.code.code.lower(), self.buyer, self.project)
        self.assertTrue(result["valid"])
        self.assertEqual(result["final_price"], 200000)
        self.assertEqual(result["discount_amount"], 50000)
        self.assertEqual(result["original_price"], 250000)

    def test_failures_in_order(self):
        other_buyer = User.objects.create_user("other", password="x")
        other_project = Project.objects.create(seller=self.seller, title="Other", price=100000,
                                               status=Project.STATUS_APPROVED)
        cases = [
            ("NEGO-NOPE0000", self.buyer, self.project, services.NOT_FOUND, "Invalid discount code"),
            (self.code.code, other_buyer, self.project, services.WRONG_BUYER, "This discount code belongs to another user"),
            (self.code.code, self.buyer, other_project, services.WRONG_PROJECT, "This discount code is not valid for this project"),
        ]
        for code, buyer, project, reason, message in cases:
            result = services.validate_for_purchase(code, buyer, project)
            self.assertFalse(result["valid"])
            self.assertEqual(result["reason"], reason)
            self.assertEqual(result["error"], message)

        DiscountCode.objects.filter(pk=self.code.pk).update(expires_at=timezone.now() - timedelta(seconds=1))
        self.assertEqual(services.validate_for_purchase(self.code.code, other_buyer, self.project)["reason"], services.EXPIRED)

        DiscountCode.objects.filter(pk=self.code.pk).update(is_used=True)
        self.assertEqual(services.validate_for_purchase(self.code.code, self.buyer, self.project)["reason"], services.ALREADY_USED)

        DiscountCode.objects.filter(pk=self.code.pk).update(is_active=False)
        self.assertEqual(services.validate_for_purchase(self.code.code, self.buyer, self.project)["reason"], services.INACTIVE)

    def test_consume_is_single_use(self):
        payment = Payment.objects.create(order_id="ORDER_1", buyer=self.buyer, project=self.project, amount=200000,
                                         expires_at=timezone.now() + timedelta(minutes=30))
        self.assertTrue(services.consume(self.code, payment))
        self.assertFalse(services.consume(self.code, payment))
        self.code.refresh_from_db()
        self.assertTrue(self.code.is_used)
        self.assertEqual(self.code.payment, payment)

    def test_validate_code_view(self):
        self.client.force_login(self.buyer)
        resp = self.client.post("/api/negotiations/validate-code",
                                data=json.dumps({"code": "WRONG", "project_id": self.project.pk}),
                                content_type="application/json")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["message"], "Invalid discount code")

        resp = self.client.post("/api/negotiations/validate-code",
                                data=json.dumps({"code": self.code.code, "project_id": self.project.pk}),
                                content_type="application/json")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["final_price"], 200000)


class WelcomeCodeTests(TestCase):
    def setUp(self):
        self.seller = User.objects.create_user("seller", password="x")
        self.buyer = User.objects.create_user("buyer", password="x")

    def project(self, price):
        return Project.objects.create(seller=self.seller, title=f"P{price}", price=price, status=Project.STATUS_APPROVED)

    def test_code_is_issued_once(self):
        code = services.create_welcome_code(self.buyer)
        self.assertTrue(code.code.startswith("WELCOME-"))
        self.assertEqual(code.discount_percentage, 20)
        self.assertEqual(services.create_welcome_code(self.buyer).pk, code.pk)
        self.assertEqual(DiscountCode.objects.filter(buyer=self.buyer).count(), 1)

    def test_percentage_cap_and_minimum(self):
        code = services.create_welcome_code(self.buyer)

        result = services.validate_for_purchase(code.code, self.buyer, self.project(100000))
        self.assertEqual(result["discount_amount"], 20000)
        self.assertEqual(result["final_price"], 80000)

        result = services.validate_for_purchase(code.code, self.buyer, self.project(500000))
        self.assertEqual(result["discount_amount"], 50000)

        result = services.validate_for_purchase(code.code, self.buyer, self.project(5000))
        self.assertFalse(result["valid"])
        self.assertEqual(result["reason"], services.BELOW_MINIMUM)
        self.assertEqual(result["error"], "Minimum purchase amount is Rs 100.00")

    def test_returning_buyers_are_not_eligible(self):
        Payment.objects.create(order_id="ORDER_1", buyer=self.buyer, project=self.project(100000), amount=100000,
                               status=Payment.STATUS_PAID, expires_at=timezone.now())
        self.assertIsNone(services.create_welcome_code(self.buyer))

        self.client.force_login(self.buyer)
        resp = self.client.post("/api/negotiations/welcome-code")
        self.assertEqual(resp.status_code, 400)
