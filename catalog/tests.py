from django.contrib.auth.models import User
from django.test import TestCase

from .models import Project, Purchase
from .services import record_purchase


class RecordPurchaseTests(TestCase):
    def setUp(self):
        self.seller = User.objects.create_user("seller", password="x")
        self.buyer = User.objects.create_user("buyer", password="x")
        self.project = Project.objects.create(seller=self.seller, title="Chat app", price=100000, status=Project.STATUS_APPROVED)

    def test_second_call_is_a_noop(self):
        purchase, created = record_purchase(project=self.project, buyer=self.buyer, amount=100000, order_id="ORDER_1")
        self.assertTrue(created)
        again, created_again = record_purchase(project=self.project, buyer=self.buyer, amount=100000, order_id="ORDER_1")
        self.assertFalse(created_again)
        self.assertEqual(again.pk, purchase.pk)

        self.project.refresh_from_db()
        self.assertEqual(self.project.sales_count, 1)
        self.assertEqual(self.project.revenue, 100000)
        self.assertEqual(Purchase.objects.count(), 1)
        self.assertTrue(self.project.has_buyer(self.buyer))

    def test_purchasable_rules(self):
        self.assertTrue(self.project.is_purchasable_by(self.buyer))
        self.assertFalse(self.project.is_purchasable_by(self.seller))
        self.project.status = Project.STATUS_PENDING
        self.assertFalse(self.project.is_purchasable_by(self.buyer))


class ProjectViewsTests(TestCase):
    def test_only_approved_projects_are_listed(self):
        seller = User.objects.create_user("seller", password="x")
        Project.objects.create(seller=seller, title="Live", price=5000, status=Project.STATUS_APPROVED)
        Project.objects.create(seller=seller, title="Draft", price=5000)
        resp = self.client.get("/api/projects/")
        self.assertEqual(resp.status_code, 200)
        titles = [p["title"] for p in resp.json()["projects"]]
        self.assertEqual(titles, ["Live"])

    def test_purchases_require_login(self):
        resp = self.client.get("/api/projects/purchased")
        self.assertEqual(resp.status_code, 401)
