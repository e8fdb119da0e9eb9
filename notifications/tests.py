from unittest.mock import patch

from django.contrib.auth.models import User
from django.core import mail
from django.test import TestCase

from . import notifier
from .models import Notification


class NotifierTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user("asha", email="asha@example.com", password="x", first_name="Asha")

    def test_sale_notification_is_stored_and_emailed(self):
        ok = notifier.notify(notifier.SALE_NOTIFICATION, self.user.pk, {
            "project_title": "Chat app",
            "amount": 100000,
            "seller_share": 85000,
        })
        self.assertTrue(ok)
        n = Notification.objects.get(recipient=self.user)
        self.assertEqual(n.type, notifier.SALE_NOTIFICATION)
        self.assertEqual(n.category, "sale")
        self.assertTrue(n.email_sent)
        self.assertIn("Rs 850.00", n.message)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].subject, "You made a sale: Chat app")

    def test_unknown_event_returns_false(self):
        self.assertFalse(notifier.notify("SOMETHING_ELSE", self.user.pk, {}))
        self.assertFalse(Notification.objects.exists())

    def test_missing_recipient_returns_false(self):
        self.assertFalse(notifier.notify(notifier.PAYOUT_APPROVED, 999999, {"payout_id": "PAYOUT_1"}))

    def test_email_failure_keeps_notification(self):
        with patch("notifications.notifier.send_notification_email", return_value=False):
            self.assertTrue(notifier.notify(notifier.PAYOUT_REJECTED, self.user.pk, {"payout_id": "P1", "reason": "KYC"}))
        n = Notification.objects.get()
        self.assertFalse(n.email_sent)
        self.assertIn("KYC", n.message)

    def test_on_commit_dispatch(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            notifier.notify_on_commit(notifier.PAYOUT_REQUEST, self.user.pk, {"payout_id": "P2"})
            self.assertFalse(Notification.objects.exists())
        self.assertEqual(len(callbacks), 1)
        self.assertEqual(Notification.objects.get().title, "Payout request received")


class NotificationViewsTests(TestCase):
    def test_list_and_mark_read(self):
        user = User.objects.create_user("bob", email="bob@example.com", password="pw")
        notifier.notify(notifier.PAYMENT_FAILED, user.pk, {"order_id": "ORDER_1"})
        self.client.force_login(user)

        resp = self.client.get("/api/notifications/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["unread_count"], 1)

        resp = self.client.post("/api/notifications/read-all")
        self.assertEqual(resp.json()["updated"], 1)
        self.assertFalse(Notification.objects.filter(is_read=False).exists())
