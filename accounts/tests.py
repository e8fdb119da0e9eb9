import json
from datetime import timedelta
from unittest.mock import patch

from django.contrib.auth.models import User
from django.core import mail
from django.core.cache import cache
from django.test import TestCase, override_settings
from django.utils import timezone

from projectbuzz.exceptions import ValidationError

from .models import Profile
from .otp import PendingRegistrationStore, ResendTooSoon, pending_registrations
from .services import record_purchase_stats, record_sale_stats


class PendingRegistrationStoreTests(TestCase):
    def setUp(self):
        cache.clear()
        self.store = PendingRegistrationStore()

    def test_verify_returns_payload_and_consumes_entry(self):
        code = self.store.start("a@example.com", {"first_name": "Asha"})
        self.assertEqual(len(code), 6)
        self.assertTrue(code.isdigit())

        payload = self.store.verify("A@Example.com", code)
        self.assertEqual(payload, {"first_name": "Asha"})
        self.assertIsNone(self.store.get("a@example.com"))

    def test_wrong_code_counts_attempts_and_locks_out(self):
        code = self.store.start("b@example.com", {})
        wrong = "000000" if code != "000000" else "111111"
        with self.assertRaisesMessage(ValidationError, "2 attempt(s) left"):
            self.store.verify("b@example.com", wrong)
        with self.assertRaisesMessage(ValidationError, "1 attempt(s) left"):
            self.store.verify("b@example.com", wrong)
        with self.assertRaisesMessage(ValidationError, "Too many invalid attempts"):
            self.store.verify("b@example.com", wrong)
        # the right code no longer works once locked out
        with self.assertRaises(ValidationError):
            self.store.verify("b@example.com", code)

    def test_expired_entry_is_rejected(self):
        code = self.store.start("c@example.com", {})
        later = timezone.now() + timedelta(seconds=601)
        with patch("accounts.otp.timezone.now", return_value=later):
            with self.assertRaisesMessage(ValidationError, "expired"):
                self.store.verify("c@example.com", code)

    def test_resend_cooldown(self):
        first = self.store.start("d@example.com", {"n": 1})
        with self.assertRaises(ResendTooSoon):
            self.store.start("d@example.com", {"n": 1})

        later = timezone.now() + timedelta(seconds=61)
        with patch("accounts.otp.timezone.now", return_value=later):
            second = self.store.start("d@example.com", {"n": 2})
            self.assertEqual(self.store.verify("d@example.com", second), {"n": 2})
        self.assertIsInstance(first, str)

    @override_settings(MARKETPLACE={"OTP_TTL_SECONDS": 600, "OTP_MAX_ATTEMPTS": 1, "OTP_RESEND_COOLDOWN_SECONDS": 0})
    def test_attempt_limit_follows_settings(self):
        code = self.store.start("e@example.com", {})
        wrong = "000000" if code != "000000" else "111111"
        with self.assertRaisesMessage(ValidationError, "Too many invalid attempts"):
            self.store.verify("e@example.com", wrong)


class RegistrationFlowTests(TestCase):
    def setUp(self):
        cache.clear()

    def _post(self, name, data):
        return self.client.post(f"/api/auth/register/{name}", data=json.dumps(data), content_type="application/json")

    def test_register_and_verify_creates_user_and_profile(self):
        resp = self._post("start", {
            "first_name": "Ravi",
            "last_name": "Kumar",
            "email": "Ravi@Example.com",
            "phone": "+91 98765 43210",
            "password": "longenough1",
            "role": "seller",
        })
        self.assertEqual(resp.status_code, 200, resp.content)
        self.assertEqual(len(mail.outbox), 1)
        entry = pending_registrations.get("ravi@example.com")
        self.assertNotIn("longenough1", json.dumps(entry))
        self.assertIn(entry["code"], mail.outbox[0].body)

        resp = self._post("verify", {"email": "ravi@example.com", "otp": entry["code"]})
        self.assertEqual(resp.status_code, 201, resp.content)
        user = User.objects.get(email="ravi@example.com")
        self.assertTrue(user.check_password("longenough1"))
        self.assertEqual(user.profile.role, Profile.ROLE_SELLER)
        self.assertEqual(user.profile.phone, "+919876543210")

    def test_duplicate_email_rejected(self):
        User.objects.create_user("taken", email="taken@example.com", password="x")
        resp = self._post("start", {"first_name": "T", "email": "taken@example.com", "password": "longenough1"})
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(resp.json()["success"])

    def test_wrong_code_is_400(self):
        self._post("start", {"first_name": "W", "email": "w@example.com", "password": "longenough1"})
        code = pending_registrations.get("w@example.com")["code"]
        wrong = "000000" if code != "000000" else "111111"
        resp = self._post("verify", {"email": "w@example.com", "otp": wrong})
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(User.objects.filter(email="w@example.com").exists())

    def test_failed_email_clears_pending_state(self):
        with patch("accounts.views.send_signup_otp_email", return_value=False):
            resp = self._post("start", {"first_name": "F", "email": "f@example.com", "password": "longenough1"})
        self.assertEqual(resp.status_code, 502)
        self.assertIsNone(pending_registrations.get("f@example.com"))


class ProfileStatsTests(TestCase):
    def test_counters_are_incremented(self):
        buyer = User.objects.create_user("buyer", password="x")
        seller = User.objects.create_user("seller", password="x")
        record_purchase_stats(buyer, 100000)
        record_purchase_stats(buyer, 50000)
        record_sale_stats(seller, 85000)

        buyer.profile.refresh_from_db()
        seller.profile.refresh_from_db()
        self.assertEqual(buyer.profile.projects_purchased, 2)
        self.assertEqual(buyer.profile.total_spent, 150000)
        self.assertEqual(seller.profile.projects_sold, 1)
        self.assertEqual(seller.profile.total_earned, 85000)
