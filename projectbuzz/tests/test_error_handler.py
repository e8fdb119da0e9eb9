from django.test import RequestFactory, SimpleTestCase, override_settings

from projectbuzz.exceptions import Conflict, DownstreamFailure, MarketplaceError
from projectbuzz.middleware import ApiErrorMiddleware


@override_settings(DEBUG=False)
class ErrorHandlerTests(SimpleTestCase):
    def test_unknown_url_returns_json_404(self):
        response = self.client.get('/this-url-does-not-exist/')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"success": False, "message": "Not found"})

    def test_health(self):
        response = self.client.get('/api/health')
        self.assertEqual(response.json()["status"], "ok")


class ApiErrorMiddlewareTests(SimpleTestCase):
    def setUp(self):
        self.middleware = ApiErrorMiddleware(lambda request: None)
        self.request = RequestFactory().post('/api/payments/create-order')

    def test_marketplace_errors_become_json(self):
        response = self.middleware.process_exception(self.request, Conflict("Already in progress"))
        self.assertEqual(response.status_code, 409)
        self.assertJSONEqual(response.content, {"success": False, "message": "Already in progress", "error": "Conflict"})

        response = self.middleware.process_exception(self.request, DownstreamFailure("gateway down"))
        self.assertEqual(response.status_code, 502)

    def test_explicit_status_wins(self):
        response = self.middleware.process_exception(self.request, MarketplaceError("slow down", status_code=429))
        self.assertEqual(response.status_code, 429)

    def test_other_exceptions_pass_through(self):
        self.assertIsNone(self.middleware.process_exception(self.request, KeyError("x")))
