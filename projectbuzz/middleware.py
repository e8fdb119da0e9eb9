import logging

from django.http import JsonResponse

from .exceptions import MarketplaceError

logger = logging.getLogger(__name__)


class ApiErrorMiddleware:
    """Render marketplace errors raised by views as JSON responses."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        return self.get_response(request)

    def process_exception(self, request, exception):
        if not isinstance(exception, MarketplaceError):
            return None
        if exception.status_code >= 500:
            logger.error("%s on %s: %s", type(exception).__name__, request.path, exception)
        else:
            logger.info("%s on %s: %s", type(exception).__name__, request.path, exception)
        return JsonResponse(
            {"success": False, "message": exception.message, "error": type(exception).__name__},
            status=exception.status_code,
        )
