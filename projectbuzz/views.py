from django.http import JsonResponse
from django.views.decorators.http import require_GET


@require_GET
def health_view(request):
    return JsonResponse({"success": True, "status": "ok"})


def error_404_view(request, exception):
    # API clients get JSON rather than the HTML debug page
    return JsonResponse({"success": False, "message": "Not found"}, status=404)
