"""Small helpers shared by the JSON views."""
import json
from functools import wraps

from django.http import JsonResponse

from .exceptions import ValidationError


def json_body(request) -> dict:
    try:
        data = json.loads(request.body.decode("utf-8") or "{}")
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise ValidationError("Invalid JSON body")
    if not isinstance(data, dict):
        raise ValidationError("JSON body must be an object")
    return data


def form_error_message(form) -> str:
    for field, errors in form.errors.items():
        if errors:
            label = "" if field == "__all__" else f"{field}: "
            return f"{label}{errors[0]}"
    return "Invalid input"


def api_login_required(view):
    """Like login_required, but answers 401 JSON instead of redirecting."""

    @wraps(view)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return JsonResponse({"success": False, "message": "Authentication required"}, status=401)
        return view(request, *args, **kwargs)

    return wrapper


def api_staff_required(view):
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return JsonResponse({"success": False, "message": "Authentication required"}, status=401)
        if not request.user.is_staff:
            return JsonResponse({"success": False, "message": "Admin access required"}, status=403)
        return view(request, *args, **kwargs)

    return wrapper
