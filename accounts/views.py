import logging
import uuid

from django.contrib.auth import login
from django.contrib.auth.hashers import make_password
from django.contrib.auth.models import User
from django.db import transaction
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from projectbuzz.exceptions import DownstreamFailure, ValidationError
from projectbuzz.http import api_login_required, form_error_message, json_body

from .emails import send_signup_otp_email, send_welcome_email
from .forms import RegisterStartForm, RegisterVerifyForm, ResendCodeForm
from .models import Profile
from .otp import pending_registrations
from .services import get_profile

logger = logging.getLogger(__name__)


def _generate_username() -> str:
    base = f"U{uuid.uuid4().hex[:10].upper()}"
    while User.objects.filter(username=base).exists():
        base = f"U{uuid.uuid4().hex[:10].upper()}"
    return base


def _send_code(email, payload):
    code = pending_registrations.start(email, payload)
    display_name = f"{payload['first_name']} {payload.get('last_name', '')}".strip() or email
    if not send_signup_otp_email(email=email, username=display_name, code=code):
        # Clear state so the user can retry immediately
        pending_registrations.discard(email)
        raise DownstreamFailure("We could not send the verification email. Please try again in a minute.")


@csrf_exempt
@require_POST
def register_start_view(request):
    form = RegisterStartForm(json_body(request))
    if not form.is_valid():
        raise ValidationError(form_error_message(form))
    data = form.cleaned_data
    payload = {
        "first_name": data["first_name"].strip(),
        "last_name": data.get("last_name", "").strip(),
        "email": data["email"],
        "phone": data.get("phone", ""),
        "role": data["role"],
        # never keep the raw password in the cache
        "password_hash": make_password(data["password"]),
    }
    _send_code(data["email"], payload)
    logger.info("Registration started for email=%s role=%s", data["email"], data["role"])
    return JsonResponse({"success": True, "message": "Verification code sent"})


@csrf_exempt
@require_POST
def register_resend_view(request):
    form = ResendCodeForm(json_body(request))
    if not form.is_valid():
        raise ValidationError(form_error_message(form))
    email = form.cleaned_data["email"]
    entry = pending_registrations.get(email)
    if not entry:
        raise ValidationError("No pending registration for this email")
    _send_code(email, entry["payload"])
    return JsonResponse({"success": True, "message": "Verification code re-sent"})


@csrf_exempt
@require_POST
def register_verify_view(request):
    form = RegisterVerifyForm(json_body(request))
    if not form.is_valid():
        raise ValidationError(form_error_message(form))
    email = form.cleaned_data["email"]
    payload = pending_registrations.verify(email, form.cleaned_data["otp"])

    if User.objects.filter(email__iexact=email).exists():
        raise ValidationError("An account with this email already exists.")

    with transaction.atomic():
        user = User(
            username=_generate_username(),
            email=email,
            first_name=payload["first_name"],
            last_name=payload.get("last_name", ""),
        )
        user.password = payload["password_hash"]
        user.save()
        Profile.objects.create(
            user=user,
            role=payload.get("role") or Profile.ROLE_BUYER,
            display_name=f"{payload['first_name']} {payload.get('last_name', '')}".strip(),
            phone=payload.get("phone", ""),
        )

    login(request, user)
    transaction.on_commit(lambda: send_welcome_email(user=user))
    logger.info("Registration completed for user=%s", user.pk)
    return JsonResponse({"success": True, "user_id": user.pk, "username": user.username}, status=201)


@require_GET
@api_login_required
def me_view(request):
    profile = get_profile(request.user)
    return JsonResponse({
        "success": True,
        "user": {
            "id": request.user.pk,
            "username": request.user.username,
            "email": request.user.email,
            "role": profile.role,
            "display_name": profile.display_name,
        },
        "stats": {
            "projects_purchased": profile.projects_purchased,
            "total_spent": profile.total_spent,
            "projects_sold": profile.projects_sold,
            "total_earned": profile.total_earned,
        },
    })
