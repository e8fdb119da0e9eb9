from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from catalog.models import Project
from projectbuzz.exceptions import ValidationError
from projectbuzz.http import api_login_required, json_body

from . import services
from .models import DiscountCode, Negotiation


def _negotiation_json(n):
    return {
        "id": n.pk,
        "project_id": n.project_id,
        "buyer_id": n.buyer_id,
        "seller_id": n.seller_id,
        "status": n.status,
        "original_price": n.original_price,
        "minimum_price": n.minimum_price,
        "current_offer": n.current_offer,
        "final_price": n.final_price,
        "offer_count": n.offer_count,
        "expires_at": n.expires_at.isoformat(),
    }


def _code_json(c):
    return {
        "code": c.code,
        "type": c.type,
        "project_id": c.project_id,
        "discount_amount": c.discount_amount,
        "discount_percentage": c.discount_percentage,
        "discounted_price": c.discounted_price,
        "is_used": c.is_used,
        "expires_at": c.expires_at.isoformat(),
    }


def _project_from(body):
    project_id = body.get("project_id")
    if not project_id:
        raise ValidationError("project_id is required")
    return get_object_or_404(Project, pk=project_id)


@csrf_exempt
@require_POST
@api_login_required
def start_negotiation_view(request):
    project = _project_from(json_body(request))
    negotiation = services.start_negotiation(request.user, project)
    return JsonResponse({"success": True, "negotiation": _negotiation_json(negotiation)})


@require_GET
@api_login_required
def negotiation_detail_view(request, negotiation_id: int):
    negotiation = services.get_negotiation_for(request.user, negotiation_id)
    return JsonResponse({"success": True, "negotiation": _negotiation_json(negotiation)})


@require_GET
@api_login_required
def my_negotiations_view(request):
    qs = Negotiation.objects.filter(buyer=request.user) | Negotiation.objects.filter(seller=request.user)
    return JsonResponse({"success": True, "negotiations": [_negotiation_json(n) for n in qs[:50]]})


@csrf_exempt
@require_POST
@api_login_required
def make_offer_view(request, negotiation_id: int):
    body = json_body(request)
    negotiation = services.get_negotiation_for(request.user, negotiation_id)
    negotiation = services.make_offer(negotiation, request.user, body.get("amount"))
    return JsonResponse({"success": True, "negotiation": _negotiation_json(negotiation)})


@csrf_exempt
@require_POST
@api_login_required
def accept_offer_view(request, negotiation_id: int):
    negotiation = services.get_negotiation_for(request.user, negotiation_id)
    code = services.accept_offer(request.user, negotiation)
    return JsonResponse({
        "success": True,
        "discount_code": _code_json(code),
        "message": "Offer accepted. Discount code has been generated.",
    })


@csrf_exempt
@require_POST
@api_login_required
def reject_offer_view(request, negotiation_id: int):
    body = json_body(request)
    negotiation = services.get_negotiation_for(request.user, negotiation_id)
    negotiation = services.reject_offer(request.user, negotiation, body.get("reason", ""))
    return JsonResponse({"success": True, "negotiation": _negotiation_json(negotiation)})


@csrf_exempt
@require_POST
@api_login_required
def validate_code_view(request):
    body = json_body(request)
    project = _project_from(body)
    result = services.validate_for_purchase(body.get("code", ""), request.user, project)
    if not result["valid"]:
        return JsonResponse({"success": False, "valid": False, "message": result["error"]}, status=400)
    return JsonResponse({
        "success": True,
        "valid": True,
        "code": result["discount_code"].code,
        "discount_amount": result["discount_amount"],
        "final_price": result["final_price"],
        "original_price": result["original_price"],
    })


@csrf_exempt
@require_POST
@api_login_required
def welcome_code_view(request):
    code = services.create_welcome_code(request.user)
    if code is None:
        return JsonResponse({"success": False, "message": "Welcome codes are for first-time buyers only"}, status=400)
    return JsonResponse({"success": True, "discount_code": _code_json(code)})


@require_GET
@api_login_required
def my_codes_view(request):
    qs = DiscountCode.objects.filter(buyer=request.user)
    return JsonResponse({"success": True, "codes": [_code_json(c) for c in qs[:50]]})
