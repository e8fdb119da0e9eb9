import logging

from django.conf import settings
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from projectbuzz.exceptions import ValidationError
from projectbuzz.http import api_login_required, json_body

from . import services, settlement
from .models import Payment

logger = logging.getLogger(__name__)


def _payment_json(p):
    return {
        "order_id": p.order_id,
        "gateway_order_id": p.gateway_order_id,
        "gateway_payment_id": p.gateway_payment_id,
        "project_id": p.project_id,
        "amount": p.amount,
        "currency": p.currency,
        "status": p.status,
        "settled": p.settled,
        "discount_code": p.discount_code,
        "discount_amount": p.discount_amount,
        "original_price": p.original_price,
        "final_price": p.final_price,
        "payment_method": p.payment_method,
        "failure_reason": p.failure_reason,
        "expires_at": p.expires_at.isoformat(),
        "paid_at": p.paid_at.isoformat() if p.paid_at else None,
        "created_at": p.created_at.isoformat(),
    }


@csrf_exempt
@require_POST
@api_login_required
def create_order_view(request):
    body = json_body(request)
    if not body.get("project_id"):
        raise ValidationError("project_id is required")
    project = services.project_for_order(body["project_id"])
    payment = services.create_order(
        request.user,
        project,
        discount_code=(body.get("discount_code") or "").strip() or None,
        customer_phone=str(body.get("customer_phone") or ""),
    )
    return JsonResponse({
        "success": True,
        "payment": _payment_json(payment),
        # what the checkout widget needs
        "checkout": {
            "key": settings.RAZORPAY.get("KEY_ID", ""),
            "order_id": payment.gateway_order_id,
            "amount": payment.amount,
            "currency": payment.currency,
            "name": "ProjectBuzz",
            "description": payment.project.title,
            "prefill": {
                "name": payment.customer_name,
                "email": payment.customer_email,
                "contact": payment.customer_phone,
            },
        },
    }, status=201)


@csrf_exempt
@require_POST
@api_login_required
def verify_payment_view(request):
    body = json_body(request)
    gateway_order_id = body.get("razorpay_order_id") or body.get("gateway_order_id") or ""
    gateway_payment_id = body.get("razorpay_payment_id") or body.get("gateway_payment_id") or ""
    signature = body.get("razorpay_signature") or body.get("signature") or ""
    missing = [k for k, v in (("order id", gateway_order_id), ("payment id", gateway_payment_id), ("signature", signature)) if not v]
    if missing:
        raise ValidationError(f"Missing fields: {', '.join(missing)}")

    payment, settled_now = settlement.verify_client_payment(request.user, gateway_order_id, gateway_payment_id, signature)
    return JsonResponse({
        "success": True,
        "message": "Payment verified" if settled_now else "Payment already verified",
        "payment": _payment_json(payment),
    })


@csrf_exempt
@require_POST
def webhook_view(request):
    signature = request.headers.get("X-Razorpay-Signature", "")
    result = settlement.handle_webhook(request.body, signature)
    status = 202 if result["status"] == "not_found" else 200
    return JsonResponse(dict(result, success=True), status=status)


@csrf_exempt
@require_POST
@api_login_required
def cancel_order_view(request, order_id: str):
    payment = services.cancel_order(request.user, order_id)
    return JsonResponse({"success": True, "payment": _payment_json(payment)})


@require_GET
@api_login_required
def order_status_view(request, order_id: str):
    payment = services.get_order_for_buyer(request.user, order_id)
    return JsonResponse({"success": True, "payment": _payment_json(payment)})


@require_GET
@api_login_required
def my_payments_view(request):
    """List previous payments for the logged-in buyer."""
    qs = Payment.objects.filter(buyer=request.user)

    # Very light pagination
    try:
        page = int(request.GET.get("page", "1"))
        if page < 1: page = 1
    except ValueError:
        page = 1
    page_size = 10
    start = (page - 1) * page_size
    end = start + page_size
    total = qs.count()
    return JsonResponse({
        "success": True,
        "payments": [_payment_json(p) for p in qs[start:end]],
        "page": page,
        "has_next": end < total,
        "has_prev": start > 0,
    })
