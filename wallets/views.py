from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from projectbuzz.exceptions import ValidationError
from projectbuzz.http import api_login_required, api_staff_required, json_body

from . import payouts as payout_service
from .models import Payout, Transaction
from .services import get_or_create_wallet, wallet_summary


def _page(request, page_size=20):
    try:
        page = int(request.GET.get("page", "1"))
    except ValueError:
        page = 1
    page = max(page, 1)
    start = (page - 1) * page_size
    return page, start, start + page_size


def _txn_json(t):
    return {
        "id": t.pk,
        "direction": t.direction,
        "amount": t.amount,
        "category": t.category,
        "description": t.description,
        "status": t.status,
        "balance_after": t.balance_after,
        "created_at": t.created_at.isoformat(),
    }


def _payout_json(p):
    return {
        "payout_id": p.payout_id,
        "amount": p.amount,
        "fees": p.fees,
        "net_amount": p.net_amount,
        "status": p.status,
        "utr": p.utr,
        "review_reason": p.review_reason,
        "requested_at": p.requested_at.isoformat(),
        "completed_at": p.completed_at.isoformat() if p.completed_at else None,
    }


def _amount(body):
    amount = body.get("amount")
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError("amount must be an integer number of paise")
    return amount


@require_GET
@api_login_required
def wallet_balance_view(request):
    wallet = get_or_create_wallet(request.user)
    return JsonResponse({"success": True, "wallet": wallet_summary(wallet)})


@require_GET
@api_login_required
def wallet_transactions_view(request):
    wallet = get_or_create_wallet(request.user)
    qs = Transaction.objects.filter(wallet=wallet)
    category = request.GET.get("category")
    if category:
        qs = qs.filter(category=category)
    page, start, end = _page(request)
    items = list(qs[start:end + 1])
    return JsonResponse({
        "success": True,
        "transactions": [_txn_json(t) for t in items[:end - start]],
        "page": page,
        "has_next": len(items) > end - start,
    })


@csrf_exempt
@require_POST
@api_login_required
def wallet_bank_details_view(request):
    body = json_body(request)
    wallet = get_or_create_wallet(request.user)
    changed = []
    for field in payout_service.BANK_FIELDS:
        if field in body:
            setattr(wallet, field, str(body[field] or "").strip())
            changed.append(field)
    if not changed:
        raise ValidationError("No bank details supplied")
    wallet.save(update_fields=changed + ["updated_at"])
    return JsonResponse({"success": True, "bank_details": wallet.bank_details()})


@csrf_exempt
@require_POST
@api_login_required
def payout_request_view(request):
    body = json_body(request)
    payout = payout_service.request_payout(request.user, _amount(body), body.get("bank_details") or {})
    return JsonResponse({"success": True, "payout": _payout_json(payout)}, status=201)


@require_GET
@api_login_required
def my_payouts_view(request):
    qs = Payout.objects.filter(user=request.user)
    return JsonResponse({"success": True, "payouts": [_payout_json(p) for p in qs[:50]]})


@csrf_exempt
@require_POST
@api_login_required
def payout_cancel_view(request, payout_id: str):
    body = json_body(request)
    payout = payout_service.cancel_payout(request.user, payout_id, body.get("reason", ""))
    return JsonResponse({"success": True, "payout": _payout_json(payout)})


@require_GET
@api_staff_required
def admin_pending_payouts_view(request):
    qs = Payout.objects.filter(status=Payout.STATUS_PENDING).order_by("requested_at")
    return JsonResponse({"success": True, "payouts": [dict(_payout_json(p), user_id=p.user_id) for p in qs[:100]]})


@csrf_exempt
@require_POST
@api_staff_required
def admin_approve_payout_view(request, payout_id: str):
    body = json_body(request)
    payout = payout_service.approve_payout(request.user, payout_id, body.get("comments", ""))
    return JsonResponse({"success": True, "payout": _payout_json(payout)})


@csrf_exempt
@require_POST
@api_staff_required
def admin_reject_payout_view(request, payout_id: str):
    body = json_body(request)
    payout = payout_service.reject_payout(request.user, payout_id, body.get("reason", ""), body.get("comments", ""))
    return JsonResponse({"success": True, "payout": _payout_json(payout)})


@csrf_exempt
@require_POST
@api_staff_required
def admin_complete_payout_view(request, payout_id: str):
    body = json_body(request)
    payout = payout_service.complete_payout(request.user, payout_id, body.get("utr", ""))
    return JsonResponse({"success": True, "payout": _payout_json(payout)})
