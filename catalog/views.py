from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_GET

from projectbuzz.http import api_login_required

from .models import Project, Purchase


def _project_json(p):
    return {
        "id": p.pk,
        "title": p.title,
        "price": p.price,
        "status": p.status,
        "seller_id": p.seller_id,
        "sales_count": p.sales_count,
    }


@require_GET
def project_list_view(request):
    qs = Project.objects.filter(status=Project.STATUS_APPROVED)

    # Very light pagination
    try:
        page = max(int(request.GET.get("page", "1")), 1)
    except ValueError:
        page = 1
    page_size = 20
    start = (page - 1) * page_size
    items = list(qs[start:start + page_size + 1])
    return JsonResponse({
        "success": True,
        "projects": [_project_json(p) for p in items[:page_size]],
        "page": page,
        "has_next": len(items) > page_size,
    })


@require_GET
def project_detail_view(request, project_id: int):
    project = get_object_or_404(Project, pk=project_id, status=Project.STATUS_APPROVED)
    data = _project_json(project)
    data["description"] = project.description
    if request.user.is_authenticated:
        data["owned"] = project.has_buyer(request.user)
    return JsonResponse({"success": True, "project": data})


@require_GET
@api_login_required
def my_purchases_view(request):
    qs = Purchase.objects.filter(buyer=request.user).select_related("project")
    return JsonResponse({
        "success": True,
        "purchases": [
            {
                "project": _project_json(p.project),
                "amount": p.amount,
                "order_id": p.order_id,
                "purchased_at": p.purchased_at.isoformat(),
            }
            for p in qs
        ],
    })
