from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from projectbuzz.http import api_login_required

from .models import Notification


@require_GET
@api_login_required
def notification_list_view(request):
    qs = Notification.objects.filter(recipient=request.user)
    if request.GET.get("unread") == "1":
        qs = qs.filter(is_read=False)
    items = [
        {
            "id": n.pk,
            "type": n.type,
            "category": n.category,
            "title": n.title,
            "message": n.message,
            "related": n.related,
            "is_read": n.is_read,
            "created_at": n.created_at.isoformat(),
        }
        for n in qs[:50]
    ]
    unread = Notification.objects.filter(recipient=request.user, is_read=False).count()
    return JsonResponse({"success": True, "notifications": items, "unread_count": unread})


@csrf_exempt
@require_POST
@api_login_required
def mark_all_read_view(request):
    updated = Notification.objects.filter(recipient=request.user, is_read=False).update(
        is_read=True, read_at=timezone.now()
    )
    return JsonResponse({"success": True, "updated": updated})
