from django.db import IntegrityError, transaction
from django.db.models import F

from .models import Project, Purchase


def record_purchase(*, project, buyer, amount, order_id="", gateway_payment_id=""):
    """Give ``buyer`` ownership of ``project``.

    Returns ``(purchase, created)``; an existing row is returned untouched so
    re-running settlement never double counts the sale.
    """
    existing = Purchase.objects.filter(project=project, buyer=buyer).first()
    if existing:
        return existing, False
    try:
        with transaction.atomic():
            purchase = Purchase.objects.create(
                project=project,
                buyer=buyer,
                amount=amount,
                order_id=order_id,
                gateway_payment_id=gateway_payment_id,
            )
    except IntegrityError:
        return Purchase.objects.get(project=project, buyer=buyer), False

    Project.objects.filter(pk=project.pk).update(
        sales_count=F("sales_count") + 1,
        revenue=F("revenue") + amount,
    )
    return purchase, True
