import time
from django.core.management.base import BaseCommand
from django.utils import timezone
from payments.models import Payment
from payments.integrations.razorpay import get_order_payments, RazorpayError
from payments.settlement import details_from_entity, settle_payment
from projectbuzz.exceptions import Conflict

class Command(BaseCommand):
    help = "Poll the gateway for open payments and settle any that were captured without a callback"

    def add_arguments(self, parser):
        parser.add_argument("--max", type=int, default=50)
        parser.add_argument("--sleep", type=float, default=0.5)
        parser.add_argument("--older-than-minutes", type=int, default=1)

    def handle(self, *args, **opts):
        # PAID rows whose settlement transaction never committed
        for p in Payment.objects.filter(status=Payment.STATUS_PAID, settled=False).order_by("updated_at")[:opts["max"]]:
            _, settled_now = settle_payment(p)
            if settled_now:
                self.stdout.write(self.style.SUCCESS(f"Settled {p.order_id} (was paid, unsettled)"))

        cutoff = timezone.now() - timezone.timedelta(minutes=opts["older_than_minutes"])
        qs = (Payment.objects.filter(status__in=Payment.OPEN_STATUSES, updated_at__lt=cutoff)
              .exclude(gateway_order_id="").order_by("updated_at")[:opts["max"]])

        if not qs.exists():
            self.stdout.write(self.style.SUCCESS("No pending payments to reconcile."))
            return

        for p in qs:
            try:
                items = get_order_payments(p.gateway_order_id)
                captured = next((i for i in items if i.get("status") == "captured"), None)
                if captured:
                    _, settled_now = settle_payment(p, details_from_entity(captured))
                    self.stdout.write(self.style.SUCCESS(f"Settled {p.order_id} -> {captured.get('id')}" if settled_now else f"{p.order_id}: already settled"))
                # conditional: a webhook may have settled the row while the gateway was polled
                elif Payment.objects.filter(pk=p.pk, status__in=Payment.OPEN_STATUSES, expires_at__lt=timezone.now()).update(
                        status=Payment.STATUS_EXPIRED, updated_at=timezone.now()):
                    self.stdout.write(self.style.SUCCESS(f"Expired {p.order_id}"))
                else:
                    self.stdout.write(f"{p.order_id}: still {p.status}")
            except (RazorpayError, Conflict) as e:
                self.stdout.write(self.style.WARNING(f"{p.order_id}: {e}"))
            time.sleep(opts["sleep"])
