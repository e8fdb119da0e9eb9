from django.core.management.base import BaseCommand
from payments.services import expire_stale_payments


class Command(BaseCommand):
    help = "Mark open payments past their expiry time as EXPIRED"

    def add_arguments(self, parser):
        parser.add_argument("--max", type=int, default=0, help="Expire at most this many (0 = all)")

    def handle(self, *args, **opts):
        count = expire_stale_payments(limit=opts["max"] or None)
        self.stdout.write(self.style.SUCCESS(f"Expired {count} payment(s)."))
