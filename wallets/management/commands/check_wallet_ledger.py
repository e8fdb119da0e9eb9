from django.core.management.base import BaseCommand
from wallets.models import Wallet
from wallets.money import format_inr
from wallets.services import ledger_balance


class Command(BaseCommand):
    help = "Compare each wallet's stored balance with the sum of its ledger transactions"

    def add_arguments(self, parser):
        parser.add_argument("--user", type=int, default=None, help="Only check the wallet of this user id")
        parser.add_argument("--max", type=int, default=0, help="Stop after this many wallets (0 = all)")

    def handle(self, *args, **opts):
        qs = Wallet.objects.order_by("pk")
        if opts["user"]:
            qs = qs.filter(user_id=opts["user"])
        if opts["max"]:
            qs = qs[:opts["max"]]

        checked = 0
        drifted = 0
        for wallet in qs.iterator():
            checked += 1
            expected = ledger_balance(wallet)
            if expected != wallet.balance:
                drifted += 1
                self.stdout.write(self.style.ERROR(
                    f"wallet={wallet.pk} user={wallet.user_id} balance={format_inr(wallet.balance)} "
                    f"ledger={format_inr(expected)} drift={wallet.balance - expected}"
                ))

        if drifted:
            self.stdout.write(self.style.WARNING(f"{drifted} of {checked} wallets drifted from the ledger."))
        else:
            self.stdout.write(self.style.SUCCESS(f"All {checked} wallets match the ledger."))
