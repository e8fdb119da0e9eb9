"""Money helpers.

- All balances are integer paise; Decimal is used only for rates and for
  converting to/from rupees at the edges.
- split() floors the seller share so a seller is never over-credited; the
  remainder is the platform's.
"""
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP

from django.conf import settings

PAISE_PER_RUPEE = 100


def default_seller_rate() -> Decimal:
    return Decimal(str(settings.MARKETPLACE.get("SELLER_COMMISSION_RATE", "0.85")))


def split(amount: int, seller_rate: Decimal | str | None = None) -> tuple[int, int]:
    """Split ``amount`` paise into ``(seller_share, platform_share)``."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise TypeError("amount must be an integer number of paise")
    if amount < 0:
        raise ValueError("amount must be >= 0")
    if isinstance(seller_rate, float):
        raise TypeError("seller_rate must be a Decimal or string, not float")

    rate = default_seller_rate() if seller_rate is None else Decimal(seller_rate)
    if not Decimal("0") <= rate <= Decimal("1"):
        raise ValueError("seller_rate must be between 0 and 1")

    seller_share = int((Decimal(amount) * rate).quantize(Decimal("1"), rounding=ROUND_DOWN))
    return seller_share, amount - seller_share


def percent_of(amount: int, percent) -> int:
    """Round-half-up percentage of a paise amount."""
    value = Decimal(amount) * Decimal(str(percent)) / Decimal("100")
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def rupees_to_paise(amount_inr: str | Decimal | int) -> int:
    """
    Convert a rupee amount (e.g. "1000.50") to integer paise
    """
    if isinstance(amount_inr, float):
        raise TypeError("pass rupees as str or Decimal, not float")
    amount_inr = Decimal(str(amount_inr))
    return int((amount_inr * PAISE_PER_RUPEE).quantize(Decimal("1"), rounding=ROUND_DOWN))


def paise_to_rupees(amount: int) -> Decimal:
    return (Decimal(amount) / PAISE_PER_RUPEE).quantize(Decimal("0.01"))


def format_inr(amount: int) -> str:
    """Render paise for humans using Indian digit grouping, e.g. 5000000 -> 'Rs 50,000.00'."""
    rupees = paise_to_rupees(abs(amount))
    whole, frac = f"{rupees:.2f}".split(".")
    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])
    sign = "-" if amount < 0 else ""
    return f"{sign}Rs {whole}.{frac}"
