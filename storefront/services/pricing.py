from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, Tuple
from storefront.core.config import settings
from storefront.core.errors import ValidationError

# option -> (label, cost in cents)
SHIPPING_OPTIONS: Dict[str, Tuple[str, int]] = {
    "standard": ("Standard Shipping", 499),
    "express": ("Express Shipping", 1299),
}

@dataclass(frozen=True)
class Totals:
    subtotal_cents: int
    shipping_cents: int
    tax_cents: int
    total_cents: int

def shipping_option(name: str) -> Tuple[str, int]:
    try:
        return SHIPPING_OPTIONS[name]
    except KeyError:
        raise ValidationError(f"Unknown shipping option: {name}") from None

def tax_for(subtotal_cents: int, rate: Decimal | None = None) -> int:
    rate = settings.TAX_RATE if rate is None else rate
    return int((Decimal(subtotal_cents) * rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

def order_totals(lines: Iterable[Tuple[int, int]], shipping_cents: int, rate: Decimal | None = None) -> Totals:
    """``lines`` are (unit_price_cents, quantity) pairs."""
    subtotal = sum(price * qty for price, qty in lines)
    tax = tax_for(subtotal, rate)
    return Totals(subtotal_cents=subtotal, shipping_cents=shipping_cents, tax_cents=tax,
                  total_cents=subtotal + shipping_cents + tax)
