"""
Pricing calculator.

Pure functions: no session, no I/O. Every (re)pricing of an order or a
quotation goes through ``price_lines`` so totals are always derived from the
same line items in the same way.

Rounding rule:
    price    -> cents, ROUND_HALF_UP (the stored line price)
    net      = price * quantity            -> cents, ROUND_HALF_UP
    vat      = net * vat_rate              -> cents, ROUND_HALF_UP
    subtotal = net + vat
    totals   = sums of the rounded line values

Prices arrive as floats (or numeric strings); they are converted through
their shortest repr so 19.99 is handled as 19.99 and not as its binary
approximation. Recomputing the same lines always yields the same totals.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Mapping

from orderflow.app.errors import InvalidProduct

DEFAULT_VAT_RATE = 0.15

_CENT = Decimal("0.01")
_REQUIRED_FIELDS = ("section", "type", "quantity", "price")


@dataclass(frozen=True)
class PricedLine:
    section: str
    type: str
    description: str | None
    quantity: int
    price: float
    vat: float
    subtotal: float

    @property
    def net(self) -> float:
        return float(_money(_to_decimal(self.price) * self.quantity))


@dataclass(frozen=True)
class PricingResult:
    lines: tuple[PricedLine, ...]
    total_price: float
    total_vat: float
    total_subtotal: float


def _money(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def _to_decimal(value: float) -> Decimal:
    return Decimal(repr(float(value)))


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def parse_price(raw: Any) -> float:
    if isinstance(raw, bool):
        raise InvalidProduct("Invalid price format")
    try:
        price = float(raw)
    except (TypeError, ValueError):
        raise InvalidProduct("Invalid price format") from None
    if not math.isfinite(price) or price < 0:
        raise InvalidProduct("Invalid price format")
    # lines store cents, so net is computed from the stored price
    return float(_money(_to_decimal(price)))


def parse_quantity(raw: Any) -> int:
    if isinstance(raw, bool):
        raise InvalidProduct("Invalid quantity")
    try:
        number = float(raw)
    except (TypeError, ValueError):
        raise InvalidProduct("Invalid quantity") from None
    if not math.isfinite(number) or number <= 0 or number != int(number):
        raise InvalidProduct("Invalid quantity")
    return int(number)


def price_line(product: Mapping[str, Any], *, vat_rate: float = DEFAULT_VAT_RATE) -> PricedLine:
    if any(_is_missing(product.get(name)) for name in _REQUIRED_FIELDS):
        raise InvalidProduct("Missing product details or price")

    price = parse_price(product["price"])
    quantity = parse_quantity(product["quantity"])

    net = _money(_to_decimal(price) * quantity)
    vat = _money(net * _to_decimal(vat_rate))
    subtotal = net + vat

    description = product.get("description")
    return PricedLine(
        section=str(product["section"]).strip(),
        type=str(product["type"]).strip(),
        description=None if description is None else str(description),
        quantity=quantity,
        price=price,
        vat=float(vat),
        subtotal=float(subtotal),
    )


def price_lines(products: Iterable[Mapping[str, Any]], *, vat_rate: float = DEFAULT_VAT_RATE) -> PricingResult:
    """
    Validate and price every line, then aggregate.

    Raises InvalidProduct on the first bad line; nothing is returned for a
    partially valid list.
    """
    lines = tuple(price_line(p, vat_rate=vat_rate) for p in products)

    total_price = sum((_to_decimal(ln.net) for ln in lines), Decimal("0"))
    total_vat = sum((_to_decimal(ln.vat) for ln in lines), Decimal("0"))
    total_subtotal = total_price + total_vat

    return PricingResult(
        lines=lines,
        total_price=float(_money(total_price)),
        total_vat=float(_money(total_vat)),
        total_subtotal=float(_money(total_subtotal)),
    )
