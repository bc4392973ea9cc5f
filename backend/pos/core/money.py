"""
pos/core/money.py - Shared pricing helpers (discount, tax, totals).

Internal arithmetic is exact Decimal; nothing here rounds except `round_money`,
which is only called at presentation boundaries (responses, receipts, stored docs).
"""
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Iterable, NamedTuple, Tuple

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")


class DiscountType(str, Enum):
    AMOUNT = "amount"
    PERCENTAGE = "percentage"


class Totals(NamedTuple):
    subtotal: Decimal
    discount_amount: Decimal
    discounted_subtotal: Decimal
    tax_amount: Decimal
    grand_total: Decimal


def to_decimal(value: Any) -> Decimal:
    """Floats go through str() so 1.1 stays 1.1 and not 1.100000000000000088..."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value: Any) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(unit_price: Decimal, quantity: int) -> Decimal:
    return unit_price * quantity


def subtotal_of(lines: Iterable[Tuple[Decimal, int]]) -> Decimal:
    return sum((line_total(price, qty) for price, qty in lines), ZERO)


def discount_amount(subtotal: Decimal, value: Decimal, discount_type: DiscountType) -> Decimal:
    if discount_type == DiscountType.PERCENTAGE:
        return subtotal * value / HUNDRED
    return value


def tax_on(amount: Decimal, tax_rate: Decimal) -> Decimal:
    return amount * tax_rate


def compute_totals(
    subtotal: Decimal,
    discount_value: Decimal,
    discount_type: DiscountType,
    tax_rate: Decimal,
) -> Totals:
    discount = discount_amount(subtotal, discount_value, discount_type)
    discounted = max(ZERO, subtotal - discount)
    tax = tax_on(discounted, tax_rate)
    return Totals(
        subtotal=subtotal,
        discount_amount=discount,
        discounted_subtotal=discounted,
        tax_amount=tax,
        grand_total=discounted + tax,
    )


def format_currency(value: Any, currency: str = "USD") -> str:
    amount = round_money(value)
    sign = "-" if amount < 0 else ""
    symbol = "$" if currency.upper() == "USD" else f"{currency.upper()} "
    return f"{sign}{symbol}{abs(amount):,.2f}"
