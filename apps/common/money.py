from decimal import ROUND_HALF_UP, Decimal

from django.db.models import DecimalField

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

MONEY_FIELD = DecimalField(max_digits=14, decimal_places=2)


def to_money(value) -> Decimal:
    if value is None or value == "":
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def money_sum(values) -> Decimal:
    return to_money(sum((to_money(v) for v in values), ZERO))
