# storefront/utils/money.py
from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")


def money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal) -> int:
    #gateway expects the smallest currency unit (paise, cents)
    return int((money(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))
