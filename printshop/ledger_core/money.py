from decimal import ROUND_HALF_UP, Decimal

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def money(value) -> Decimal:
    """Coerce int/str/float/Decimal to a 2-place Decimal (half-up)."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        # go through str so floats like 0.1 don't drag binary noise along
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)
