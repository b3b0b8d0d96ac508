from decimal import Decimal, ROUND_HALF_UP

WHOLE_UNIT = Decimal("1")


def to_decimal(value, default=Decimal("0")):
    if value is None:
        return default
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_sc(value):
    """Round to whole currency units, halves away from zero."""
    return to_decimal(value).quantize(WHOLE_UNIT, rounding=ROUND_HALF_UP)
