"""Decimal arithmetic for stock quantities and weighted-average cost.

Records persist quantities and costs as floats; every calculation goes
through ``Decimal``. Quantities are quantized before they are written back.
Unit costs are kept at full precision so stock value survives a blend, and
only values are rounded, for reporting.
"""

from decimal import ROUND_HALF_UP, Decimal

QUANTITY_PLACES = Decimal("0.0001")
COST_PLACES = Decimal("0.0001")
ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize_quantity(value) -> Decimal:
    return to_decimal(value).quantize(QUANTITY_PLACES, rounding=ROUND_HALF_UP)


def quantize_cost(value) -> Decimal:
    return to_decimal(value).quantize(COST_PLACES, rounding=ROUND_HALF_UP)


def weighted_average_cost(current_quantity, current_cost, added_quantity, added_cost) -> Decimal:
    """Blend an addition into the running unit cost.

    ``(q_old * c_old + q_add * c_add) / (q_old + q_add)``; when the combined
    quantity is zero the current cost is returned unchanged.
    """
    q_old = to_decimal(current_quantity)
    c_old = to_decimal(current_cost)
    q_add = to_decimal(added_quantity)
    c_add = to_decimal(added_cost)

    total = q_old + q_add
    if total == ZERO:
        return c_old
    return (q_old * c_old + q_add * c_add) / total


def stock_value(quantity, unit_cost) -> Decimal:
    return quantize_cost(to_decimal(quantity) * to_decimal(unit_cost))


def as_float(value: Decimal) -> float:
    return float(value)
