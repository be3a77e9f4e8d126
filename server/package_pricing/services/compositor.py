"""Sell price composition from land and flight costs."""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from ..core.exceptions import ValidationError

CENTS = Decimal("0.01")


def to_decimal(value, field: str = "amount") -> Decimal:
    """Convert a number to Decimal via its string form so floats keep their printed value."""
    if isinstance(value, Decimal):
        number = value
    else:
        try:
            number = Decimal(str(value))
        except InvalidOperation:
            raise ValidationError(detail=f"{field} is not a number: {value!r}")
    if not number.is_finite():
        raise ValidationError(detail=f"{field} is not a finite number: {value!r}")
    return number


def round_money(value) -> Decimal:
    """Round half up to two decimal places."""
    return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def round_whole(value) -> int:
    """Round half up to a whole currency unit."""
    return int(to_decimal(value).to_integral_value(rounding=ROUND_HALF_UP))


def compose(land_cost, flight_cost=0, markup_percent=0) -> int:
    """
    Sell price for one traveller.

    ``(land + flight) * (1 + markup / 100)`` rounded half up to a whole unit.
    The markup applies to the sum of the costs, never to either part alone.

    >>> compose(500, 300, 10)
    880
    """
    land = to_decimal(land_cost, "land cost")
    flight = to_decimal(flight_cost, "flight cost")
    markup = to_decimal(markup_percent, "markup")
    if land < 0 or flight < 0:
        raise ValidationError(detail="Costs must not be negative")
    if markup < 0:
        raise ValidationError(detail="Markup must not be negative")

    total = (land + flight) * (1 + markup / 100)
    return int(total.to_integral_value(rounding=ROUND_HALF_UP))
