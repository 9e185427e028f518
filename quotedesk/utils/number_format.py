"""Number parsing and formatting utilities for won-denominated amounts."""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union, Optional

from quotedesk.exceptions import ValidationError

Number = Union[int, float, str, Decimal]

WON = Decimal('1')
CENT = Decimal('0.01')

# Decimal places the database columns keep
QUANTITY_PLACES = 3
DAYS_PLACES = 2
MONEY_PLACES = 2
RATE_PLACES = 4


def to_decimal(value: Optional[Number], field: str, default: Optional[Decimal] = None,
               places: Optional[int] = None) -> Decimal:
    """
    Convert user or database input to a non-negative Decimal.

    Floats go through ``str()`` so 0.15 stays 0.15 instead of its binary
    expansion. Strings may carry thousands separators (1,500,000).
    With ``places`` the value must fit that many decimal places, so what is
    calculated is exactly what the database stores.

    Raises:
        ValidationError: if the value is missing (and no default), not a number,
        not finite, negative, or more precise than ``places``.
    """
    if value is None or value == '':
        if default is not None:
            return default
        raise ValidationError(f'{field} is required', field=field)

    if isinstance(value, bool):
        raise ValidationError(f'{field} must be a number', field=field)

    try:
        if isinstance(value, str):
            value = value.strip().replace(',', '')
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f'{field} must be a number', field=field)

    if not number.is_finite():
        raise ValidationError(f'{field} must be a finite number', field=field)
    if number < 0:
        raise ValidationError(f'{field} cannot be negative', field=field)

    if places is not None:
        try:
            fits = number == number.quantize(Decimal(1).scaleb(-places))
        except InvalidOperation:
            fits = False
        if not fits:
            raise ValidationError(f'{field} allows at most {places} decimal places', field=field)

    return number


def round_cents(value: Decimal) -> Decimal:
    """Round half-up to two decimal places (stored totals)."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def round_won(value: Decimal) -> Decimal:
    """Round half-up to a whole won."""
    return value.quantize(WON, rounding=ROUND_HALF_UP)


def format_krw(value: Optional[Number]) -> str:
    """
    Format an amount as won with thousands separators.

    Examples:
        format_krw(379500) -> "₩379,500"
        format_krw(Decimal('-1200.4')) -> "-₩1,200"
        format_krw(None) -> "-"
    """
    if value is None or value == '':
        return '-'
    try:
        number = round_won(Decimal(str(value)))
    except (InvalidOperation, ValueError):
        return '-'
    sign = '-' if number < 0 else ''
    return f"{sign}₩{abs(int(number)):,}"


def json_amount(value: Optional[Number]):
    """int when the amount is whole, float otherwise (JSON friendly)."""
    if value is None:
        return None
    value = Decimal(str(value))
    return int(value) if value == value.to_integral_value() else float(value)
