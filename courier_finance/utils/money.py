"""
Money helpers

Finance columns are django-money ``MoneyField``s; the engine computes with
plain ``Decimal`` amounts and converts back to ``Money`` at persistence time.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from djmoney.money import Money

from courier_finance.settings import get_finance_setting


ZERO = Decimal('0')
CENT = Decimal('0.01')


def to_decimal(value) -> Decimal:
    """
    Convert a Money, number, string or None into a finite Decimal

    Anything that cannot be represented (None, junk, NaN, infinity)
    becomes zero.
    """
    if value is None:
        return ZERO
    if isinstance(value, Money):
        value = value.amount
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return ZERO
    if not result.is_finite():
        return ZERO
    return result


def to_optional_decimal(value):
    """Like ``to_decimal`` but keeps None as None"""
    if value is None:
        return None
    return to_decimal(value)


def quantize(value) -> Decimal:
    """Round to currency precision (2dp, half up)"""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_money(value, currency=None) -> Money:
    """Wrap an amount as Money in the configured currency, rounded to 2dp"""
    return Money(quantize(value), currency or get_finance_setting('CURRENCY'))


def clamp(value, lower=ZERO, upper=None) -> Decimal:
    """Clamp into [lower, upper]; upper of None means unbounded"""
    value = to_decimal(value)
    if value < lower:
        return lower
    if upper is not None and value > upper:
        return upper
    return value
