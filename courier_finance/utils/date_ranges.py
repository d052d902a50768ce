"""
Effective dates and report date windows

Every finance report places an order in time with the same rule:

- DELIVERED orders use ``delivered_at``, falling back to ``updated_at`` then
  ``created_at``.
- RETURNED/FAILED orders use ``updated_at``, falling back to ``created_at``.

``effective_date`` applies the rule to a loaded order and
``effective_date_expression`` is the equivalent ORM expression used to filter
in the database. Both must stay in sync.

Range bounds are inclusive and built at local midnight / end of day in the
current Django time zone.
"""
import logging
import re
from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple

from dateutil import parser as date_parser
from django.db.models import Case, DateTimeField, F, When
from django.db.models.functions import Coalesce
from django.utils import timezone

from courier_finance.constants import (
    ORDER_STATUS_DELIVERED,
    DATE_RANGE_ALL,
    DATE_RANGE_CUSTOM,
    DATE_RANGE_DAYS,
)
from courier_finance.exceptions import InvalidRange


logger = logging.getLogger(__name__)

ISO_DATE_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')
US_DATE_RE = re.compile(r'^\d{1,2}/\d{1,2}/\d{4}$')

DateRange = Tuple[Optional[datetime], Optional[datetime]]


# ==========================================
# EFFECTIVE DATE
# ==========================================

def effective_date(order) -> Optional[datetime]:
    """
    Return the single date used to place an order in every finance report

    Args:
        order: Order instance (or any object with status and timestamps)

    Returns:
        datetime or None when the order carries no timestamp at all
    """
    status = str(getattr(order, 'status', '') or '').strip().upper()
    delivered_at = getattr(order, 'delivered_at', None)
    updated_at = getattr(order, 'updated_at', None)
    created_at = getattr(order, 'created_at', None)

    if status == ORDER_STATUS_DELIVERED:
        return delivered_at or updated_at or created_at
    return updated_at or created_at


def effective_date_expression():
    """ORM expression computing ``effective_date`` inside the database"""
    return Case(
        When(
            status=ORDER_STATUS_DELIVERED,
            then=Coalesce(F('delivered_at'), F('updated_at'), F('created_at')),
        ),
        default=Coalesce(F('updated_at'), F('created_at')),
        output_field=DateTimeField(),
    )


# ==========================================
# DAY BOUNDARIES
# ==========================================

def start_of_day(value) -> datetime:
    """Local midnight of the given date/datetime"""
    if isinstance(value, datetime):
        value = timezone.localtime(value).date() if timezone.is_aware(value) else value.date()
    return timezone.make_aware(datetime.combine(value, time.min))


def end_of_day(value) -> datetime:
    """Last representable instant of the given local day"""
    if isinstance(value, datetime):
        value = timezone.localtime(value).date() if timezone.is_aware(value) else value.date()
    return timezone.make_aware(datetime.combine(value, time.max))


def first_day_of_month(value=None) -> datetime:
    """Local midnight of the first day of the month containing ``value``"""
    value = timezone.localtime(value) if value is not None else timezone.localtime()
    return start_of_day(value.date().replace(day=1))


# ==========================================
# FILTER PARSING
# ==========================================

def parse_date_input(raw) -> Optional[date]:
    """
    Parse a user supplied calendar date

    Accepts YYYY-MM-DD, MM/DD/YYYY and anything python-dateutil understands.
    Unparseable input is logged and ignored (returns None).
    """
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw

    value = str(raw).strip()
    if not value:
        return None

    try:
        if ISO_DATE_RE.match(value):
            return datetime.strptime(value, '%Y-%m-%d').date()
        if US_DATE_RE.match(value):
            return datetime.strptime(value, '%m/%d/%Y').date()
        return date_parser.parse(value).date()
    except (ValueError, OverflowError) as e:
        error = InvalidRange(value)
        logger.warning(f"{error}; ignoring bound ({str(e)})")
        return None


def build_date_range(range_key=None, date_from=None, date_to=None, now=None) -> DateRange:
    """
    Build inclusive (start, end) bounds from a quick range or explicit dates

    Explicit ``date_from``/``date_to`` win over ``range_key``. A missing or
    invalid bound is left open.

    Args:
        range_key: today, 7, 7d, 15, 15d, 30, 30d, all or custom
        date_from: Start calendar date (optional)
        date_to: End calendar date (optional)
        now: Reference time for quick ranges (defaults to timezone.now())

    Returns:
        tuple: (start, end), each a datetime or None
    """
    start_date = parse_date_input(date_from)
    end_date = parse_date_input(date_to)

    if start_date or end_date:
        return (
            start_of_day(start_date) if start_date else None,
            end_of_day(end_date) if end_date else None,
        )

    key = str(range_key or '').strip().lower()
    if not key or key in (DATE_RANGE_ALL, DATE_RANGE_CUSTOM):
        return None, None

    days = DATE_RANGE_DAYS.get(key)
    if days is None:
        logger.warning(f"{InvalidRange(range_key)}; ignoring quick range")
        return None, None

    today = timezone.localtime(now or timezone.now()).date()
    return start_of_day(today - timedelta(days=days - 1)), end_of_day(today)


def has_explicit_range(range_key=None, date_from=None, date_to=None) -> bool:
    """
    Whether the caller asked for a usable window at all (even 'all')

    Unparseable dates and unknown quick ranges are ignored, so a request
    carrying only those behaves as if no window was given.
    """
    if parse_date_input(date_from) or parse_date_input(date_to):
        return True
    key = str(range_key or '').strip().lower()
    return key in (DATE_RANGE_ALL, DATE_RANGE_CUSTOM) or key in DATE_RANGE_DAYS


def in_range(value, start=None, end=None) -> bool:
    """Inclusive bound check on an effective date"""
    if value is None:
        return start is None and end is None
    if start is not None and value < start:
        return False
    if end is not None and value > end:
        return False
    return True
