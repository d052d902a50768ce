"""
Commission Rule Resolver

Resolves shipper service charges from weight brackets, and company/rider
commissions from the configured FLAT/PERCENTAGE rules.

Two failure policies coexist:
- order creation fails closed (``assign_service_charges`` raises)
- report time computation is soft (``resolve_service_charge_or_zero``
  logs a warning and returns 0)
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from django.utils import timezone

from courier_finance.constants import (
    COMMISSION_TYPE_FLAT,
    COMMISSION_TYPE_PERCENTAGE,
)
from courier_finance.exceptions import (
    ConfigurationMissing,
    NoMatchingBracket,
    InvalidWeightBrackets,
)
from courier_finance.utils.money import ZERO, to_decimal, to_optional_decimal, to_money

logger = logging.getLogger(__name__)


def _field(bracket, name):
    """Read a bracket attribute from a model instance or a plain dict"""
    if isinstance(bracket, dict):
        return bracket.get(name)
    return getattr(bracket, name, None)


def _brackets_of(config_or_brackets) -> List[Any]:
    if config_or_brackets is None:
        return []
    if hasattr(config_or_brackets, 'weight_brackets'):
        return list(config_or_brackets.weight_brackets.all())
    return list(config_or_brackets)


def _sorted_brackets(brackets: Iterable[Any]) -> List[Any]:
    return sorted(brackets, key=lambda b: to_decimal(_field(b, 'min_kg')))


def _format_kg(value) -> str:
    value = to_decimal(value)
    if value == value.to_integral_value():
        return str(int(value))
    return f"{value.normalize():f}"


# ==========================================
# WEIGHT BRACKETS
# ==========================================

def validate_weight_brackets(brackets) -> None:
    """
    Validate a set of weight brackets

    Brackets are checked in ``min_kg`` order: non-negative ``min_kg`` and
    ``charge``, ``max_kg`` greater than ``min_kg``, no overlaps, and only the
    last bracket may be open ended. Gaps are allowed.

    Raises:
        InvalidWeightBrackets: With a message naming the offending bracket
    """
    brackets = list(brackets or [])
    if not brackets:
        raise InvalidWeightBrackets('At least one weight bracket is required')

    ordered = _sorted_brackets(brackets)
    for index, bracket in enumerate(ordered):
        position = index + 1
        min_kg = to_optional_decimal(_field(bracket, 'min_kg'))
        max_kg = to_optional_decimal(_field(bracket, 'max_kg'))
        charge = to_optional_decimal(_field(bracket, 'charge'))

        if min_kg is None or min_kg < 0:
            raise InvalidWeightBrackets(f'Invalid minimum weight for bracket {position}')
        if charge is None or charge < 0:
            raise InvalidWeightBrackets(f'Invalid charge for bracket {position}')
        if max_kg is not None and max_kg <= min_kg:
            raise InvalidWeightBrackets(
                f'Maximum weight must be greater than minimum for bracket {position}'
            )

        if index > 0:
            previous = ordered[index - 1]
            prev_max = to_optional_decimal(_field(previous, 'max_kg'))
            if prev_max is not None and min_kg < prev_max:
                prev_min = to_decimal(_field(previous, 'min_kg'))
                upper = _format_kg(max_kg) if max_kg is not None else '∞'
                raise InvalidWeightBrackets(
                    f'Overlap between {_format_kg(prev_min)}-{_format_kg(prev_max)}kg '
                    f'and {_format_kg(min_kg)}-{upper}kg'
                )

        if max_kg is None and index != len(ordered) - 1:
            raise InvalidWeightBrackets('Only the last bracket can have no maximum weight')


def find_weight_bracket(config_or_brackets, weight_kg):
    """
    Return the bracket containing ``weight_kg``, or None

    A bracket matches when ``min_kg <= weight < max_kg`` (``max_kg`` None
    meaning no upper limit).
    """
    weight = to_decimal(weight_kg)
    for bracket in _sorted_brackets(_brackets_of(config_or_brackets)):
        min_kg = to_decimal(_field(bracket, 'min_kg'))
        max_kg = to_optional_decimal(_field(bracket, 'max_kg'))
        if weight >= min_kg and (max_kg is None or weight < max_kg):
            return bracket
    return None


def resolve_service_charge(config_or_brackets, weight_kg) -> Decimal:
    """
    Resolve the service charge for a weight

    Args:
        config_or_brackets: CommissionConfig or an iterable of brackets
        weight_kg: Parcel weight

    Returns:
        Decimal: Charge of the matching bracket

    Raises:
        NoMatchingBracket: When the weight falls outside every bracket
    """
    bracket = find_weight_bracket(config_or_brackets, weight_kg)
    if bracket is None:
        shipper = getattr(config_or_brackets, 'shipper', None)
        raise NoMatchingBracket(weight_kg=weight_kg, shipper=shipper)
    return to_decimal(_field(bracket, 'charge'))


def resolve_service_charge_or_zero(shipper, weight_kg) -> Decimal:
    """Report-time variant: a missing config or bracket yields 0 and a warning"""
    from courier_finance.models import CommissionConfig

    config = CommissionConfig.objects.for_shipper(shipper)
    if config is None:
        logger.warning(f"{ConfigurationMissing(owner=shipper, kind='Shipper')}; using 0 service charge")
        return ZERO
    try:
        return resolve_service_charge(config, weight_kg)
    except NoMatchingBracket as e:
        logger.warning(f"{str(e)}; using 0 service charge")
        return ZERO


def assign_service_charges(order, weight_kg=None, save=True):
    """
    Book the service charge on a new order (fails closed)

    Stores the charge and a snapshot of the bracket used so later bracket
    edits do not rewrite history.

    Args:
        order: Order instance
        weight_kg: Weight to price (defaults to the order's weight)
        save: Persist the two fields immediately

    Returns:
        Decimal: The charge assigned

    Raises:
        ConfigurationMissing: Shipper has no commission configuration
        NoMatchingBracket: Weight outside every bracket
    """
    from courier_finance.models import CommissionConfig

    weight = to_decimal(order.weight_kg if weight_kg is None else weight_kg)
    config = CommissionConfig.objects.for_shipper(order.shipper_id)
    if config is None:
        raise ConfigurationMissing(owner=order.shipper, kind='Shipper')

    bracket = find_weight_bracket(config, weight)
    if bracket is None:
        raise NoMatchingBracket(weight_kg=weight, shipper=order.shipper)

    charge = to_decimal(bracket.charge)
    max_kg = to_optional_decimal(bracket.max_kg)
    order.service_charges = to_money(charge)
    order.service_charges_snapshot = {
        'weight_kg': str(weight),
        'min_kg': str(to_decimal(bracket.min_kg)),
        'max_kg': str(max_kg) if max_kg is not None else None,
        'rate': str(charge),
        'calculated_at': timezone.now().isoformat(),
    }
    if save and order.pk:
        order.save(update_fields=['service_charges', 'service_charges_snapshot', 'updated_at'])

    logger.debug(f"Assigned service charge {charge} to order {order.booking_id} ({weight}kg)")
    return charge


def weight_bracket_label(snapshot: Optional[Dict[str, Any]]) -> Optional[str]:
    """Display label for a service charge snapshot, e.g. '0–1kg' or '5kg+'"""
    if not snapshot:
        return None
    min_kg = to_optional_decimal(snapshot.get('min_kg'))
    max_kg = to_optional_decimal(snapshot.get('max_kg'))
    if min_kg is not None and max_kg is not None:
        return f"{_format_kg(min_kg)}–{_format_kg(max_kg)}kg"
    if min_kg is not None:
        return f"{_format_kg(min_kg)}kg+"
    if max_kg is not None:
        return f"0–{_format_kg(max_kg)}kg"
    return None


# ==========================================
# COMMISSIONS
# ==========================================

def resolve_commission_amount(commission_type, value, base) -> Decimal:
    """
    Apply a FLAT or PERCENTAGE rule to a base amount

    PERCENTAGE gives ``base * value / 100``, FLAT gives ``value``. The result
    is never negative and is not rounded.
    """
    value = to_decimal(value)
    base = to_decimal(base)
    kind = str(commission_type or COMMISSION_TYPE_FLAT).strip().upper()

    if kind == COMMISSION_TYPE_PERCENTAGE:
        amount = base * value / Decimal('100')
    else:
        amount = value
    return amount if amount > ZERO else ZERO


def find_rider_rule(rider_config, order_status):
    """Return the status keyed rule matching ``order_status``, or None"""
    if rider_config is None:
        return None
    status = str(order_status or '').strip().upper()
    for rule in rider_config.rules.all():
        if str(rule.status or '').strip().upper() == status:
            return rule
    return None


def resolve_rider_commission(rider_config, order_status, cod_base) -> Decimal:
    """
    Resolve a rider's commission for an order

    A rule keyed by the order status wins (its type falls back to the config
    type, then FLAT); otherwise the base rule applies; with neither, 0.
    """
    if rider_config is None:
        return ZERO

    rule = find_rider_rule(rider_config, order_status)
    if rule is not None:
        commission_type = rule.type or rider_config.type or COMMISSION_TYPE_FLAT
        return resolve_commission_amount(commission_type, rule.value, cod_base)

    if rider_config.type and rider_config.value is not None:
        return resolve_commission_amount(rider_config.type, rider_config.value, cod_base)

    return ZERO


def resolve_company_commission(commission_config, cod) -> Decimal:
    """Company commission on collected COD, clamped to [0, cod]"""
    cod = to_decimal(cod)
    if commission_config is None:
        return ZERO
    amount = resolve_commission_amount(commission_config.type, commission_config.value, cod)
    return min(amount, cod) if cod > ZERO else ZERO
