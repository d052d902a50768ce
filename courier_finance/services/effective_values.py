"""
Effective-Value Fallback Chain

Rider earnings live in three places: the denormalised ``order.rider_earning``,
the recorded ``FinancialTransaction.rider_commission``, and the rider's
commission rules. Every report, the backfill and the diagnostic command read
them through the functions below so they agree to the cent.

Precedence for the rider earning:
1. order.rider_earning when > 0
2. transaction.rider_commission when > 0
3. live recomputation from the rider rules (only when asked for)
4. anything negative or non-finite collapses to 0

Settlement status: the order's own PAID/UNPAID wins, otherwise the
transaction status is mapped (PAID/SETTLED -> PAID, anything else -> UNPAID).

The COD helpers are shared with the transaction writer.
"""
import logging
from decimal import Decimal

from courier_finance.constants import (
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_RETURNED,
    ORDER_STATUS_FAILED,
    PAYMENT_TYPE_COD,
    SETTLEMENT_STATUS_PAID,
    SETTLEMENT_STATUS_UNPAID,
    PAID_SETTLEMENT_STATUSES,
)
from courier_finance.services.commission_service import resolve_rider_commission
from courier_finance.utils.money import ZERO, to_decimal, quantize, clamp

logger = logging.getLogger(__name__)


def _status(order):
    return str(getattr(order, 'status', '') or '').strip().upper()


# ==========================================
# COD BASES
# ==========================================

def is_delivered_cod(order) -> bool:
    return (
        _status(order) == ORDER_STATUS_DELIVERED
        and str(getattr(order, 'payment_type', '') or '').upper() == PAYMENT_TYPE_COD
    )


def collected_cod(order) -> Decimal:
    """
    Cash actually collected on an order

    Delivered COD orders use ``amount_collected``, or the quoted
    ``cod_amount`` when nothing was recorded. Everything else collected 0.
    """
    if not is_delivered_cod(order):
        return ZERO
    if order.amount_collected is not None:
        return to_decimal(order.amount_collected)
    return to_decimal(order.cod_amount)


def rider_commission_base(order) -> Decimal:
    """COD base for the rider rule: collected COD if delivered, quoted COD if returned/failed"""
    status = _status(order)
    if status == ORDER_STATUS_DELIVERED:
        return collected_cod(order)
    if status in (ORDER_STATUS_RETURNED, ORDER_STATUS_FAILED):
        return to_decimal(order.cod_amount)
    return ZERO


def clamp_rider_commission(order, amount) -> Decimal:
    """
    Keep a rider commission within [0, collected COD] for delivered COD orders

    Returned/failed orders and advance-paid deliveries only get the lower bound.
    """
    upper = collected_cod(order) if is_delivered_cod(order) else None
    return clamp(amount, ZERO, upper)


def compute_rider_commission(order, rider_config) -> Decimal:
    """Rider commission from the rules, with the delivered-COD clamp applied"""
    amount = resolve_rider_commission(rider_config, _status(order), rider_commission_base(order))
    return clamp_rider_commission(order, amount)


# ==========================================
# FALLBACK CHAIN
# ==========================================

def _positive(value):
    value = to_decimal(value)
    return value if value > ZERO else None


def effective_rider_earning(order, tx=None, rider_config=None, live_recompute=False,
                            load_config=True) -> Decimal:
    """
    Rider earning after the fallback chain

    Args:
        order: Order instance
        tx: FinancialTransaction for the order (optional)
        rider_config: RiderCommissionConfig of the assigned rider (optional)
        live_recompute: Fall back to the rider rules when nothing is stored
        load_config: Look the rider config up when none was passed

    Returns:
        Decimal: Non-negative earning rounded to 2dp
    """
    earning = _positive(getattr(order, 'rider_earning', None))

    if earning is None and tx is not None:
        earning = _positive(tx.rider_commission)

    if earning is None and live_recompute:
        if rider_config is None and load_config and getattr(order, 'assigned_rider_id', None):
            from courier_finance.models import RiderCommissionConfig
            rider_config = RiderCommissionConfig.objects.for_rider(order.assigned_rider_id)
        if rider_config is not None:
            earning = compute_rider_commission(order, rider_config)

    if earning is None:
        return ZERO
    return quantize(clamp_rider_commission(order, earning))


def map_transaction_settlement(tx) -> str:
    """Transaction level mapping: PAID/SETTLED -> PAID, anything else -> UNPAID"""
    status = str(getattr(tx, 'settlement_status', '') or '').strip().upper() if tx is not None else ''
    if status in PAID_SETTLEMENT_STATUSES:
        return SETTLEMENT_STATUS_PAID
    return SETTLEMENT_STATUS_UNPAID


def effective_settlement_status(order, tx=None) -> str:
    """Always exactly PAID or UNPAID"""
    status = str(getattr(order, 'rider_settlement_status', '') or '').strip().upper()
    if status in (SETTLEMENT_STATUS_PAID, SETTLEMENT_STATUS_UNPAID):
        return status
    return map_transaction_settlement(tx)


def recorded_rider_paid(order, tx=None) -> Decimal:
    """
    Rider payout as recorded, without live recomputation

    Transaction commission when positive, else the order's stored earning.
    Used by the company summary, which reports recorded figures only.
    """
    earning = _positive(tx.rider_commission) if tx is not None else None
    if earning is None:
        earning = _positive(getattr(order, 'rider_earning', None))
    return quantize(earning) if earning is not None else ZERO
