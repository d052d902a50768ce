"""
Transaction Writer

Books the financial outcome of an order whenever it enters a terminal status,
and manages rider settlement state on the recorded transactions.

Bookkeeping is best effort relative to the order: the post_save hook calls
``record_order_transaction_safely`` which never lets an error escape into the
order save.
"""
import logging
import uuid
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from django.db import transaction as db_transaction
from django.db.models import F
from django.utils import timezone

from courier_finance.models import (
    Order,
    CommissionConfig,
    RiderCommissionConfig,
    FinancialTransaction,
    RiderBalance,
)
from courier_finance.constants import (
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_RETURNED,
    TERMINAL_ORDER_STATUSES,
    SETTLEMENT_STATUS_PAID,
    SETTLEMENT_STATUS_UNPAID,
    SETTLEMENT_STATUS_PENDING,
    SETTLEMENT_STATUS_SETTLED,
    PAID_SETTLEMENT_STATUSES,
    SERVICE_CHARGE_STATUS_PAID,
    SERVICE_CHARGE_STATUS_UNPAID,
    SERVICE_CHARGE_STATUSES,
)
from courier_finance.exceptions import (
    ConfigurationMissing,
    TransactionNotFound,
    InvalidSettlementStatus,
)
from courier_finance.services.commission_service import resolve_company_commission
from courier_finance.services.effective_values import (
    collected_cod,
    compute_rider_commission,
)
from courier_finance.settings import get_finance_setting
from courier_finance.utils.money import ZERO, quantize, to_money


logger = logging.getLogger(__name__)


KNOWN_SETTLEMENT_STATUSES = (
    SETTLEMENT_STATUS_PAID,
    SETTLEMENT_STATUS_UNPAID,
    SETTLEMENT_STATUS_PENDING,
    SETTLEMENT_STATUS_SETTLED,
)


def normalize_settlement_status(status, strict=False) -> str:
    """
    Normalise a requested settlement status

    PAID, UNPAID and the legacy PENDING/SETTLED are kept as they are.
    Anything else means PAID, unless ``strict`` is set, in which case only
    PAID/UNPAID are accepted.

    Raises:
        InvalidSettlementStatus: In strict mode, for anything but PAID/UNPAID
    """
    value = str(status or '').strip().upper()
    if strict:
        if value not in (SETTLEMENT_STATUS_PAID, SETTLEMENT_STATUS_UNPAID):
            raise InvalidSettlementStatus(status)
        return value
    if value in KNOWN_SETTLEMENT_STATUSES:
        return value
    return SETTLEMENT_STATUS_PAID


def order_settlement_status(tx_status) -> str:
    """Order level mirror of a transaction status (PAID/UNPAID only)"""
    if tx_status in PAID_SETTLEMENT_STATUSES:
        return SETTLEMENT_STATUS_PAID
    return SETTLEMENT_STATUS_UNPAID


class FinancialTransactionService:
    """
    Service recording per-order financial transactions

    - Upserts one FinancialTransaction per order (keyed by order)
    - Applies the shipper return charge on returned orders
    - Accumulates collected COD into the rider balance on delivery
    - Marks rider payouts paid/unpaid, singly or in bulk
    """

    # ==========================================
    # TRANSACTION WRITER
    # ==========================================

    def compute_amounts(self, order, shipper_config=None, rider_config=None) -> Dict[str, Decimal]:
        """
        Compute the money split of an order in its current state

        Args:
            order: Order instance
            shipper_config: CommissionConfig of the shipper (optional)
            rider_config: RiderCommissionConfig of the assigned rider (optional)

        Returns:
            dict: cod, company_commission, rider_commission, shipper_share
        """
        cod = quantize(collected_cod(order))
        company_commission = quantize(resolve_company_commission(shipper_config, cod))
        rider_commission = ZERO
        if rider_config is not None:
            rider_commission = quantize(compute_rider_commission(order, rider_config))

        return {
            'cod': cod,
            'company_commission': company_commission,
            'rider_commission': rider_commission,
            'shipper_share': cod - company_commission,
        }

    def _load_configs(self, order):
        shipper_config = CommissionConfig.objects.for_shipper(order.shipper_id)
        if shipper_config is None:
            logger.warning(
                f"{ConfigurationMissing(owner=order.shipper_id, kind='Shipper')}; "
                f"company commission for order {order.booking_id} is 0"
            )

        rider_config = None
        if order.assigned_rider_id:
            rider_config = RiderCommissionConfig.objects.for_rider(order.assigned_rider_id)
            if rider_config is None:
                logger.warning(
                    f"{ConfigurationMissing(owner=order.assigned_rider_id, kind='Rider')}; "
                    f"rider commission for order {order.booking_id} is 0"
                )
        return shipper_config, rider_config

    def record_order_transaction(self, order, previous_status=None) -> Optional[FinancialTransaction]:
        """
        Upsert the financial transaction of an order in a terminal status

        Money columns are overwritten with the current order state; the
        settlement columns of an existing row are kept.

        Args:
            order: Order instance
            previous_status: Status before the transition (optional)

        Returns:
            FinancialTransaction or None when the order is not terminal
        """
        if order.status not in TERMINAL_ORDER_STATUSES:
            logger.debug(f"Order {order.booking_id} is {order.status}; no transaction recorded")
            return None

        shipper_config, rider_config = self._load_configs(order)

        if order.status == ORDER_STATUS_RETURNED:
            self._apply_return_charge(order, shipper_config)

        amounts = self.compute_amounts(order, shipper_config, rider_config)

        with db_transaction.atomic():
            tx, created = FinancialTransaction.objects.update_or_create(
                order=order,
                defaults={
                    'shipper_id': order.shipper_id,
                    'rider_id': order.assigned_rider_id,
                    'total_cod_collected': to_money(amounts['cod']),
                    'shipper_share': to_money(amounts['shipper_share']),
                    'company_commission': to_money(amounts['company_commission']),
                    'rider_commission': to_money(amounts['rider_commission']),
                },
            )

        logger.info(
            f"{'Recorded' if created else 'Updated'} transaction for order {order.booking_id} "
            f"({previous_status or '-'} -> {order.status}): cod={amounts['cod']}, "
            f"company={amounts['company_commission']}, rider={amounts['rider_commission']}"
        )

        if order.status == ORDER_STATUS_DELIVERED and get_finance_setting('TRACK_RIDER_BALANCE'):
            self._accumulate_rider_balance(order, amounts['cod'])

        return tx

    def record_order_transaction_safely(self, order, previous_status=None) -> Optional[FinancialTransaction]:
        """
        Hook entry point: run the writer in a savepoint and swallow errors

        A failure is logged and rolled back to the savepoint; the order
        status change that triggered it is never affected.
        """
        try:
            with db_transaction.atomic():
                return self.record_order_transaction(order, previous_status)
        except Exception as e:
            logger.error(
                f"Failed to record financial transaction for order {order.pk}: {str(e)}",
                exc_info=True
            )
            return None

    def record_order_transaction_by_id(self, order_id, previous_status=None) -> Optional[FinancialTransaction]:
        """Variant used by the Celery task, which only carries the order id"""
        order = Order.objects.select_related('shipper', 'assigned_rider').filter(pk=order_id).first()
        if order is None:
            logger.warning(f"Order {order_id} vanished before its transaction could be recorded")
            return None
        return self.record_order_transaction_safely(order, previous_status)

    def _apply_return_charge(self, order, shipper_config):
        """Replace the bracket service charge with the shipper's flat return charge"""
        if shipper_config is None or shipper_config.return_charge is None:
            return

        charge = to_money(shipper_config.return_charge)
        # Queryset update keeps updated_at (and so the effective date) untouched
        Order.objects.filter(pk=order.pk).update(service_charges=charge)
        order.service_charges = charge
        logger.info(f"Applied return charge {charge} to order {order.booking_id}")

    def _accumulate_rider_balance(self, order, cod):
        """Best effort: failures are logged without touching the recorded transaction"""
        if not order.assigned_rider_id:
            return
        try:
            with db_transaction.atomic():
                balance, _ = RiderBalance.objects.select_for_update().get_or_create(
                    rider_id=order.assigned_rider_id
                )
                updates = {'cod_collected': F('cod_collected') + to_money(cod)}
                # Once settled, service charges stop accruing until the rider is marked unpaid again
                if balance.service_charge_status == SERVICE_CHARGE_STATUS_UNPAID:
                    updates['service_charges'] = F('service_charges') + to_money(order.service_charges)
                RiderBalance.objects.filter(pk=balance.pk).update(**updates)
            logger.debug(f"Rider {order.assigned_rider_id} balance += {cod} for order {order.booking_id}")
        except Exception as e:
            logger.error(
                f"Failed to update rider balance for order {order.booking_id}: {str(e)}",
                exc_info=True
            )

    # ==========================================
    # RIDER SETTLEMENT
    # ==========================================

    def get_transaction_for_order(self, order_id) -> FinancialTransaction:
        """
        Raises:
            TransactionNotFound: If the order has no transaction
        """
        tx = FinancialTransaction.objects.for_order(order_id)
        if tx is None:
            raise TransactionNotFound(order_id)
        return tx

    @db_transaction.atomic
    def set_rider_settlement_by_order(self, order_id, status=None, user=None) -> FinancialTransaction:
        """
        Set the rider payout status of an order's transaction

        The status is normalised (empty or unknown means PAID). Paid states
        stamp ``paid_at``/``paid_by``, other states clear them. The order's
        own rider settlement fields are updated to match.

        Args:
            order_id: Order primary key
            status: PAID, UNPAID, PENDING or SETTLED
            user: Operator recording the change (optional)

        Returns:
            FinancialTransaction: Updated transaction

        Raises:
            TransactionNotFound: If the order has no transaction
        """
        tx = FinancialTransaction.objects.select_for_update().filter(order_id=order_id).first()
        if tx is None:
            raise TransactionNotFound(order_id)

        normalized = normalize_settlement_status(status)
        now = timezone.now()
        is_paid = normalized in PAID_SETTLEMENT_STATUSES

        tx.settlement_status = normalized
        tx.paid_at = now if is_paid else None
        tx.paid_by = user if is_paid else None
        tx.save(update_fields=['settlement_status', 'paid_at', 'paid_by', 'updated_at'])

        self._mirror_to_orders([order_id], normalized, user, now)

        logger.info(f"Rider settlement for order {order_id} set to {normalized}")
        return tx

    @db_transaction.atomic
    def bulk_set_rider_settlement(self, order_ids: Iterable[Any], status, user=None) -> Dict[str, Any]:
        """
        Mark many orders' rider payouts PAID or UNPAID in one batch

        Args:
            order_ids: Order primary keys
            status: PAID or UNPAID
            user: Operator recording the change (optional)

        Returns:
            dict: ``updated`` count and the generated ``batch_id``

        Raises:
            InvalidSettlementStatus: For anything but PAID/UNPAID
        """
        normalized = normalize_settlement_status(status, strict=True)
        order_ids = list(order_ids or [])
        batch_id = uuid.uuid4().hex
        now = timezone.now()
        is_paid = normalized == SETTLEMENT_STATUS_PAID

        transactions = FinancialTransaction.objects.select_for_update().filter(order_id__in=order_ids)
        matched_orders = list(transactions.values_list('order_id', flat=True))
        updated = transactions.update(
            settlement_status=normalized,
            paid_at=now if is_paid else None,
            paid_by=user if is_paid else None,
            settlement_batch_id=batch_id,
            updated_at=now,
        )

        self._mirror_to_orders(matched_orders, normalized, user, now)

        missing = len(set(str(o) for o in order_ids) - set(str(o) for o in matched_orders))
        if missing:
            logger.warning(f"Bulk settlement {batch_id}: {missing} order(s) have no transaction")

        logger.info(f"Bulk settlement {batch_id}: {updated} transaction(s) set to {normalized}")
        return {'updated': updated, 'batch_id': batch_id}

    def _mirror_to_orders(self, order_ids, tx_status, user, now):
        is_paid = tx_status in PAID_SETTLEMENT_STATUSES
        Order.objects.filter(pk__in=order_ids).update(
            rider_settlement_status=order_settlement_status(tx_status),
            rider_settlement_at=now if is_paid else None,
            rider_settlement_by=user if is_paid else None,
        )

    # ==========================================
    # RIDER BALANCE
    # ==========================================

    def get_rider_balance(self, rider) -> RiderBalance:
        balance, _ = RiderBalance.objects.get_or_create(rider=rider)
        return balance

    @db_transaction.atomic
    def set_rider_service_charge_status(self, rider, status) -> RiderBalance:
        """
        Mark a rider's accumulated service charges paid or unpaid

        Paying resets the running service charge total to zero.

        Raises:
            ValueError: For a status other than paid/unpaid
        """
        value = str(status or '').strip().lower()
        if value not in dict(SERVICE_CHARGE_STATUSES):
            raise ValueError(f"Invalid service charge status: {status}")

        balance, _ = RiderBalance.objects.select_for_update().get_or_create(rider=rider)
        balance.service_charge_status = value
        if value == SERVICE_CHARGE_STATUS_PAID:
            balance.service_charges = to_money(ZERO)
        balance.save()

        logger.info(f"Rider {balance.rider_id} service charges marked {value}")
        return balance
