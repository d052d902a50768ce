"""
Historical Backfill Tool

Fills ``rider_earning`` and ``rider_settlement_status`` on terminal orders
created before rider rules existed, using the same fallback chain as the
reports. Safe to re-run: orders holding a positive earning and a settlement
status are never touched, so a second pass is a no-op.

Orders are walked in primary key order in bounded batches and each order is
committed on its own, so a stopped run resumes with ``start_after``.
"""
import logging
from typing import Any, Callable, Dict, Optional

from django.db import transaction as db_transaction

from courier_finance.models import Order, RiderCommissionConfig
from courier_finance.constants import SETTLEMENT_STATUS_PAID, SETTLEMENT_STATUS_UNPAID
from courier_finance.services.effective_values import (
    effective_rider_earning,
    map_transaction_settlement,
)
from courier_finance.settings import get_finance_setting
from courier_finance.utils.money import ZERO, to_decimal, to_money


logger = logging.getLogger(__name__)


class BackfillResult:
    """Counters of a backfill run"""

    def __init__(self, dry_run=False):
        self.dry_run = dry_run
        self.processed = 0
        self.earnings_updated = 0
        self.settlements_updated = 0
        self.unchanged = 0
        self.errors = 0
        self.last_pk = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'processed': self.processed,
            'earnings_updated': self.earnings_updated,
            'settlements_updated': self.settlements_updated,
            'unchanged': self.unchanged,
            'errors': self.errors,
            'last_pk': str(self.last_pk) if self.last_pk is not None else None,
            'dry_run': self.dry_run,
        }


class RiderEarningBackfill:
    """Recompute missing rider earnings and settlement statuses"""

    def get_queryset(self):
        """Non-deleted, rider-assigned, terminal orders in primary key order"""
        return (
            Order.objects.get_queryset()
            .not_deleted()
            .terminal()
            .with_rider()
            .select_related('financial_transaction')
            .order_by('pk')
        )

    def compute_updates(self, order, rider_config) -> Dict[str, Any]:
        """
        Return the column updates an order needs (empty when none)

        The earning is only filled when the stored one is absent or zero and
        the recomputed value is positive; the settlement status only when it
        is absent.
        """
        tx = getattr(order, 'financial_transaction', None)
        updates = {}

        stored = to_decimal(order.rider_earning)
        if stored <= ZERO:
            earning = effective_rider_earning(
                order, tx, rider_config=rider_config, live_recompute=True, load_config=False
            )
            if earning > ZERO and earning != stored:
                updates['rider_earning'] = to_money(earning)

        if order.rider_settlement_status not in (SETTLEMENT_STATUS_PAID, SETTLEMENT_STATUS_UNPAID):
            updates['rider_settlement_status'] = map_transaction_settlement(tx)

        return updates

    def run(self, batch_size=None, start_after=None, dry_run=False, limit=None,
            progress: Optional[Callable[[BackfillResult], None]] = None) -> BackfillResult:
        """
        Walk the eligible orders and persist what is missing

        Args:
            batch_size: Orders fetched per query (defaults to BACKFILL_BATCH_SIZE)
            start_after: Resume after this primary key
            dry_run: Compute and count without writing
            limit: Stop after this many orders
            progress: Called with the running result at every progress tick

        Returns:
            BackfillResult
        """
        batch_size = batch_size or get_finance_setting('BACKFILL_BATCH_SIZE')
        progress_every = get_finance_setting('BACKFILL_PROGRESS_EVERY')
        result = BackfillResult(dry_run=dry_run)
        result.last_pk = start_after

        logger.info(
            f"Starting rider earning backfill (batch={batch_size}, start_after={start_after}, "
            f"dry_run={dry_run}, limit={limit})"
        )

        while True:
            queryset = self.get_queryset()
            if result.last_pk is not None:
                queryset = queryset.filter(pk__gt=result.last_pk)

            size = batch_size
            if limit is not None:
                size = min(size, limit - result.processed)
                if size <= 0:
                    break

            batch = list(queryset[:size])
            if not batch:
                break

            configs = RiderCommissionConfig.objects.for_riders(o.assigned_rider_id for o in batch)

            for order in batch:
                self._process(order, configs.get(order.assigned_rider_id), result, dry_run)
                result.processed += 1
                result.last_pk = order.pk

                if result.processed % progress_every == 0:
                    logger.info(f"Backfill progress: {result.to_dict()}")
                    if progress:
                        progress(result)

        logger.info(f"Rider earning backfill finished: {result.to_dict()}")
        return result

    def _process(self, order, rider_config, result, dry_run):
        try:
            updates = self.compute_updates(order, rider_config)
            if not updates:
                result.unchanged += 1
                return

            if not dry_run:
                with db_transaction.atomic():
                    # Queryset update leaves updated_at (and the effective date) alone
                    Order.objects.filter(pk=order.pk).update(**updates)

            if 'rider_earning' in updates:
                result.earnings_updated += 1
            if 'rider_settlement_status' in updates:
                result.settlements_updated += 1
            logger.debug(f"Backfilled order {order.booking_id}: {sorted(updates)}")
        except Exception as e:
            result.errors += 1
            logger.error(f"Error backfilling order {order.pk}: {str(e)}", exc_info=True)
