import logging
from celery import shared_task

from courier_finance.services.transaction_service import FinancialTransactionService
from courier_finance.services.backfill_service import RiderEarningBackfill


logger = logging.getLogger(__name__)


@shared_task
def record_order_transaction_task(order_id, previous_status=None):
    """
    Record the financial transaction of an order (async task)

    Args:
        order_id: Order ID
        previous_status: Status before the transition
    """
    tx = FinancialTransactionService().record_order_transaction_by_id(order_id, previous_status)
    if tx is None:
        return None
    logger.info(f"Recorded financial transaction {tx.id} for order {order_id}")
    return str(tx.id)


@shared_task
def backfill_rider_earnings_task(batch_size=None, start_after=None, limit=None):
    """
    Run the rider earning backfill (async task)

    Returns:
        dict: Backfill statistics
    """
    try:
        result = RiderEarningBackfill().run(
            batch_size=batch_size,
            start_after=start_after,
            limit=limit,
        )
        logger.info(f"Rider earning backfill finished: {result.to_dict()}")
        return result.to_dict()
    except Exception as e:
        logger.error(f"Error running rider earning backfill: {str(e)}")
        raise
