import logging
from django.db import transaction
from django.db.models.signals import pre_save, post_save
from django.dispatch import receiver

from courier_finance.constants import TERMINAL_ORDER_STATUSES
from courier_finance.models import Order
from courier_finance.services.transaction_service import FinancialTransactionService
from courier_finance.settings import get_finance_setting


logger = logging.getLogger(__name__)


@receiver(pre_save, sender=Order)
def remember_previous_order_status(sender, instance, **kwargs):
    """Keep the status the row had before this save for the post_save hook"""
    if instance._state.adding:
        instance._finance_previous_status = None
    else:
        instance._finance_previous_status = instance.tracker.previous('status')


@receiver(post_save, sender=Order)
def record_transaction_on_terminal_status(sender, instance, created, **kwargs):
    """
    Record the order's financial transaction when it enters a terminal status

    Runs once per transition: saving an order that stays in the same status
    does nothing. Failures are logged and never break the order save.
    """
    if not get_finance_setting('AUTO_RECORD_TRANSACTIONS'):
        return

    if kwargs.get('raw'):
        return

    previous_status = getattr(instance, '_finance_previous_status', None)
    if instance.status not in TERMINAL_ORDER_STATUSES or instance.status == previous_status:
        return

    try:
        if get_finance_setting('USE_CELERY'):
            from courier_finance.tasks import record_order_transaction_task
            order_id = str(instance.pk)
            transaction.on_commit(
                lambda: record_order_transaction_task.delay(order_id, previous_status)
            )
        else:
            FinancialTransactionService().record_order_transaction_safely(instance, previous_status)
    except Exception as e:
        logger.error(
            f"Error scheduling financial transaction for order {instance.pk}: {str(e)}",
            exc_info=True
        )
