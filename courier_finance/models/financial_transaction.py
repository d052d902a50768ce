"""
Financial Transaction Model

One row per order that reached a terminal status, holding the split of the
collected COD between shipper, company and rider.
"""
from django.conf import settings
from django.db import models
from django.db import transaction as db_transaction
from django.utils import timezone
from django.utils.translation import gettext_lazy as _
from djmoney.models.fields import MoneyField

from courier_finance.models.base import BaseModel, BaseQuerySet
from courier_finance.settings import get_finance_setting
from courier_finance.constants import (
    SETTLEMENT_STATUSES,
    SETTLEMENT_STATUS_UNPAID,
    SETTLEMENT_STATUS_PAID,
    PAID_SETTLEMENT_STATUSES,
)


class FinancialTransactionQuerySet(BaseQuerySet):
    """Custom QuerySet for FinancialTransaction model"""

    def paid(self):
        """Transactions whose rider payout is settled (PAID or legacy SETTLED)"""
        return self.filter(settlement_status__in=PAID_SETTLEMENT_STATUSES)

    def unpaid(self):
        """Everything not paid, legacy PENDING included"""
        return self.exclude(settlement_status__in=PAID_SETTLEMENT_STATUSES)

    def for_rider(self, rider):
        return self.filter(rider=rider)

    def for_shipper(self, shipper):
        return self.filter(shipper=shipper)

    def in_batch(self, batch_id):
        return self.filter(settlement_batch_id=batch_id)

    def with_order_details(self):
        """Prefetch order and parties to avoid N+1 queries"""
        return self.select_related('order', 'shipper', 'rider', 'paid_by')


class FinancialTransactionManager(models.Manager):
    """Custom Manager for FinancialTransaction model"""

    def get_queryset(self):
        return FinancialTransactionQuerySet(self.model, using=self._db)

    def paid(self):
        return self.get_queryset().paid()

    def unpaid(self):
        return self.get_queryset().unpaid()

    def for_order(self, order_id):
        """Return the transaction recorded for an order, or None"""
        return self.get_queryset().with_order_details().filter(order_id=order_id).first()


class FinancialTransaction(BaseModel):
    """
    Financial outcome of a single order

    Always reflects the current order state: the writer overwrites the money
    columns every time the order enters a terminal status.
    """

    # ==========================================
    # CORE FIELDS
    # ==========================================

    order = models.OneToOneField(
        'courier_finance.Order',
        on_delete=models.CASCADE,
        related_name='financial_transaction',
        verbose_name=_('Order')
    )

    shipper = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='shipper_transactions',
        verbose_name=_('Shipper')
    )

    rider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name='rider_transactions',
        null=True,
        blank=True,
        verbose_name=_('Rider')
    )

    # ==========================================
    # AMOUNTS
    # ==========================================

    total_cod_collected = MoneyField(
        max_digits=19,
        decimal_places=2,
        default=0,
        default_currency=get_finance_setting('CURRENCY'),
        verbose_name=_('Total COD collected')
    )

    shipper_share = MoneyField(
        max_digits=19,
        decimal_places=2,
        default=0,
        default_currency=get_finance_setting('CURRENCY'),
        verbose_name=_('Shipper share')
    )

    company_commission = MoneyField(
        max_digits=19,
        decimal_places=2,
        default=0,
        default_currency=get_finance_setting('CURRENCY'),
        verbose_name=_('Company commission')
    )

    rider_commission = MoneyField(
        max_digits=19,
        decimal_places=2,
        default=0,
        default_currency=get_finance_setting('CURRENCY'),
        verbose_name=_('Rider commission')
    )

    # ==========================================
    # SETTLEMENT
    # ==========================================

    settlement_status = models.CharField(
        max_length=10,
        choices=SETTLEMENT_STATUSES,
        default=SETTLEMENT_STATUS_UNPAID,
        db_index=True,
        verbose_name=_('Settlement status')
    )

    paid_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name=_('Paid at')
    )

    paid_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name='+',
        null=True,
        blank=True,
        verbose_name=_('Paid by')
    )

    settlement_batch_id = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        db_index=True,
        verbose_name=_('Settlement batch'),
        help_text=_('Shared by transactions settled in the same bulk operation')
    )

    objects = FinancialTransactionManager()

    class Meta:
        verbose_name = _('Financial transaction')
        verbose_name_plural = _('Financial transactions')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['rider', 'settlement_status'], name='fintx_rider_status_idx'),
            models.Index(fields=['shipper', 'created_at'], name='fintx_shipper_created_idx'),
        ]

    def __str__(self):
        return f"Transaction for order {self.order_id} - {self.settlement_status}"

    def __repr__(self):
        return (
            f"<FinancialTransaction id={self.id} order_id={self.order_id} "
            f"cod={self.total_cod_collected} rider={self.rider_commission} "
            f"status={self.settlement_status}>"
        )

    @property
    def is_paid(self):
        return self.settlement_status in PAID_SETTLEMENT_STATUSES

    @db_transaction.atomic
    def mark_as_paid(self, user=None, batch_id=None):
        """
        Mark the rider payout as paid

        Args:
            user: Operator recording the payout (optional)
            batch_id: Bulk settlement identifier (optional)

        Returns:
            FinancialTransaction: Updated instance
        """
        self.settlement_status = SETTLEMENT_STATUS_PAID
        self.paid_at = timezone.now()
        self.paid_by = user
        self.settlement_batch_id = batch_id
        self.save(update_fields=[
            'settlement_status', 'paid_at', 'paid_by', 'settlement_batch_id', 'updated_at'
        ])
        return self

    @db_transaction.atomic
    def mark_as_unpaid(self, batch_id=None):
        """Revert the payout to unpaid, clearing the payment stamp"""
        self.settlement_status = SETTLEMENT_STATUS_UNPAID
        self.paid_at = None
        self.paid_by = None
        self.settlement_batch_id = batch_id
        self.save(update_fields=[
            'settlement_status', 'paid_at', 'paid_by', 'settlement_batch_id', 'updated_at'
        ])
        return self
