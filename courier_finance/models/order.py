from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils.translation import gettext_lazy as _
from djmoney.models.fields import MoneyField
from model_utils import FieldTracker

from courier_finance.models.base import BaseModel, BaseQuerySet
from courier_finance.constants import (
    ORDER_STATUSES,
    ORDER_STATUS_CREATED,
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_RETURNED,
    ORDER_STATUS_FAILED,
    TERMINAL_ORDER_STATUSES,
    PAYMENT_TYPES,
    PAYMENT_TYPE_COD,
    RIDER_SETTLEMENT_STATUSES,
)
from courier_finance.settings import get_finance_setting
from courier_finance.utils.date_ranges import effective_date, effective_date_expression


class OrderQuerySet(BaseQuerySet):
    """Custom QuerySet for Order model with finance oriented filters"""

    def not_deleted(self):
        """Exclude soft deleted orders"""
        return self.filter(is_deleted=False)

    def terminal(self):
        """Orders in a status that closes them for finance purposes"""
        return self.filter(status__in=TERMINAL_ORDER_STATUSES)

    def delivered(self):
        return self.filter(status=ORDER_STATUS_DELIVERED)

    def returned(self):
        return self.filter(status=ORDER_STATUS_RETURNED)

    def failed(self):
        return self.filter(status=ORDER_STATUS_FAILED)

    def for_rider(self, rider):
        """Filter orders assigned to a rider (instance or primary key)"""
        return self.filter(assigned_rider=rider)

    def for_shipper(self, shipper):
        """Filter orders booked by a shipper (instance or primary key)"""
        return self.filter(shipper=shipper)

    def with_rider(self):
        return self.filter(assigned_rider__isnull=False)

    def search(self, term):
        """
        Case-insensitive search over booking and tracking ids

        Args:
            term: Free text; blank returns the queryset unchanged
        """
        term = (term or '').strip()
        if not term:
            return self
        return self.filter(
            Q(booking_id__icontains=term) | Q(tracking_id__icontains=term)
        )

    def with_effective_date(self):
        """Annotate each order with ``effective_at`` (see utils.date_ranges)"""
        return self.annotate(effective_at=effective_date_expression())

    def in_effective_range(self, start=None, end=None):
        """Filter on the effective date with inclusive bounds"""
        return self.with_effective_date().in_date_range('effective_at', start, end)

    def with_finance_details(self):
        """Prefetch everything the finance reports read per order"""
        return self.select_related(
            'shipper',
            'assigned_rider',
            'financial_transaction',
        )


class OrderManager(models.Manager):
    """Custom Manager for Order model"""

    def get_queryset(self):
        return OrderQuerySet(self.model, using=self._db)

    def terminal(self):
        return self.get_queryset().not_deleted().terminal()

    def for_rider(self, rider):
        return self.get_queryset().not_deleted().for_rider(rider)


class Order(BaseModel):
    """
    Parcel booked by a shipper and delivered by a rider

    Only the fields the finance engine reads are modelled here; the order
    lifecycle itself is owned by the order subsystem, which saves status
    changes and thereby triggers the finance hook.
    """

    # ==========================================
    # IDENTIFIERS
    # ==========================================

    booking_id = models.CharField(
        max_length=50,
        unique=True,
        verbose_name=_('Booking ID')
    )

    tracking_id = models.CharField(
        max_length=50,
        unique=True,
        verbose_name=_('Tracking ID')
    )

    # ==========================================
    # PARTIES
    # ==========================================

    shipper = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='shipped_orders',
        verbose_name=_('Shipper')
    )

    assigned_rider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name='assigned_orders',
        null=True,
        blank=True,
        verbose_name=_('Assigned rider')
    )

    consignee_name = models.CharField(
        max_length=255,
        blank=True,
        default='',
        verbose_name=_('Consignee name')
    )

    consignee_phone = models.CharField(
        max_length=30,
        blank=True,
        default='',
        verbose_name=_('Consignee phone')
    )

    destination_city = models.CharField(
        max_length=100,
        blank=True,
        default='',
        verbose_name=_('Destination city')
    )

    # ==========================================
    # STATUS & PAYMENT
    # ==========================================

    status = models.CharField(
        max_length=20,
        choices=ORDER_STATUSES,
        default=ORDER_STATUS_CREATED,
        db_index=True,
        verbose_name=_('Status')
    )

    payment_type = models.CharField(
        max_length=10,
        choices=PAYMENT_TYPES,
        default=PAYMENT_TYPE_COD,
        verbose_name=_('Payment type')
    )

    cod_amount = MoneyField(
        max_digits=19,
        decimal_places=2,
        default=0,
        default_currency=get_finance_setting('CURRENCY'),
        verbose_name=_('COD amount'),
        help_text=_('Cash on delivery amount quoted at booking')
    )

    amount_collected = MoneyField(
        max_digits=19,
        decimal_places=2,
        null=True,
        blank=True,
        default_currency=get_finance_setting('CURRENCY'),
        verbose_name=_('Amount collected'),
        help_text=_('Cash actually collected by the rider, when it differs from the quote')
    )

    weight_kg = models.DecimalField(
        max_digits=8,
        decimal_places=3,
        default=0,
        verbose_name=_('Weight (kg)')
    )

    # ==========================================
    # FINANCE FIELDS
    # ==========================================

    service_charges = MoneyField(
        max_digits=19,
        decimal_places=2,
        default=0,
        default_currency=get_finance_setting('CURRENCY'),
        verbose_name=_('Service charges')
    )

    service_charges_snapshot = models.JSONField(
        blank=True,
        null=True,
        verbose_name=_('Service charges snapshot'),
        help_text=_('Weight bracket used when the service charge was assigned')
    )

    rider_earning = MoneyField(
        max_digits=19,
        decimal_places=2,
        null=True,
        blank=True,
        default_currency=get_finance_setting('CURRENCY'),
        verbose_name=_('Rider earning')
    )

    rider_settlement_status = models.CharField(
        max_length=10,
        choices=RIDER_SETTLEMENT_STATUSES,
        null=True,
        blank=True,
        db_index=True,
        verbose_name=_('Rider settlement status')
    )

    rider_settlement_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name=_('Rider settled at')
    )

    rider_settlement_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name='+',
        null=True,
        blank=True,
        verbose_name=_('Rider settled by')
    )

    delivered_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        verbose_name=_('Delivered at')
    )

    is_deleted = models.BooleanField(
        default=False,
        db_index=True,
        verbose_name=_('Deleted')
    )

    # ==========================================
    # MANAGER & TRACKER
    # ==========================================

    objects = OrderManager()

    tracker = FieldTracker(fields=['status'])

    class Meta:
        verbose_name = _('Order')
        verbose_name_plural = _('Orders')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['assigned_rider', 'status'], name='order_rider_status_idx'),
            models.Index(fields=['shipper', 'status'], name='order_shipper_status_idx'),
        ]

    def __str__(self):
        return f"Order {self.booking_id} ({self.status})"

    def __repr__(self):
        return (
            f"<Order id={self.id} booking_id={self.booking_id} "
            f"status={self.status} payment_type={self.payment_type}>"
        )

    # ==========================================
    # PROPERTIES
    # ==========================================

    @property
    def is_terminal(self):
        return self.status in TERMINAL_ORDER_STATUSES

    @property
    def is_cod(self):
        return self.payment_type == PAYMENT_TYPE_COD

    @property
    def effective_date(self):
        """Date placing this order in finance reports"""
        return effective_date(self)
