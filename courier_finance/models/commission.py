"""
Commission Configuration Models

Per-shipper service charge brackets and company commission, and per-rider
payout rules. The finance engine only reads these.
"""

from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _
from djmoney.models.fields import MoneyField

from courier_finance.models.base import BaseModel
from courier_finance.settings import get_finance_setting
from courier_finance.constants import (
    COMMISSION_TYPES,
    COMMISSION_TYPE_FLAT,
    COMMISSION_TYPE_PERCENTAGE,
    RIDER_RULE_STATUSES,
)


class CommissionConfigManager(models.Manager):
    """Custom manager for CommissionConfig"""

    def for_shipper(self, shipper):
        """Return the shipper's config with brackets prefetched, or None"""
        return (
            self.filter(shipper=shipper)
            .prefetch_related('weight_brackets')
            .first()
        )


class CommissionConfig(BaseModel):
    """
    Commission configuration for a shipper

    ``type``/``value`` drive the company commission taken from collected COD;
    weight brackets drive the service charge booked on each order.
    """

    shipper = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='commission_config',
        verbose_name=_('Shipper')
    )

    type = models.CharField(
        max_length=20,
        choices=COMMISSION_TYPES,
        default=COMMISSION_TYPE_PERCENTAGE,
        verbose_name=_('Commission type')
    )

    value = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=0,
        verbose_name=_('Commission value'),
        help_text=_('Percent for percentage commissions, amount for flat ones')
    )

    return_charge = MoneyField(
        max_digits=19,
        decimal_places=2,
        null=True,
        blank=True,
        default_currency=get_finance_setting('CURRENCY'),
        verbose_name=_('Return charge'),
        help_text=_('Flat service charge replacing the bracket charge on returned orders')
    )

    objects = CommissionConfigManager()

    class Meta:
        verbose_name = _('Commission configuration')
        verbose_name_plural = _('Commission configurations')
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.shipper} - {self.type} {self.value}"

    def clean(self):
        """Validate the brackets already attached to this configuration"""
        from django.core.exceptions import ValidationError
        from courier_finance.exceptions import InvalidWeightBrackets
        from courier_finance.services.commission_service import validate_weight_brackets

        if self.value is not None and self.value < 0:
            raise ValidationError({'value': _('Commission value cannot be negative')})

        if self.pk:
            try:
                validate_weight_brackets(list(self.weight_brackets.all()))
            except InvalidWeightBrackets as e:
                raise ValidationError(str(e))


class WeightBracket(BaseModel):
    """Half-open weight interval [min_kg, max_kg) mapped to a flat service charge"""

    config = models.ForeignKey(
        CommissionConfig,
        on_delete=models.CASCADE,
        related_name='weight_brackets',
        verbose_name=_('Configuration')
    )

    min_kg = models.DecimalField(
        max_digits=8,
        decimal_places=3,
        default=0,
        verbose_name=_('Minimum weight (kg)'),
        help_text=_('Inclusive')
    )

    max_kg = models.DecimalField(
        max_digits=8,
        decimal_places=3,
        null=True,
        blank=True,
        verbose_name=_('Maximum weight (kg)'),
        help_text=_('Exclusive; leave empty for no upper limit')
    )

    charge = MoneyField(
        max_digits=19,
        decimal_places=2,
        default=0,
        default_currency=get_finance_setting('CURRENCY'),
        verbose_name=_('Charge')
    )

    class Meta:
        verbose_name = _('Weight bracket')
        verbose_name_plural = _('Weight brackets')
        ordering = ['min_kg']

    def __str__(self):
        upper = f"{self.max_kg}" if self.max_kg is not None else '+'
        return f"{self.min_kg}-{upper}kg: {self.charge}"


class RiderCommissionConfigManager(models.Manager):
    """Custom manager for RiderCommissionConfig"""

    def for_rider(self, rider):
        """Return the rider's config with rules prefetched, or None"""
        return (
            self.filter(rider=rider)
            .prefetch_related('rules')
            .first()
        )

    def for_riders(self, rider_ids):
        """Map rider id -> config for a batch of riders"""
        configs = self.filter(rider_id__in=set(rider_ids)).prefetch_related('rules')
        return {config.rider_id: config for config in configs}


class RiderCommissionConfig(BaseModel):
    """
    Payout configuration for a rider

    A rule keyed by the order's terminal status wins over the base
    ``type``/``value``; a null ``value`` means there is no base rule.
    """

    rider = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='rider_commission_config',
        verbose_name=_('Rider')
    )

    type = models.CharField(
        max_length=20,
        choices=COMMISSION_TYPES,
        null=True,
        blank=True,
        verbose_name=_('Base commission type')
    )

    value = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        verbose_name=_('Base commission value')
    )

    objects = RiderCommissionConfigManager()

    class Meta:
        verbose_name = _('Rider commission configuration')
        verbose_name_plural = _('Rider commission configurations')
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.rider} - {self.type or '-'} {self.value if self.value is not None else '-'}"


class RiderCommissionRule(BaseModel):
    """Status keyed payout rule for a rider"""

    config = models.ForeignKey(
        RiderCommissionConfig,
        on_delete=models.CASCADE,
        related_name='rules',
        verbose_name=_('Configuration')
    )

    status = models.CharField(
        max_length=20,
        choices=RIDER_RULE_STATUSES,
        verbose_name=_('Order status')
    )

    type = models.CharField(
        max_length=20,
        choices=COMMISSION_TYPES,
        null=True,
        blank=True,
        verbose_name=_('Commission type'),
        help_text=_('Falls back to the configuration type, then flat')
    )

    value = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=0,
        verbose_name=_('Commission value')
    )

    class Meta:
        verbose_name = _('Rider commission rule')
        verbose_name_plural = _('Rider commission rules')
        ordering = ['status']
        constraints = [
            models.UniqueConstraint(
                fields=['config', 'status'],
                name='unique_rider_rule_per_status',
            ),
        ]

    def __str__(self):
        return f"{self.status}: {self.type or COMMISSION_TYPE_FLAT} {self.value}"
