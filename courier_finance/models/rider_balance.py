from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _
from djmoney.models.fields import MoneyField

from courier_finance.models.base import BaseModel
from courier_finance.settings import get_finance_setting
from courier_finance.constants import (
    SERVICE_CHARGE_STATUSES,
    SERVICE_CHARGE_STATUS_UNPAID,
)


class RiderBalance(BaseModel):
    """
    Running cash position of a rider

    Collected COD accumulates on every delivery; service charges accumulate
    until the operator marks them paid, which resets the running total.
    """

    rider = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='rider_balance',
        verbose_name=_('Rider')
    )

    cod_collected = MoneyField(
        max_digits=19,
        decimal_places=2,
        default=0,
        default_currency=get_finance_setting('CURRENCY'),
        verbose_name=_('COD collected')
    )

    service_charges = MoneyField(
        max_digits=19,
        decimal_places=2,
        default=0,
        default_currency=get_finance_setting('CURRENCY'),
        verbose_name=_('Service charges')
    )

    service_charge_status = models.CharField(
        max_length=10,
        choices=SERVICE_CHARGE_STATUSES,
        default=SERVICE_CHARGE_STATUS_UNPAID,
        verbose_name=_('Service charge status')
    )

    class Meta:
        verbose_name = _('Rider balance')
        verbose_name_plural = _('Rider balances')
        ordering = ['-updated_at']

    def __str__(self):
        return f"{self.rider} - COD {self.cod_collected}"
