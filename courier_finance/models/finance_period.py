from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils.translation import gettext_lazy as _

from courier_finance.models.base import BaseModel
from courier_finance.constants import (
    FINANCE_PERIOD_STATUSES,
    FINANCE_PERIOD_STATUS_OPEN,
    FINANCE_PERIOD_STATUS_CLOSED,
)


class FinancePeriodQuerySet(models.QuerySet):

    def open(self):
        return self.filter(status=FINANCE_PERIOD_STATUS_OPEN)

    def closed(self):
        return self.filter(status=FINANCE_PERIOD_STATUS_CLOSED)


class FinancePeriod(BaseModel):
    """
    Accounting window used as the default scope of company reports

    At most one row is OPEN at any time, enforced by a partial unique
    constraint on ``status``.
    """

    period_start = models.DateTimeField(
        db_index=True,
        verbose_name=_('Period start')
    )

    period_end = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name=_('Period end'),
        help_text=_('Empty while the period is open')
    )

    status = models.CharField(
        max_length=10,
        choices=FINANCE_PERIOD_STATUSES,
        default=FINANCE_PERIOD_STATUS_OPEN,
        db_index=True,
        verbose_name=_('Status')
    )

    closed_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name=_('Closed at')
    )

    closed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name='+',
        null=True,
        blank=True,
        verbose_name=_('Closed by')
    )

    objects = FinancePeriodQuerySet.as_manager()

    class Meta:
        verbose_name = _('Finance period')
        verbose_name_plural = _('Finance periods')
        ordering = ['-period_start']
        constraints = [
            models.UniqueConstraint(
                fields=['status'],
                condition=Q(status=FINANCE_PERIOD_STATUS_OPEN),
                name='single_open_finance_period',
            ),
        ]

    def __str__(self):
        end = self.period_end.date() if self.period_end else '...'
        return f"{self.period_start.date()} - {end} ({self.status})"

    @property
    def is_open(self):
        return self.status == FINANCE_PERIOD_STATUS_OPEN
