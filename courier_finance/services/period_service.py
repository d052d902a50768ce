"""
Finance Period Manager

Two-state machine (OPEN -> CLOSED) over FinancePeriod rows with exactly one
OPEN period at a time. The open period is the default window of the company
reports.
"""
import logging
from datetime import timedelta
from typing import Any, Dict, Optional, Tuple

from django.db import IntegrityError
from django.db import transaction as db_transaction
from django.utils import timezone

from courier_finance.models import FinancePeriod
from courier_finance.constants import (
    FINANCE_PERIOD_STATUS_OPEN,
    FINANCE_PERIOD_STATUS_CLOSED,
)
from courier_finance.exceptions import PeriodCloseConflict
from courier_finance.utils.date_ranges import end_of_day, first_day_of_month, start_of_day


logger = logging.getLogger(__name__)


class PeriodCloseResult:
    """
    Outcome of a close request

    Attributes:
        closed_period: The period that is now closed
        new_period: The period that is now open
        conflict: True when the request lost a race (or repeated a close)
            and only observed the already closed period
    """

    def __init__(self, closed_period, new_period, conflict=False):
        self.closed_period = closed_period
        self.new_period = new_period
        self.conflict = conflict

    def to_dict(self) -> Dict[str, Any]:
        return {
            'closed_period_id': str(self.closed_period.pk) if self.closed_period else None,
            'new_period_id': str(self.new_period.pk) if self.new_period else None,
            'conflict': self.conflict,
        }


class FinancePeriodService:
    """Service managing finance periods"""

    def get_open_period(self) -> Optional[FinancePeriod]:
        return FinancePeriod.objects.open().first()

    def get_or_create_open_period(self, now=None) -> FinancePeriod:
        """
        Return the open period, creating one starting on the first day of
        the current month when none exists
        """
        period = self.get_open_period()
        if period is not None:
            return period

        try:
            with db_transaction.atomic():
                period = FinancePeriod.objects.create(
                    period_start=first_day_of_month(now),
                    status=FINANCE_PERIOD_STATUS_OPEN,
                )
            logger.info(f"Opened finance period {period.pk} starting {period.period_start}")
            return period
        except IntegrityError:
            # Another request opened it first
            logger.debug("Open finance period created concurrently; reusing it")
            return self.get_open_period()

    def close_current_period(self, closed_by=None, now=None) -> PeriodCloseResult:
        """
        Close the open period at the end of today and open the next one

        Both steps happen in one transaction with the open row locked. A
        losing concurrent request, or a second close on the same day, is a
        no-op that reports the already closed period.

        Args:
            closed_by: User closing the period (optional)
            now: Reference time (defaults to timezone.now())

        Returns:
            PeriodCloseResult
        """
        now = now or timezone.now()
        period_end = end_of_day(now)
        next_start = start_of_day(timezone.localtime(now).date() + timedelta(days=1))

        try:
            with db_transaction.atomic():
                period = (
                    FinancePeriod.objects.select_for_update()
                    .filter(status=FINANCE_PERIOD_STATUS_OPEN)
                    .first()
                )
                if period is None:
                    period = FinancePeriod.objects.create(
                        period_start=first_day_of_month(now),
                        status=FINANCE_PERIOD_STATUS_OPEN,
                    )

                if period.period_start > period_end:
                    raise PeriodCloseConflict(period.pk)

                period.status = FINANCE_PERIOD_STATUS_CLOSED
                period.period_end = period_end
                period.closed_at = now
                period.closed_by = closed_by
                period.save(update_fields=[
                    'status', 'period_end', 'closed_at', 'closed_by', 'updated_at'
                ])

                new_period = FinancePeriod.objects.create(
                    period_start=next_start,
                    status=FINANCE_PERIOD_STATUS_OPEN,
                )
        except (PeriodCloseConflict, IntegrityError) as e:
            logger.warning(f"Finance period close skipped: {str(e)}")
            return PeriodCloseResult(
                closed_period=FinancePeriod.objects.closed().order_by('-period_end').first(),
                new_period=self.get_open_period(),
                conflict=True,
            )

        logger.info(
            f"Closed finance period {period.pk} ({period.period_start} - {period_end}); "
            f"opened {new_period.pk} from {next_start}"
        )
        return PeriodCloseResult(period, new_period)

    def window_for(self, period) -> Tuple[Optional[Any], Optional[Any]]:
        """Inclusive (start, end) of a period; an open period has no end"""
        if period is None:
            return None, None
        return period.period_start, period.period_end

    def default_window(self):
        """Window of the open period, used when a report gets no date filter"""
        period = self.get_or_create_open_period()
        return period, self.window_for(period)

    def list_periods(self):
        return FinancePeriod.objects.select_related('closed_by').order_by('-period_start')
