"""
Courier Finance - Finance Reporting Tests

Test Coverage:
1. CompanySummaryTestCase - company_summary metrics and default window
2. CompanyLedgerTestCase - company_ledger rows, totals, sorting, filters
3. RiderSettlementsTestCase - rider_settlements and rider_finance_window
4. ReconciliationTestCase - ledger, settlements and company summary agree for a rider and window
"""
from datetime import datetime, timedelta
from decimal import Decimal

from django.utils import timezone

from courier_finance.test import FinanceTestCase, money
from courier_finance.constants import (
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_RETURNED,
    ORDER_STATUS_FAILED,
    COMMISSION_TYPE_FLAT,
    COMMISSION_TYPE_PERCENTAGE,
    SETTLEMENT_STATUS_PAID,
    SETTLEMENT_STATUS_UNPAID,
)
from courier_finance.models import FinancialTransaction, Order
from courier_finance.services.report_service import FinanceReportService, ReportFilters
from courier_finance.services.transaction_service import FinancialTransactionService
from courier_finance.services.backfill_service import RiderEarningBackfill


class ReportFixturesMixin:
    """
    Four terminal orders for one shipper and rider:

    - delivered, COD 1000, service 150, rider 50, unpaid
    - returned, COD 700, service 250, rider 20, unpaid
    - failed, COD 300, service 80, rider 0, unpaid
    - delivered, COD 500, service 100, rider 50, paid
    """

    def build_orders(self):
        self.create_shipper_config(self.shipper, COMMISSION_TYPE_PERCENTAGE, 10)
        self.create_rider_config(
            self.rider,
            rules=[
                (ORDER_STATUS_DELIVERED, COMMISSION_TYPE_FLAT, 50),
                (ORDER_STATUS_RETURNED, COMMISSION_TYPE_FLAT, 20),
            ],
        )
        self.delivered = self.move_order(
            self.create_order(self.shipper, self.rider, cod_amount=1000, service_charges=money(150)),
            ORDER_STATUS_DELIVERED
        )
        self.returned = self.move_order(
            self.create_order(self.shipper, self.rider, cod_amount=700, service_charges=money(250)),
            ORDER_STATUS_RETURNED
        )
        self.failed = self.move_order(
            self.create_order(self.shipper, self.rider, cod_amount=300, service_charges=money(80)),
            ORDER_STATUS_FAILED
        )
        self.paid = self.move_order(
            self.create_order(self.shipper, self.rider, cod_amount=500, service_charges=money(100)),
            ORDER_STATUS_DELIVERED
        )
        FinancialTransactionService().set_rider_settlement_by_order(
            self.paid.pk, SETTLEMENT_STATUS_PAID, user=self.admin_user
        )


class CompanySummaryTestCase(ReportFixturesMixin, FinanceTestCase):
    """Test case for the company summary"""

    def setUp(self):
        super().setUp()
        self.build_orders()
        self.service = FinanceReportService()

    def test_all_time_metrics(self):
        metrics = self.service.company_summary(ReportFilters(range='all'))['metrics']

        self.assertEqual(metrics['orders_count'], 4)
        self.assertEqual(metrics['delivered_orders'], 2)
        self.assertEqual(metrics['returned_orders'], 1)
        self.assertEqual(metrics['failed_orders'], 1)
        self.assertEqual(metrics['total_cod'], Decimal('1500'))
        self.assertEqual(metrics['total_service_charges'], Decimal('580'))
        self.assertEqual(metrics['total_amount'], Decimal('2080'))
        self.assertEqual(metrics['total_company_commission'], Decimal('150'))
        self.assertEqual(metrics['total_rider_paid'], Decimal('120'))
        self.assertEqual(metrics['company_profit'], Decimal('460'))
        self.assertEqual(metrics['settled_rider_transactions_count'], 1)
        self.assertEqual(metrics['settled_rider_transactions_amount'], Decimal('50'))
        self.assertEqual(metrics['pending_rider_settlements_count'], 3)
        self.assertEqual(metrics['pending_rider_settlements_amount'], Decimal('70'))
        self.assertEqual(metrics['unpaid_rider_balances'], Decimal('70'))

    def test_defaults_to_open_period(self):
        Order.objects.filter(pk=self.failed.pk).update(updated_at=timezone.now() - timedelta(days=400))

        result = self.service.company_summary(ReportFilters())

        self.assertIsNotNone(result['active_period'])
        self.assertEqual(result['window']['start'], result['active_period'].period_start)
        self.assertEqual(result['metrics']['orders_count'], 3)
        self.assertEqual(result['metrics']['failed_orders'], 0)

    def test_unparseable_bound_keeps_open_period(self):
        Order.objects.filter(pk=self.failed.pk).update(updated_at=timezone.now() - timedelta(days=400))

        result = self.service.company_summary(ReportFilters(date_from='not-a-date'))

        self.assertIsNotNone(result['active_period'])
        self.assertEqual(result['window']['start'], result['active_period'].period_start)
        self.assertEqual(result['metrics']['orders_count'], 3)

    def test_deleted_and_open_orders_excluded(self):
        Order.objects.filter(pk=self.failed.pk).update(is_deleted=True)
        self.create_order(self.shipper, self.rider)

        metrics = self.service.company_summary(ReportFilters(range='all'))['metrics']
        self.assertEqual(metrics['orders_count'], 3)

    def test_summary_uses_recorded_commission(self):
        FinancialTransaction.objects.filter(order=self.delivered).update(rider_commission=money(0))

        metrics = self.service.company_summary(ReportFilters(range='all'))['metrics']
        self.assertEqual(metrics['total_rider_paid'], Decimal('70'))


class CompanyLedgerTestCase(ReportFixturesMixin, FinanceTestCase):
    """Test case for the company ledger"""

    def setUp(self):
        super().setUp()
        self.build_orders()
        self.service = FinanceReportService()

    def test_rows_and_totals(self):
        result = self.service.company_ledger(ReportFilters(range='all'))
        totals = result['totals']

        self.assertEqual(totals['total_orders'], 4)
        self.assertEqual(totals['total_cod'], Decimal('1500'))
        self.assertEqual(totals['total_service_charges'], Decimal('580'))
        self.assertEqual(totals['total_rider_payout_paid'], Decimal('50'))
        self.assertEqual(totals['total_rider_payout_unpaid'], Decimal('70'))
        self.assertEqual(totals['total_rider_payout'], Decimal('120'))
        self.assertEqual(totals['total_company_profit'], Decimal('460'))

        rows = {row['booking_id']: row for row in result['rows']}
        paid_row = rows[self.paid.booking_id]
        self.assertEqual(paid_row['settlement_status'], SETTLEMENT_STATUS_PAID)
        self.assertEqual(paid_row['rider_payout_paid'], Decimal('50'))
        self.assertEqual(paid_row['rider_payout_unpaid'], Decimal('0'))
        self.assertEqual(paid_row['company_profit'], Decimal('50'))

        returned_row = rows[self.returned.booking_id]
        self.assertEqual(returned_row['cod'], Decimal('0'))
        self.assertEqual(returned_row['rider_payout_unpaid'], Decimal('20'))
        self.assertEqual(returned_row['settlement_status'], SETTLEMENT_STATUS_UNPAID)

    def test_live_recompute_fills_missing_commission(self):
        FinancialTransaction.objects.filter(order=self.delivered).update(rider_commission=money(0))

        result = self.service.company_ledger(ReportFilters(range='all', search=self.delivered.booking_id))

        self.assertEqual(len(result['rows']), 1)
        self.assertEqual(result['rows'][0]['rider_payout_unpaid'], Decimal('50.00'))

    def test_sorted_by_effective_date_newest_first(self):
        march_tenth = timezone.make_aware(datetime(2024, 3, 10))
        march_twelfth = timezone.make_aware(datetime(2024, 3, 12))
        Order.objects.filter(pk=self.delivered.pk).update(delivered_at=march_tenth)
        Order.objects.filter(pk=self.paid.pk).update(delivered_at=march_twelfth)

        rows = self.service.company_ledger(ReportFilters(range='all'))['rows']
        booking_ids = [row['booking_id'] for row in rows]

        self.assertLess(booking_ids.index(self.paid.booking_id), booking_ids.index(self.delivered.booking_id))
        self.assertEqual(rows[-1]['date'], march_tenth)

    def test_explicit_date_window(self):
        march_fifth = timezone.make_aware(datetime(2024, 3, 5, 14, 30))
        Order.objects.filter(pk=self.returned.pk).update(updated_at=march_fifth)

        result = self.service.company_ledger(ReportFilters(date_from='2024-03-05', date_to='2024-03-05'))

        self.assertIsNone(result['active_period'])
        self.assertEqual([row['booking_id'] for row in result['rows']], [self.returned.booking_id])

    def test_shipper_and_status_filters(self):
        other_shipper = self.create_user('other-shipper')
        self.move_order(self.create_order(other_shipper, self.rider), ORDER_STATUS_DELIVERED)

        by_shipper = self.service.company_ledger(ReportFilters(range='all', shipper_id=other_shipper.pk))
        self.assertEqual(by_shipper['totals']['total_orders'], 1)

        by_status = self.service.company_ledger(ReportFilters(range='all', status='returned'))
        self.assertEqual(by_status['totals']['total_orders'], 1)

    def test_pagination(self):
        result = self.service.company_ledger(ReportFilters(range='all', page=2, limit=3))

        self.assertEqual(len(result['rows']), 1)
        self.assertEqual(result['pagination']['total'], 4)
        self.assertEqual(result['pagination']['total_pages'], 2)
        self.assertEqual(result['totals']['total_orders'], 4)

    def test_export_rows(self):
        rows = self.service.ledger_export_rows(ReportFilters(range='all'))

        self.assertEqual(len(rows), 4)
        self.assertEqual(
            list(rows[0].keys()),
            [
                'Date', 'Shipper', 'Booking ID', 'Tracking ID', 'Status', 'COD',
                'Service Charges', 'Rider Payout (Paid)', 'Rider Payout (Unpaid)', 'Company Profit',
            ]
        )


class RiderSettlementsTestCase(ReportFixturesMixin, FinanceTestCase):
    """Test case for the per-rider settlement view"""

    def setUp(self):
        super().setUp()
        self.build_orders()
        self.service = FinanceReportService()

    def test_summary(self):
        result = self.service.rider_settlements(self.rider)
        summary = result['summary']

        self.assertEqual(result['total'], 4)
        self.assertEqual(summary['delivered_count'], 2)
        self.assertEqual(summary['returned_count'], 1)
        self.assertEqual(summary['failed_count'], 1)
        self.assertEqual(summary['cod_collected'], Decimal('1500'))
        self.assertEqual(summary['service_charges_total'], Decimal('580'))
        self.assertEqual(summary['rider_earnings'], Decimal('120'))
        self.assertEqual(summary['rider_earnings_paid'], Decimal('50'))
        self.assertEqual(summary['rider_earnings_unpaid'], Decimal('70'))
        self.assertEqual(summary['unpaid_balance'], Decimal('70'))

    def test_settlement_filter(self):
        result = self.service.rider_settlements(self.rider, ReportFilters(settlement='paid'))

        self.assertEqual([item['booking_id'] for item in result['items']], [self.paid.booking_id])
        self.assertEqual(result['summary']['rider_earnings'], Decimal('50'))
        self.assertEqual(result['summary']['unpaid_balance'], Decimal('0'))

    def test_other_riders_orders_excluded(self):
        other_rider = self.create_user('other-rider')
        self.move_order(self.create_order(self.shipper, other_rider), ORDER_STATUS_DELIVERED)

        self.assertEqual(self.service.rider_settlements(self.rider)['total'], 4)
        self.assertEqual(self.service.rider_settlements(other_rider)['total'], 1)

    def test_item_details(self):
        result = self.service.rider_settlements(self.rider, ReportFilters(search=self.returned.booking_id))
        item = result['items'][0]

        self.assertEqual(item['status'], ORDER_STATUS_RETURNED)
        self.assertEqual(item['cod_amount'], Decimal('700'))
        self.assertEqual(item['cod_collected'], Decimal('0'))
        self.assertEqual(item['rider_earning'], Decimal('20'))
        self.assertEqual(item['settlement_status'], SETTLEMENT_STATUS_UNPAID)

    def test_finance_window_matches_settlements(self):
        window = self.service.rider_finance_window(self.rider)
        settlements = self.service.rider_settlements(self.rider)

        self.assertEqual(window['orders'], 4)
        self.assertEqual(window['summary'], settlements['summary'])


class ReconciliationTestCase(ReportFixturesMixin, FinanceTestCase):
    """Ledger, rider settlements and company summary agree on unpaid payouts"""

    def setUp(self):
        super().setUp()
        self.build_orders()
        self.service = FinanceReportService()

    def unpaid_figures(self, **filter_kwargs):
        ledger = self.service.company_ledger(ReportFilters(rider_id=self.rider.pk, **filter_kwargs))
        settlements = self.service.rider_settlements(self.rider, ReportFilters(**filter_kwargs))
        summary = self.service.company_summary(ReportFilters(rider_id=self.rider.pk, **filter_kwargs))
        return (
            ledger['totals']['total_rider_payout_unpaid'],
            settlements['summary']['unpaid_balance'],
            summary['metrics']['unpaid_rider_balances'],
        )

    def assert_reconciled(self, with_summary=True, **filter_kwargs):
        ledger_unpaid, settlements_unpaid, summary_unpaid = self.unpaid_figures(**filter_kwargs)
        self.assertEqual(ledger_unpaid, settlements_unpaid)
        if with_summary:
            self.assertEqual(summary_unpaid, ledger_unpaid)

    def test_reconciled_all_time(self):
        self.assert_reconciled(range='all')

    def test_reconciled_with_missing_commissions(self):
        FinancialTransaction.objects.filter(order=self.delivered).update(rider_commission=money(0))
        Order.objects.filter(pk=self.returned.pk).update(rider_earning=money(35))
        self.assert_reconciled(with_summary=False, range='all')

    def test_summary_lags_for_legacy_zero_commission(self):
        # Recorded figures only: a legacy order with no stored payout counts as 0 in the summary
        FinancialTransaction.objects.filter(order=self.delivered).update(rider_commission=money(0))

        ledger_unpaid, settlements_unpaid, summary_unpaid = self.unpaid_figures(range='all')

        self.assertEqual(ledger_unpaid, Decimal('70'))
        self.assertEqual(settlements_unpaid, Decimal('70'))
        self.assertEqual(summary_unpaid, Decimal('20'))
        self.assertEqual(ledger_unpaid - summary_unpaid, Decimal('50'))

    def test_reconciled_after_backfill(self):
        FinancialTransaction.objects.filter(order=self.delivered).update(rider_commission=money(0))
        RiderEarningBackfill().run()
        self.assert_reconciled(range='all')

    def test_reconciled_for_a_window(self):
        march_fifth = timezone.make_aware(datetime(2024, 3, 5, 14, 30))
        Order.objects.filter(pk=self.returned.pk).update(updated_at=march_fifth)
        self.assert_reconciled(date_from='2024-03-01', date_to='2024-03-31')
