"""
Courier Finance - Export Utility Tests

Test Coverage:
1. ExportersTestCase - queryset flattening and csv/xlsx/pdf responses
"""
from datetime import datetime
from decimal import Decimal

from django.utils import timezone

from courier_finance.test import FinanceTestCase, money
from courier_finance.models import Order
from courier_finance.utils.exporters import queryset_to_rows, export_rows, get_export_filename


class ExportersTestCase(FinanceTestCase):
    """Test case for the export helpers"""

    def setUp(self):
        super().setUp()
        self.order = self.create_order(self.shipper, self.rider, cod_amount=1250, booking_id='BK-EXPORT')

    def test_queryset_to_rows_headers(self):
        rows = queryset_to_rows(Order.objects.all(), ['booking_id', 'shipper.username', 'cod_amount'])

        self.assertEqual(list(rows[0].keys()), ['Booking Id', 'Shipper Username', 'Cod Amount'])
        self.assertEqual(rows[0]['Booking Id'], 'BK-EXPORT')
        self.assertEqual(rows[0]['Shipper Username'], 'shipper')
        self.assertEqual(rows[0]['Cod Amount'], money(1250))

    def test_missing_related_value_is_none(self):
        rows = queryset_to_rows(Order.objects.all(), ['rider_settlement_by.username'])
        self.assertIsNone(rows[0]['Rider Settlement By Username'])

    def test_csv_export(self):
        rows = [
            {'Booking ID': 'BK1', 'COD': money('100.00'), 'Date': timezone.make_aware(datetime(2024, 3, 5, 9, 30))},
            {'Booking ID': 'BK2', 'COD': Decimal('0.00'), 'Date': None},
        ]
        response = export_rows(rows, 'CSV', filename_prefix='ledger')

        self.assertEqual(response['Content-Type'], 'text/csv')
        lines = response.content.decode().splitlines()
        self.assertEqual(lines[0], 'Booking ID,COD,Date')
        self.assertEqual(lines[1], 'BK1,100.00,2024-03-05 09:30:00')
        self.assertEqual(lines[2], 'BK2,0.00,')

    def test_empty_export_still_builds_files(self):
        for export_format in ('csv', 'xlsx', 'pdf'):
            response = export_rows([], export_format)
            self.assertEqual(response.status_code, 200)

    def test_unsupported_format(self):
        with self.assertRaises(ValueError):
            export_rows([], 'docx')

    def test_filename(self):
        filename = get_export_filename('company_ledger', 'csv')
        self.assertTrue(filename.startswith('company_ledger_'))
        self.assertTrue(filename.endswith('.csv'))
