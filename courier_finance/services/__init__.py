from courier_finance.services.transaction_service import FinancialTransactionService
from courier_finance.services.period_service import FinancePeriodService, PeriodCloseResult
from courier_finance.services.report_service import FinanceReportService, ReportFilters
from courier_finance.services.backfill_service import RiderEarningBackfill, BackfillResult


__all__ = [
    'FinancialTransactionService',
    'FinancePeriodService',
    'PeriodCloseResult',
    'FinanceReportService',
    'ReportFilters',
    'RiderEarningBackfill',
    'BackfillResult',
]
