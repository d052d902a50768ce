"""
Courier finance serializers module
"""
from courier_finance.serializers.finance_serializer import (
    FinancialTransactionSerializer,
    FinancePeriodSerializer,
    ReportQuerySerializer,
    LedgerExportSerializer,
    RiderSettlementUpdateSerializer,
    BulkRiderSettlementSerializer,
)


__all__ = [
    'FinancialTransactionSerializer',
    'FinancePeriodSerializer',
    'ReportQuerySerializer',
    'LedgerExportSerializer',
    'RiderSettlementUpdateSerializer',
    'BulkRiderSettlementSerializer',
]
