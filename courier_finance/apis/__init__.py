from courier_finance.apis.finance_api import (
    CompanyFinanceViewSet,
    FinancePeriodViewSet,
    RiderSettlementViewSet,
    MySettlementViewSet,
    FinancialTransactionViewSet,
)


__all__ = [
    'CompanyFinanceViewSet',
    'FinancePeriodViewSet',
    'RiderSettlementViewSet',
    'MySettlementViewSet',
    'FinancialTransactionViewSet',
]
