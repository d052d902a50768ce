from courier_finance.models.order import Order, OrderQuerySet, OrderManager
from courier_finance.models.commission import (
    CommissionConfig,
    CommissionConfigManager,
    WeightBracket,
    RiderCommissionConfig,
    RiderCommissionConfigManager,
    RiderCommissionRule,
)
from courier_finance.models.financial_transaction import (
    FinancialTransaction,
    FinancialTransactionQuerySet,
    FinancialTransactionManager,
)
from courier_finance.models.finance_period import FinancePeriod, FinancePeriodQuerySet
from courier_finance.models.rider_balance import RiderBalance


__all__ = [
    'Order',
    'OrderQuerySet',
    'OrderManager',
    'CommissionConfig',
    'CommissionConfigManager',
    'WeightBracket',
    'RiderCommissionConfig',
    'RiderCommissionConfigManager',
    'RiderCommissionRule',
    'FinancialTransaction',
    'FinancialTransactionQuerySet',
    'FinancialTransactionManager',
    'FinancePeriod',
    'FinancePeriodQuerySet',
    'RiderBalance',
]
