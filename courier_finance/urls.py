from django.urls import path, include
from rest_framework.routers import DefaultRouter

from courier_finance.apis.finance_api import (
    CompanyFinanceViewSet,
    FinancePeriodViewSet,
    RiderSettlementViewSet,
    MySettlementViewSet,
    FinancialTransactionViewSet,
)

# Create a router and register viewsets
router = DefaultRouter()
router.register(r'finance/company', CompanyFinanceViewSet, basename='finance-company')
router.register(r'finance/periods', FinancePeriodViewSet, basename='finance-period')
router.register(r'finance/riders', RiderSettlementViewSet, basename='finance-rider')
router.register(r'finance/my-settlements', MySettlementViewSet, basename='finance-my-settlements')
router.register(r'finance/transactions', FinancialTransactionViewSet, basename='finance-transaction')

# URLs for the API
urlpatterns = [
    path('api/', include(router.urls)),
]
