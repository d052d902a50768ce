import logging

from django.apps import apps
from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils.translation import gettext_lazy as _
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import viewsets, status, permissions
from rest_framework import filters
from rest_framework.decorators import action
from rest_framework.response import Response

from courier_finance.models import FinancialTransaction
from courier_finance.serializers.finance_serializer import (
    FinancialTransactionSerializer,
    FinancePeriodSerializer,
    ReportQuerySerializer,
    LedgerExportSerializer,
    RiderSettlementUpdateSerializer,
    BulkRiderSettlementSerializer,
)
from courier_finance.services.report_service import FinanceReportService, ReportFilters
from courier_finance.services.period_service import FinancePeriodService
from courier_finance.services.transaction_service import FinancialTransactionService
from courier_finance.exceptions import FinanceError, TransactionNotFound
from courier_finance.utils.exporters import export_rows
from courier_finance.settings import get_finance_setting


logger = logging.getLogger(__name__)


def _report_filters(request):
    """Validate the query string and build ReportFilters from it"""
    serializer = ReportQuerySerializer(data=request.query_params)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    return ReportFilters(
        range=data.get('range'),
        date_from=data.get('date_from'),
        date_to=data.get('date_to'),
        shipper_id=data.get('shipper'),
        rider_id=data.get('rider'),
        status=data.get('status'),
        settlement=data.get('settlement'),
        search=data.get('search'),
        sort=data.get('sort'),
        page=data.get('page'),
        limit=data.get('limit'),
    )


def _with_period(result):
    """Replace the FinancePeriod instance of a report with its serialized form"""
    period = result.get('active_period')
    result['active_period'] = FinancePeriodSerializer(period).data if period else None
    return result


def _bad_request(message):
    return Response({"detail": message}, status=status.HTTP_400_BAD_REQUEST)


# ==========================================
# COMPANY FINANCE
# ==========================================


class CompanyFinanceViewSet(viewsets.ViewSet):
    """
    Company-wide finance reports (staff only)

    Endpoints:
    Summary: GET /api/finance/company/summary/
    Ledger: GET /api/finance/company/ledger/
    Ledger export: GET /api/finance/company/ledger/export/?format=csv|xlsx|pdf
    Close month: POST /api/finance/company/close-month/

    Without a date filter the reports cover the open finance period;
    ``range=all`` covers all time.
    """
    permission_classes = [permissions.IsAdminUser]

    def perform_content_negotiation(self, request, force=False):
        # ?format= selects the export file type, not a DRF renderer
        if getattr(self, 'action', None) == 'ledger_export':
            force = True
        return super().perform_content_negotiation(request, force=force)

    @action(detail=False, methods=['get'])
    def summary(self, request):
        """GET /api/finance/company/summary/"""
        filters_ = _report_filters(request)
        try:
            result = FinanceReportService().company_summary(filters_)
        except (ValueError, DjangoValidationError):
            return _bad_request(_("Invalid filter value"))
        return Response(_with_period(result))

    @action(detail=False, methods=['get'])
    def ledger(self, request):
        """GET /api/finance/company/ledger/"""
        filters_ = _report_filters(request)
        try:
            result = FinanceReportService().company_ledger(filters_)
        except (ValueError, DjangoValidationError):
            return _bad_request(_("Invalid filter value"))
        return Response(_with_period(result))

    @action(detail=False, methods=['get'], url_path='ledger/export')
    def ledger_export(self, request):
        """GET /api/finance/company/ledger/export/?format=csv|xlsx|pdf"""
        export_serializer = LedgerExportSerializer(data=request.query_params)
        export_serializer.is_valid(raise_exception=True)
        export_format = export_serializer.validated_data['format']

        filters_ = _report_filters(request)
        try:
            rows = FinanceReportService().ledger_export_rows(filters_)
        except (ValueError, DjangoValidationError):
            return _bad_request(_("Invalid filter value"))

        logger.info(f"Exporting {len(rows)} ledger rows as {export_format} for user {request.user.id}")
        return export_rows(rows, export_format, filename_prefix='company_ledger', title=_('Company Ledger'))

    @action(detail=False, methods=['post'], url_path='close-month')
    def close_month(self, request):
        """
        Close the open finance period and open the next one

        POST /api/finance/company/close-month/

        Response (200):
        {
            "closed_period_id": "uuid",
            "new_period_id": "uuid",
            "conflict": false,
            "closed_period": {...},
            "new_period": {...}
        }
        """
        result = FinancePeriodService().close_current_period(closed_by=request.user)
        data = result.to_dict()
        data['closed_period'] = FinancePeriodSerializer(result.closed_period).data if result.closed_period else None
        data['new_period'] = FinancePeriodSerializer(result.new_period).data if result.new_period else None
        return Response(data)


# ==========================================
# FINANCE PERIODS
# ==========================================


class FinancePeriodViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Finance periods (staff only)

    List: GET /api/finance/periods/
    Current: GET /api/finance/periods/current/
    """
    serializer_class = FinancePeriodSerializer
    permission_classes = [permissions.IsAdminUser]

    def get_queryset(self):
        return FinancePeriodService().list_periods()

    @action(detail=False, methods=['get'])
    def current(self, request):
        period = FinancePeriodService().get_or_create_open_period()
        return Response(self.get_serializer(period).data)


# ==========================================
# RIDER SETTLEMENTS
# ==========================================


class RiderSettlementViewSet(viewsets.ViewSet):
    """
    Per-rider settlement view (staff only)

    GET /api/finance/riders/{rider_id}/settlements/
    """
    permission_classes = [permissions.IsAdminUser]

    @action(detail=True, methods=['get'])
    def settlements(self, request, pk=None):
        User = apps.get_model(get_finance_setting('USER_MODEL'))
        try:
            rider = User.objects.filter(pk=pk).first()
        except (ValueError, DjangoValidationError):
            return _bad_request(_("Invalid rider id"))
        if rider is None:
            return Response({"detail": _("Rider not found")}, status=status.HTTP_404_NOT_FOUND)

        filters_ = _report_filters(request)
        try:
            result = FinanceReportService().rider_settlements(rider, filters_)
        except (ValueError, DjangoValidationError):
            return _bad_request(_("Invalid filter value"))
        return Response(result)


class MySettlementViewSet(viewsets.ViewSet):
    """
    Settlement view of the authenticated rider

    GET /api/finance/my-settlements/
    """
    permission_classes = [permissions.IsAuthenticated]

    def list(self, request):
        filters_ = _report_filters(request)
        # A rider only ever sees their own orders
        filters_.rider_id = None
        try:
            result = FinanceReportService().rider_settlements(request.user, filters_)
        except (ValueError, DjangoValidationError):
            return _bad_request(_("Invalid filter value"))
        return Response(result)


# ==========================================
# FINANCIAL TRANSACTIONS
# ==========================================


class FinancialTransactionViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Financial transactions (staff only)

    List/Retrieve: GET /api/finance/transactions/
    By order: GET /api/finance/transactions/by-order/{order_id}/
    Rider settlement: POST /api/finance/transactions/by-order/{order_id}/rider-settlement/
    Bulk rider settlement: POST /api/finance/transactions/bulk-rider-settlement/
    """
    serializer_class = FinancialTransactionSerializer
    permission_classes = [permissions.IsAdminUser]
    filter_backends = [
        DjangoFilterBackend,
        filters.SearchFilter,
        filters.OrderingFilter
    ]
    filterset_fields = ['settlement_status', 'rider', 'shipper', 'settlement_batch_id']
    search_fields = ['order__booking_id', 'order__tracking_id']
    ordering_fields = ['created_at', 'paid_at']

    def get_queryset(self):
        return FinancialTransaction.objects.get_queryset().with_order_details().order_by('-created_at')

    @action(detail=False, methods=['get'], url_path=r'by-order/(?P<order_id>[^/.]+)')
    def by_order(self, request, order_id=None):
        try:
            tx = FinancialTransactionService().get_transaction_for_order(order_id)
        except (ValueError, DjangoValidationError):
            return _bad_request(_("Invalid order id"))
        except TransactionNotFound as e:
            return Response({"detail": str(e)}, status=status.HTTP_404_NOT_FOUND)
        return Response(self.get_serializer(tx).data)

    @action(detail=False, methods=['post'], url_path=r'by-order/(?P<order_id>[^/.]+)/rider-settlement')
    def rider_settlement(self, request, order_id=None):
        """
        Body:
        {
            "status": "PAID" | "UNPAID" | "PENDING" | "SETTLED"
        }
        """
        serializer = RiderSettlementUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            tx = FinancialTransactionService().set_rider_settlement_by_order(
                order_id,
                serializer.validated_data.get('status'),
                user=request.user,
            )
        except (ValueError, DjangoValidationError):
            return _bad_request(_("Invalid order id"))
        except TransactionNotFound as e:
            return Response({"detail": str(e)}, status=status.HTTP_404_NOT_FOUND)
        except FinanceError as e:
            return _bad_request(str(e))

        return Response(FinancialTransactionSerializer(tx).data)

    @action(detail=False, methods=['post'], url_path='bulk-rider-settlement')
    def bulk_rider_settlement(self, request):
        """
        Body:
        {
            "order_ids": ["uuid", ...],
            "status": "PAID" | "UNPAID"
        }
        """
        serializer = BulkRiderSettlementSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            result = FinancialTransactionService().bulk_set_rider_settlement(
                serializer.validated_data['order_ids'],
                serializer.validated_data['status'],
                user=request.user,
            )
        except (ValueError, DjangoValidationError):
            return _bad_request(_("Invalid order id"))
        except FinanceError as e:
            return _bad_request(str(e))

        return Response(result)
