"""
Finance Reporting Service

Read-only aggregators over terminal orders and their transactions:

- company summary: recorded figures only (transaction commission, transaction
  level settlement mapping)
- company ledger: one row per order with paid/unpaid rider payout components
- rider settlements: per-rider rows with the full fallback chain, including
  live recomputation from the rider rules

All three place orders in time with the effective date and share the
fallback chain in ``effective_values``. For the same rider and window the
sum of the ledger's unpaid payouts equals the settlements' unpaid balance.
"""
import logging
import math
from typing import Any, Dict, List, Optional

from courier_finance.models import Order, RiderCommissionConfig
from courier_finance.constants import (
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_RETURNED,
    ORDER_STATUS_FAILED,
    TERMINAL_ORDER_STATUSES,
    SETTLEMENT_STATUS_PAID,
    SETTLEMENT_STATUS_UNPAID,
    SETTLEMENT_FILTER_PAID,
    SETTLEMENT_FILTER_UNPAID,
    SORT_ORDER_ASC,
    SORT_ORDER_DESC,
)
from courier_finance.services.commission_service import weight_bracket_label
from courier_finance.services.effective_values import (
    collected_cod,
    effective_rider_earning,
    effective_settlement_status,
    map_transaction_settlement,
    recorded_rider_paid,
)
from courier_finance.services.period_service import FinancePeriodService
from courier_finance.settings import get_finance_setting
from courier_finance.utils.date_ranges import build_date_range, effective_date, has_explicit_range
from courier_finance.utils.money import ZERO, quantize, to_decimal


logger = logging.getLogger(__name__)


def _clean(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _positive_int(value, default):
    try:
        value = int(value)
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


class ReportFilters:
    """
    Normalised report query parameters

    Attributes mirror the accepted query string keys: ``range``, ``from``,
    ``to``, ``shipper``, ``rider``, ``status``, ``settlement``, ``search``,
    ``sort``, ``page`` and ``limit``.
    """

    def __init__(self, range=None, date_from=None, date_to=None, shipper_id=None,
                 rider_id=None, status=None, settlement=None, search=None,
                 sort=None, page=None, limit=None):
        self.range = _clean(range)
        self.date_from = _clean(date_from)
        self.date_to = _clean(date_to)
        self.shipper_id = _clean(shipper_id)
        self.rider_id = _clean(rider_id)
        self.status = (_clean(status) or '').upper() or None
        self.settlement = (_clean(settlement) or 'all').lower()
        self.search = _clean(search)
        self.sort = SORT_ORDER_ASC if (_clean(sort) or '').lower() == SORT_ORDER_ASC else SORT_ORDER_DESC
        self.page = _positive_int(page, 1)
        self.limit = min(
            _positive_int(limit, get_finance_setting('DEFAULT_PAGE_SIZE')),
            get_finance_setting('MAX_PAGE_SIZE'),
        )

    @classmethod
    def from_params(cls, params=None):
        """Build filters from a QueryDict or plain dict"""
        params = params or {}
        return cls(
            range=params.get('range'),
            date_from=params.get('from') or params.get('date_from'),
            date_to=params.get('to') or params.get('date_to'),
            shipper_id=params.get('shipper') or params.get('shipper_id'),
            rider_id=params.get('rider') or params.get('rider_id'),
            status=params.get('status'),
            settlement=params.get('settlement'),
            search=params.get('search'),
            sort=params.get('sort') or params.get('sort_order'),
            page=params.get('page'),
            limit=params.get('limit'),
        )

    @property
    def has_date_filter(self):
        return has_explicit_range(self.range, self.date_from, self.date_to)

    def date_range(self):
        return build_date_range(self.range, self.date_from, self.date_to)

    def to_dict(self):
        return {
            'range': self.range,
            'from': self.date_from,
            'to': self.date_to,
            'shipper': self.shipper_id,
            'rider': self.rider_id,
            'status': self.status,
            'settlement': self.settlement,
            'search': self.search,
        }


def _paginate(rows: List[Any], page: int, limit: int) -> Dict[str, Any]:
    total = len(rows)
    start = (page - 1) * limit
    return {
        'items': rows[start:start + limit],
        'page': page,
        'limit': limit,
        'total': total,
        'total_pages': math.ceil(total / limit) if limit else 0,
    }


def _tx_of(order):
    # Reverse one-to-one raises RelatedObjectDoesNotExist (an AttributeError) when absent
    return getattr(order, 'financial_transaction', None)


def _shipper_name(user):
    if user is None:
        return ''
    full_name = user.get_full_name() if hasattr(user, 'get_full_name') else ''
    return full_name or user.get_username()


class FinanceReportService:
    """Service building the company and rider finance read-models"""

    def __init__(self):
        self.period_service = FinancePeriodService()

    # ==========================================
    # SHARED BUILDING BLOCKS
    # ==========================================

    def _resolve_window(self, filters, default_to_open_period):
        """
        Return (active_period, start, end)

        Without any date filter, company reports fall back to the open
        finance period; an explicit ``range=all`` disables the window.
        """
        active_period = None
        if not filters.has_date_filter and default_to_open_period:
            active_period, (start, end) = self.period_service.default_window()
            return active_period, start, end
        start, end = filters.date_range()
        return active_period, start, end

    def _base_queryset(self, filters, start=None, end=None):
        queryset = Order.objects.get_queryset().not_deleted().terminal().with_finance_details()
        if filters.shipper_id:
            queryset = queryset.filter(shipper_id=filters.shipper_id)
        if filters.rider_id:
            queryset = queryset.filter(assigned_rider_id=filters.rider_id)
        if filters.status and filters.status in TERMINAL_ORDER_STATUSES:
            queryset = queryset.filter(status=filters.status)
        if filters.search:
            queryset = queryset.search(filters.search)
        return queryset.in_effective_range(start, end)

    def _rider_configs(self, orders):
        rider_ids = [o.assigned_rider_id for o in orders if o.assigned_rider_id]
        return RiderCommissionConfig.objects.for_riders(rider_ids)

    def _rider_earning(self, order, tx, configs):
        return effective_rider_earning(
            order,
            tx,
            rider_config=configs.get(order.assigned_rider_id),
            live_recompute=True,
            load_config=False,
        )

    # ==========================================
    # COMPANY SUMMARY
    # ==========================================

    def company_summary(self, filters: Optional[ReportFilters] = None) -> Dict[str, Any]:
        """
        Company-wide totals over terminal orders

        Rider payouts are the recorded commission (transaction, then order);
        the pending/settled split uses the transaction settlement status.

        Returns:
            dict: filters, active period and metrics
        """
        filters = filters or ReportFilters()
        active_period, start, end = self._resolve_window(filters, default_to_open_period=True)
        orders = list(self._base_queryset(filters, start, end))

        metrics = {
            'orders_count': 0,
            'total_cod': ZERO,
            'total_service_charges': ZERO,
            'total_amount': ZERO,
            'delivered_orders': 0,
            'returned_orders': 0,
            'failed_orders': 0,
            'pending_rider_settlements_count': 0,
            'pending_rider_settlements_amount': ZERO,
            'settled_rider_transactions_count': 0,
            'settled_rider_transactions_amount': ZERO,
            'unpaid_rider_balances': ZERO,
            'total_rider_paid': ZERO,
            'total_company_commission': ZERO,
            'company_profit': ZERO,
        }

        for order in orders:
            tx = _tx_of(order)
            cod = quantize(collected_cod(order))
            service_charges = quantize(order.service_charges)
            rider_paid = recorded_rider_paid(order, tx)

            metrics['orders_count'] += 1
            metrics['total_cod'] += cod
            metrics['total_service_charges'] += service_charges
            metrics['total_rider_paid'] += rider_paid
            metrics['company_profit'] += service_charges - rider_paid
            if tx is not None:
                metrics['total_company_commission'] += quantize(tx.company_commission)

            if order.status == ORDER_STATUS_DELIVERED:
                metrics['delivered_orders'] += 1
            elif order.status == ORDER_STATUS_RETURNED:
                metrics['returned_orders'] += 1
            elif order.status == ORDER_STATUS_FAILED:
                metrics['failed_orders'] += 1

            if map_transaction_settlement(tx) == SETTLEMENT_STATUS_PAID:
                metrics['settled_rider_transactions_count'] += 1
                metrics['settled_rider_transactions_amount'] += rider_paid
            else:
                metrics['pending_rider_settlements_count'] += 1
                metrics['pending_rider_settlements_amount'] += rider_paid

        metrics['total_amount'] = metrics['total_cod'] + metrics['total_service_charges']
        metrics['unpaid_rider_balances'] = metrics['pending_rider_settlements_amount']

        logger.debug(f"Company summary over {metrics['orders_count']} orders ({start} - {end})")
        return {
            'filters': filters.to_dict(),
            'window': {'start': start, 'end': end},
            'active_period': active_period,
            'metrics': metrics,
        }

    # ==========================================
    # COMPANY LEDGER
    # ==========================================

    def ledger_row(self, order, tx, rider_earning, settlement_status) -> Dict[str, Any]:
        """One ledger line; the full rider payout is a cost whatever its status"""
        service_charges = quantize(order.service_charges)
        is_paid = settlement_status == SETTLEMENT_STATUS_PAID
        return {
            'id': str(order.pk),
            'date': effective_date(order),
            'shipper_id': str(order.shipper_id),
            'shipper_name': _shipper_name(order.shipper),
            'rider_id': str(order.assigned_rider_id) if order.assigned_rider_id else None,
            'booking_id': order.booking_id,
            'tracking_id': order.tracking_id,
            'cod': quantize(collected_cod(order)),
            'service_charges': service_charges,
            'rider_payout_paid': rider_earning if is_paid else ZERO,
            'rider_payout_unpaid': ZERO if is_paid else rider_earning,
            'company_profit': service_charges - rider_earning,
            'settlement_status': settlement_status,
            'status': order.status,
        }

    def company_ledger(self, filters: Optional[ReportFilters] = None, paginate=True) -> Dict[str, Any]:
        """
        Per-order ledger sorted by effective date, newest first

        Args:
            filters: ReportFilters (optional)
            paginate: Slice rows by page/limit; totals always cover the window

        Returns:
            dict: rows (paginated), totals, active period
        """
        filters = filters or ReportFilters()
        active_period, start, end = self._resolve_window(filters, default_to_open_period=True)
        orders = list(self._base_queryset(filters, start, end))
        configs = self._rider_configs(orders)

        rows = []
        for order in orders:
            tx = _tx_of(order)
            rows.append(self.ledger_row(
                order,
                tx,
                self._rider_earning(order, tx, configs),
                effective_settlement_status(order, tx),
            ))

        rows.sort(key=lambda row: row['shipper_name'])
        rows.sort(key=lambda row: row['date'], reverse=True)

        totals = {
            'total_orders': len(rows),
            'total_cod': sum((row['cod'] for row in rows), ZERO),
            'total_service_charges': sum((row['service_charges'] for row in rows), ZERO),
            'total_rider_payout_paid': sum((row['rider_payout_paid'] for row in rows), ZERO),
            'total_rider_payout_unpaid': sum((row['rider_payout_unpaid'] for row in rows), ZERO),
            'total_company_profit': sum((row['company_profit'] for row in rows), ZERO),
        }
        totals['total_rider_payout'] = totals['total_rider_payout_paid'] + totals['total_rider_payout_unpaid']

        result = {
            'filters': filters.to_dict(),
            'window': {'start': start, 'end': end},
            'active_period': active_period,
            'totals': totals,
        }
        if paginate:
            page = _paginate(rows, filters.page, filters.limit)
            result['rows'] = page.pop('items')
            result['pagination'] = page
        else:
            result['rows'] = rows
        return result

    # ==========================================
    # RIDER SETTLEMENTS
    # ==========================================

    def _empty_rider_summary(self):
        return {
            'delivered_count': 0,
            'returned_count': 0,
            'failed_count': 0,
            'cod_collected': ZERO,
            'service_charges_total': ZERO,
            'rider_earnings': ZERO,
            'rider_earnings_paid': ZERO,
            'rider_earnings_unpaid': ZERO,
            'unpaid_balance': ZERO,
        }

    def _settlement_item(self, order, tx, rider_config):
        rider_earning = effective_rider_earning(
            order, tx, rider_config=rider_config, live_recompute=True, load_config=False
        )
        if order.status == ORDER_STATUS_DELIVERED and order.amount_collected is not None:
            cod_amount = quantize(order.amount_collected)
        else:
            cod_amount = quantize(order.cod_amount)

        return {
            'id': str(order.pk),
            'booking_id': order.booking_id,
            'tracking_id': order.tracking_id,
            'date': effective_date(order),
            'shipper_id': str(order.shipper_id),
            'shipper_name': _shipper_name(order.shipper),
            'consignee_name': order.consignee_name,
            'consignee_phone': order.consignee_phone,
            'destination': order.destination_city,
            'weight_kg': to_decimal(order.weight_kg),
            'weight_bracket_label': weight_bracket_label(order.service_charges_snapshot),
            'payment_type': order.payment_type,
            'cod_amount': cod_amount,
            'cod_collected': quantize(collected_cod(order)),
            'service_charges': quantize(order.service_charges),
            'rider_earning': rider_earning,
            'status': order.status,
            'settlement_status': effective_settlement_status(order, tx),
            'rider_settlement_at': order.rider_settlement_at,
            'rider_settlement_by': str(order.rider_settlement_by_id) if order.rider_settlement_by_id else None,
        }

    def _summarize_items(self, items):
        summary = self._empty_rider_summary()
        for item in items:
            if item['status'] == ORDER_STATUS_DELIVERED:
                summary['delivered_count'] += 1
            elif item['status'] == ORDER_STATUS_RETURNED:
                summary['returned_count'] += 1
            elif item['status'] == ORDER_STATUS_FAILED:
                summary['failed_count'] += 1

            summary['cod_collected'] += item['cod_collected']
            summary['service_charges_total'] += item['service_charges']
            summary['rider_earnings'] += item['rider_earning']
            if item['settlement_status'] == SETTLEMENT_STATUS_PAID:
                summary['rider_earnings_paid'] += item['rider_earning']
            else:
                summary['rider_earnings_unpaid'] += item['rider_earning']

        summary['unpaid_balance'] = summary['rider_earnings_unpaid']
        return summary

    def _rider_items(self, rider_id, filters, start, end):
        queryset = self._base_queryset(filters, start, end).filter(assigned_rider_id=rider_id)
        rider_config = RiderCommissionConfig.objects.for_rider(rider_id)

        items = [
            self._settlement_item(order, _tx_of(order), rider_config)
            for order in queryset
        ]

        if filters.settlement == SETTLEMENT_FILTER_PAID:
            items = [i for i in items if i['settlement_status'] == SETTLEMENT_STATUS_PAID]
        elif filters.settlement == SETTLEMENT_FILTER_UNPAID:
            items = [i for i in items if i['settlement_status'] == SETTLEMENT_STATUS_UNPAID]

        items.sort(
            key=lambda item: item['date'],
            reverse=filters.sort == SORT_ORDER_DESC,
        )
        return items

    def rider_settlements(self, rider, filters: Optional[ReportFilters] = None) -> Dict[str, Any]:
        """
        Per-rider settlement rows with window-wide summary totals

        Args:
            rider: Rider user instance or primary key
            filters: ReportFilters (optional); no date filter means all time

        Returns:
            dict: summary, items (paginated) and pagination details
        """
        filters = filters or ReportFilters()
        rider_id = getattr(rider, 'pk', rider)
        _, start, end = self._resolve_window(filters, default_to_open_period=False)

        items = self._rider_items(rider_id, filters, start, end)
        summary = self._summarize_items(items)
        page = _paginate(items, filters.page, filters.limit)

        return {
            'rider_id': str(rider_id),
            'filters': filters.to_dict(),
            'window': {'start': start, 'end': end},
            'summary': summary,
            **page,
        }

    def rider_finance_window(self, rider, date_from=None, date_to=None) -> Dict[str, Any]:
        """
        Aggregate-only settlements view for one rider and window

        Produces the same summary figures as ``rider_settlements``.
        """
        filters = ReportFilters(date_from=date_from, date_to=date_to)
        rider_id = getattr(rider, 'pk', rider)
        start, end = filters.date_range()
        items = self._rider_items(rider_id, filters, start, end)
        return {
            'rider_id': str(rider_id),
            'window': {'start': start, 'end': end},
            'orders': len(items),
            'summary': self._summarize_items(items),
        }

    # ==========================================
    # EXPORT
    # ==========================================

    def ledger_export_rows(self, filters: Optional[ReportFilters] = None) -> List[Dict[str, Any]]:
        """All ledger rows of the window, flattened for the exporters"""
        result = self.company_ledger(filters, paginate=False)
        return [
            {
                'Date': row['date'].strftime('%Y-%m-%d %H:%M') if row['date'] else '',
                'Shipper': row['shipper_name'],
                'Booking ID': row['booking_id'],
                'Tracking ID': row['tracking_id'],
                'Status': row['status'],
                'COD': row['cod'],
                'Service Charges': row['service_charges'],
                'Rider Payout (Paid)': row['rider_payout_paid'],
                'Rider Payout (Unpaid)': row['rider_payout_unpaid'],
                'Company Profit': row['company_profit'],
            }
            for row in result['rows']
        ]
