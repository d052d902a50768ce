"""
Courier Finance - Serializers
"""
from rest_framework import serializers

from courier_finance.models import FinancialTransaction, FinancePeriod
from courier_finance.constants import (
    RIDER_SETTLEMENT_STATUSES,
    SETTLEMENT_FILTER_ALL,
    SETTLEMENT_FILTER_PAID,
    SETTLEMENT_FILTER_UNPAID,
    EXPORT_FORMATS,
    EXPORT_FORMAT_CSV,
)


# ==========================================
# MODEL SERIALIZERS
# ==========================================


class FinancialTransactionSerializer(serializers.ModelSerializer):
    """Read-only representation of a financial transaction"""

    order_id = serializers.CharField(source='order.id', read_only=True)
    booking_id = serializers.CharField(source='order.booking_id', read_only=True)
    tracking_id = serializers.CharField(source='order.tracking_id', read_only=True)
    order_status = serializers.CharField(source='order.status', read_only=True)
    shipper_id = serializers.CharField(source='shipper.id', read_only=True)
    rider_id = serializers.CharField(source='rider.id', read_only=True, allow_null=True)
    paid_by_id = serializers.CharField(source='paid_by.id', read_only=True, allow_null=True)

    # Money field decomposition
    total_cod_collected_value = serializers.DecimalField(
        source='total_cod_collected.amount',
        decimal_places=2,
        max_digits=19,
        read_only=True
    )
    shipper_share_value = serializers.DecimalField(
        source='shipper_share.amount',
        decimal_places=2,
        max_digits=19,
        read_only=True
    )
    company_commission_value = serializers.DecimalField(
        source='company_commission.amount',
        decimal_places=2,
        max_digits=19,
        read_only=True
    )
    rider_commission_value = serializers.DecimalField(
        source='rider_commission.amount',
        decimal_places=2,
        max_digits=19,
        read_only=True
    )
    currency = serializers.CharField(
        source='total_cod_collected.currency.code',
        read_only=True
    )

    settlement_status_display = serializers.CharField(
        source='get_settlement_status_display',
        read_only=True
    )
    is_paid = serializers.BooleanField(read_only=True)

    class Meta:
        model = FinancialTransaction
        fields = [
            'id',
            'order_id',
            'booking_id',
            'tracking_id',
            'order_status',
            'shipper_id',
            'rider_id',
            'total_cod_collected_value',
            'shipper_share_value',
            'company_commission_value',
            'rider_commission_value',
            'currency',
            'settlement_status',
            'settlement_status_display',
            'is_paid',
            'paid_at',
            'paid_by_id',
            'settlement_batch_id',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class FinancePeriodSerializer(serializers.ModelSerializer):
    """Representation of a finance period"""

    closed_by_id = serializers.CharField(source='closed_by.id', read_only=True, allow_null=True)
    is_open = serializers.BooleanField(read_only=True)

    class Meta:
        model = FinancePeriod
        fields = [
            'id',
            'period_start',
            'period_end',
            'status',
            'is_open',
            'closed_at',
            'closed_by_id',
            'created_at',
        ]
        read_only_fields = fields


# ==========================================
# INPUT SERIALIZERS
# ==========================================


class ReportQuerySerializer(serializers.Serializer):
    """Validates the query string shared by the finance reports"""

    range = serializers.CharField(required=False, allow_blank=True)
    date_from = serializers.CharField(required=False, allow_blank=True)
    date_to = serializers.CharField(required=False, allow_blank=True)
    shipper = serializers.CharField(required=False, allow_blank=True)
    rider = serializers.CharField(required=False, allow_blank=True)
    status = serializers.CharField(required=False, allow_blank=True)
    settlement = serializers.ChoiceField(
        choices=[SETTLEMENT_FILTER_ALL, SETTLEMENT_FILTER_PAID, SETTLEMENT_FILTER_UNPAID],
        required=False,
        default=SETTLEMENT_FILTER_ALL
    )
    search = serializers.CharField(required=False, allow_blank=True)
    sort = serializers.ChoiceField(choices=['asc', 'desc'], required=False, default='desc')
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    limit = serializers.IntegerField(required=False, min_value=1, default=None, allow_null=True)

    def to_internal_value(self, data):
        # 'from'/'to' are reserved words, map them onto date_from/date_to
        data = {key: data.get(key) for key in data.keys()}
        if 'from' in data:
            data.setdefault('date_from', data.pop('from'))
        if 'to' in data:
            data.setdefault('date_to', data.pop('to'))
        if data.get('settlement'):
            data['settlement'] = str(data['settlement']).lower()
        if data.get('sort'):
            data['sort'] = str(data['sort']).lower()
        return super().to_internal_value(data)


class LedgerExportSerializer(serializers.Serializer):
    """Export format of the company ledger"""

    format = serializers.ChoiceField(
        choices=[choice for choice, _label in EXPORT_FORMATS],
        required=False,
        default=EXPORT_FORMAT_CSV
    )


class RiderSettlementUpdateSerializer(serializers.Serializer):
    """
    Rider settlement update for one order

    Any value is accepted; empty or unknown values mean PAID.
    """

    status = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)


class BulkRiderSettlementSerializer(serializers.Serializer):
    """Rider settlement update for many orders at once"""

    order_ids = serializers.ListField(
        child=serializers.CharField(),
        allow_empty=False
    )
    status = serializers.ChoiceField(choices=[choice for choice, _label in RIDER_SETTLEMENT_STATUSES])

    def validate_order_ids(self, value):
        return list(dict.fromkeys(value))

    def to_internal_value(self, data):
        if type(data) is dict and isinstance(data.get('status'), str):
            data = {**data, 'status': data['status'].upper()}
        return super().to_internal_value(data)
