from django import forms
from django.contrib import admin
from django.core.exceptions import ValidationError
from django.utils.translation import gettext_lazy as _

from courier_finance.models import (
    Order, CommissionConfig, WeightBracket, RiderCommissionConfig,
    RiderCommissionRule, FinancialTransaction, FinancePeriod, RiderBalance
)
from courier_finance.exceptions import InvalidWeightBrackets, FinanceError
from courier_finance.services.commission_service import validate_weight_brackets
from courier_finance.services.period_service import FinancePeriodService
from courier_finance.services.transaction_service import FinancialTransactionService
from courier_finance.constants import SETTLEMENT_STATUS_PAID, SETTLEMENT_STATUS_UNPAID
from courier_finance.utils.exporters import queryset_to_rows, export_rows

import logging
logger = logging.getLogger(__name__)


class ExportMixin:
    """Mixin to add export actions to admin"""

    actions = ['export_to_csv', 'export_to_excel', 'export_to_pdf']

    def _export(self, queryset, export_format):
        meta = self.model._meta
        field_names = [field.name for field in meta.fields if not field.name.endswith('_snapshot')]
        rows = queryset_to_rows(queryset, field_names)
        return export_rows(
            rows,
            export_format,
            filename_prefix=str(meta.verbose_name_plural).lower().replace(' ', '_'),
            title=_("{} Export").format(meta.verbose_name_plural)
        )

    def export_to_csv(self, request, queryset):
        """Export selected items to CSV"""
        return self._export(queryset, 'csv')
    export_to_csv.short_description = _("Export selected items to CSV")

    def export_to_excel(self, request, queryset):
        """Export selected items to Excel"""
        return self._export(queryset, 'xlsx')
    export_to_excel.short_description = _("Export selected items to Excel")

    def export_to_pdf(self, request, queryset):
        """Export selected items to PDF"""
        return self._export(queryset, 'pdf')
    export_to_pdf.short_description = _("Export selected items to PDF")


# ==========================================
# ORDERS
# ==========================================


class OrderAdmin(ExportMixin, admin.ModelAdmin):
    """Admin for the finance view of orders"""

    list_display = (
        'booking_id', 'tracking_id', 'shipper', 'assigned_rider', 'status',
        'payment_type', 'cod_amount', 'service_charges', 'rider_earning',
        'rider_settlement_status', 'created_at'
    )
    list_filter = ('status', 'payment_type', 'rider_settlement_status', 'is_deleted', 'created_at')
    search_fields = ('booking_id', 'tracking_id', 'consignee_name', 'shipper__username', 'assigned_rider__username')
    readonly_fields = (
        'id', 'service_charges_snapshot', 'rider_settlement_at', 'rider_settlement_by',
        'created_at', 'updated_at'
    )
    raw_id_fields = ('shipper', 'assigned_rider')
    fieldsets = (
        (None, {
            'fields': ('id', 'booking_id', 'tracking_id', 'status', 'payment_type')
        }),
        (_('Parties'), {
            'fields': ('shipper', 'assigned_rider', 'consignee_name', 'consignee_phone', 'destination_city')
        }),
        (_('Amounts'), {
            'fields': ('cod_amount', 'amount_collected', 'weight_kg', 'service_charges', 'service_charges_snapshot')
        }),
        (_('Rider Settlement'), {
            'fields': ('rider_earning', 'rider_settlement_status', 'rider_settlement_at', 'rider_settlement_by')
        }),
        (_('System Info'), {
            'fields': ('delivered_at', 'is_deleted', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )


# ==========================================
# COMMISSION CONFIGURATION
# ==========================================


class WeightBracketInlineFormSet(forms.BaseInlineFormSet):
    """Validates the brackets of a configuration as a whole"""

    def clean(self):
        super().clean()
        brackets = []
        for form in self.forms:
            if not hasattr(form, 'cleaned_data') or not form.cleaned_data:
                continue
            if form.cleaned_data.get('DELETE'):
                continue
            brackets.append({
                'min_kg': form.cleaned_data.get('min_kg'),
                'max_kg': form.cleaned_data.get('max_kg'),
                'charge': form.cleaned_data.get('charge'),
            })
        try:
            validate_weight_brackets(brackets)
        except InvalidWeightBrackets as e:
            raise ValidationError(str(e))


class WeightBracketInline(admin.TabularInline):
    """Inline admin for weight brackets"""
    model = WeightBracket
    formset = WeightBracketInlineFormSet
    extra = 1
    fields = ['min_kg', 'max_kg', 'charge']


class CommissionConfigAdmin(admin.ModelAdmin):
    """Admin for shipper commission configurations"""

    list_display = ['shipper', 'type', 'value', 'return_charge', 'bracket_count', 'updated_at']
    list_filter = ['type', 'created_at']
    search_fields = ['shipper__username', 'shipper__email']
    readonly_fields = ['id', 'created_at', 'updated_at']
    raw_id_fields = ['shipper']
    inlines = [WeightBracketInline]

    def bracket_count(self, obj):
        return obj.weight_brackets.count()
    bracket_count.short_description = _("Brackets")


class RiderCommissionRuleInline(admin.TabularInline):
    """Inline admin for status keyed rider rules"""
    model = RiderCommissionRule
    extra = 1
    fields = ['status', 'type', 'value']


class RiderCommissionConfigAdmin(admin.ModelAdmin):
    """Admin for rider payout configurations"""

    list_display = ['rider', 'type', 'value', 'updated_at']
    list_filter = ['type']
    search_fields = ['rider__username', 'rider__email']
    readonly_fields = ['id', 'created_at', 'updated_at']
    raw_id_fields = ['rider']
    inlines = [RiderCommissionRuleInline]


# ==========================================
# TRANSACTIONS & SETTLEMENT
# ==========================================


class FinancialTransactionAdmin(ExportMixin, admin.ModelAdmin):
    """Admin for financial transactions"""

    list_display = (
        'order', 'shipper', 'rider', 'total_cod_collected', 'shipper_share',
        'company_commission', 'rider_commission', 'settlement_status', 'paid_at', 'created_at'
    )
    list_filter = ('settlement_status', 'created_at', 'paid_at')
    search_fields = ('order__booking_id', 'order__tracking_id', 'settlement_batch_id')
    readonly_fields = (
        'id', 'order', 'shipper', 'rider', 'total_cod_collected', 'shipper_share',
        'company_commission', 'rider_commission', 'paid_at', 'paid_by',
        'settlement_batch_id', 'created_at', 'updated_at'
    )
    actions = ExportMixin.actions + ['mark_rider_paid', 'mark_rider_unpaid']

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('order', 'shipper', 'rider')

    def _bulk_settle(self, request, queryset, settlement_status):
        order_ids = list(queryset.values_list('order_id', flat=True))
        try:
            result = FinancialTransactionService().bulk_set_rider_settlement(
                order_ids, settlement_status, user=request.user
            )
        except FinanceError as e:
            self.message_user(request, str(e), level='error')
            return
        self.message_user(
            request,
            _("{} transaction(s) marked {} (batch {})").format(
                result['updated'], settlement_status, result['batch_id']
            )
        )

    def mark_rider_paid(self, request, queryset):
        """Mark the rider payout of the selected transactions as paid"""
        self._bulk_settle(request, queryset, SETTLEMENT_STATUS_PAID)
    mark_rider_paid.short_description = _("Mark rider payout as paid")

    def mark_rider_unpaid(self, request, queryset):
        """Revert the rider payout of the selected transactions to unpaid"""
        self._bulk_settle(request, queryset, SETTLEMENT_STATUS_UNPAID)
    mark_rider_unpaid.short_description = _("Mark rider payout as unpaid")


class FinancePeriodAdmin(admin.ModelAdmin):
    """Admin for finance periods"""

    list_display = ['period_start', 'period_end', 'status', 'closed_at', 'closed_by']
    list_filter = ['status']
    readonly_fields = ['id', 'period_start', 'period_end', 'status', 'closed_at', 'closed_by', 'created_at', 'updated_at']
    actions = ['close_current_period']

    def has_add_permission(self, request):
        return False

    def close_current_period(self, request, queryset):
        """Close the open period, whatever the selection"""
        result = FinancePeriodService().close_current_period(closed_by=request.user)
        if result.conflict:
            self.message_user(request, _("The period was already closed"), level='warning')
        else:
            self.message_user(request, _("Closed {}; opened {}").format(result.closed_period, result.new_period))
    close_current_period.short_description = _("Close the current finance period")


class RiderBalanceAdmin(ExportMixin, admin.ModelAdmin):
    """Admin for rider cash balances"""

    list_display = ['rider', 'cod_collected', 'service_charges', 'service_charge_status', 'updated_at']
    list_filter = ['service_charge_status']
    search_fields = ['rider__username', 'rider__email']
    readonly_fields = ['id', 'rider', 'cod_collected', 'service_charges', 'created_at', 'updated_at']


# Register models with admin
admin.site.register(Order, OrderAdmin)
admin.site.register(CommissionConfig, CommissionConfigAdmin)
admin.site.register(RiderCommissionConfig, RiderCommissionConfigAdmin)
admin.site.register(FinancialTransaction, FinancialTransactionAdmin)
admin.site.register(FinancePeriod, FinancePeriodAdmin)
admin.site.register(RiderBalance, RiderBalanceAdmin)
