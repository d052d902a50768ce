from django.utils.translation import gettext_lazy as _

# ==========================================
# ORDER STATUSES
# ==========================================

ORDER_STATUS_CREATED = 'CREATED'
ORDER_STATUS_ASSIGNED = 'ASSIGNED'
ORDER_STATUS_AT_WAREHOUSE = 'AT_WAREHOUSE'
ORDER_STATUS_OUT_FOR_DELIVERY = 'OUT_FOR_DELIVERY'
ORDER_STATUS_DELIVERED = 'DELIVERED'
ORDER_STATUS_RETURNED = 'RETURNED'
ORDER_STATUS_FAILED = 'FAILED'
ORDER_STATUS_FIRST_ATTEMPT = 'FIRST_ATTEMPT'
ORDER_STATUS_SECOND_ATTEMPT = 'SECOND_ATTEMPT'
ORDER_STATUS_THIRD_ATTEMPT = 'THIRD_ATTEMPT'

ORDER_STATUSES = (
    (ORDER_STATUS_CREATED, _('Created')),
    (ORDER_STATUS_ASSIGNED, _('Assigned')),
    (ORDER_STATUS_AT_WAREHOUSE, _('At warehouse')),
    (ORDER_STATUS_OUT_FOR_DELIVERY, _('Out for delivery')),
    (ORDER_STATUS_DELIVERED, _('Delivered')),
    (ORDER_STATUS_RETURNED, _('Returned')),
    (ORDER_STATUS_FAILED, _('Failed')),
    (ORDER_STATUS_FIRST_ATTEMPT, _('First attempt')),
    (ORDER_STATUS_SECOND_ATTEMPT, _('Second attempt')),
    (ORDER_STATUS_THIRD_ATTEMPT, _('Third attempt')),
)

# Statuses that close an order for finance purposes
TERMINAL_ORDER_STATUSES = (
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_RETURNED,
    ORDER_STATUS_FAILED,
)

# ==========================================
# PAYMENT TYPES
# ==========================================

PAYMENT_TYPE_COD = 'COD'
PAYMENT_TYPE_ADVANCE = 'ADVANCE'

PAYMENT_TYPES = (
    (PAYMENT_TYPE_COD, _('Cash on delivery')),
    (PAYMENT_TYPE_ADVANCE, _('Advance')),
)

# ==========================================
# COMMISSION TYPES
# ==========================================

COMMISSION_TYPE_FLAT = 'FLAT'
COMMISSION_TYPE_PERCENTAGE = 'PERCENTAGE'

COMMISSION_TYPES = (
    (COMMISSION_TYPE_FLAT, _('Flat')),
    (COMMISSION_TYPE_PERCENTAGE, _('Percentage')),
)

# Statuses a rider commission rule may be keyed by
RIDER_RULE_STATUSES = (
    (ORDER_STATUS_DELIVERED, _('Delivered')),
    (ORDER_STATUS_RETURNED, _('Returned')),
    (ORDER_STATUS_FAILED, _('Failed')),
    (ORDER_STATUS_OUT_FOR_DELIVERY, _('Out for delivery')),
)

# ==========================================
# SETTLEMENT STATUSES
# ==========================================

SETTLEMENT_STATUS_UNPAID = 'UNPAID'
SETTLEMENT_STATUS_PAID = 'PAID'
# Legacy values still present on older transactions
SETTLEMENT_STATUS_PENDING = 'PENDING'
SETTLEMENT_STATUS_SETTLED = 'SETTLED'

SETTLEMENT_STATUSES = (
    (SETTLEMENT_STATUS_UNPAID, _('Unpaid')),
    (SETTLEMENT_STATUS_PAID, _('Paid')),
    (SETTLEMENT_STATUS_PENDING, _('Pending (legacy)')),
    (SETTLEMENT_STATUS_SETTLED, _('Settled (legacy)')),
)

RIDER_SETTLEMENT_STATUSES = (
    (SETTLEMENT_STATUS_UNPAID, _('Unpaid')),
    (SETTLEMENT_STATUS_PAID, _('Paid')),
)

PAID_SETTLEMENT_STATUSES = (SETTLEMENT_STATUS_PAID, SETTLEMENT_STATUS_SETTLED)
UNPAID_SETTLEMENT_STATUSES = (SETTLEMENT_STATUS_UNPAID, SETTLEMENT_STATUS_PENDING)

# ==========================================
# RIDER SERVICE CHARGE STATUSES
# ==========================================

SERVICE_CHARGE_STATUS_PAID = 'paid'
SERVICE_CHARGE_STATUS_UNPAID = 'unpaid'

SERVICE_CHARGE_STATUSES = (
    (SERVICE_CHARGE_STATUS_PAID, _('Paid')),
    (SERVICE_CHARGE_STATUS_UNPAID, _('Unpaid')),
)

# ==========================================
# FINANCE PERIODS
# ==========================================

FINANCE_PERIOD_STATUS_OPEN = 'OPEN'
FINANCE_PERIOD_STATUS_CLOSED = 'CLOSED'

FINANCE_PERIOD_STATUSES = (
    (FINANCE_PERIOD_STATUS_OPEN, _('Open')),
    (FINANCE_PERIOD_STATUS_CLOSED, _('Closed')),
)

# ==========================================
# REPORT FILTERS
# ==========================================

DATE_RANGE_ALL = 'all'
DATE_RANGE_CUSTOM = 'custom'
DATE_RANGE_TODAY = 'today'

# Quick range key -> number of days, today included
DATE_RANGE_DAYS = {
    'today': 1,
    '7': 7,
    '7d': 7,
    '15': 15,
    '15d': 15,
    '30': 30,
    '30d': 30,
}

SETTLEMENT_FILTER_ALL = 'all'
SETTLEMENT_FILTER_PAID = 'paid'
SETTLEMENT_FILTER_UNPAID = 'unpaid'

SORT_ORDER_ASC = 'asc'
SORT_ORDER_DESC = 'desc'

EXPORT_FORMAT_CSV = 'csv'
EXPORT_FORMAT_XLSX = 'xlsx'
EXPORT_FORMAT_PDF = 'pdf'

EXPORT_FORMATS = (
    (EXPORT_FORMAT_CSV, _('CSV')),
    (EXPORT_FORMAT_XLSX, _('Excel')),
    (EXPORT_FORMAT_PDF, _('PDF')),
)
