from django.conf import settings

# Default settings for the courier finance app
FINANCE_SETTINGS = {
    # Primary Keys
    'USE_UUID': getattr(settings, 'COURIER_FINANCE_USE_UUID', True),

    # User model for shippers, riders and operators
    'USER_MODEL': getattr(settings, 'AUTH_USER_MODEL', 'auth.User'),

    # Async Processing
    'USE_CELERY': getattr(settings, 'COURIER_FINANCE_USE_CELERY', False),

    # Money
    'CURRENCY': getattr(settings, 'COURIER_FINANCE_CURRENCY', 'PKR'),

    # ==========================================
    # TRANSACTION WRITER
    # ==========================================

    # Record a financial transaction whenever an order reaches a terminal status
    'AUTO_RECORD_TRANSACTIONS': getattr(settings, 'COURIER_FINANCE_AUTO_RECORD_TRANSACTIONS', True),

    # Accumulate collected COD into the rider's running balance on delivery
    'TRACK_RIDER_BALANCE': getattr(settings, 'COURIER_FINANCE_TRACK_RIDER_BALANCE', True),

    # ==========================================
    # REPORTING
    # ==========================================

    'DEFAULT_PAGE_SIZE': getattr(settings, 'COURIER_FINANCE_DEFAULT_PAGE_SIZE', 20),
    'MAX_PAGE_SIZE': getattr(settings, 'COURIER_FINANCE_MAX_PAGE_SIZE', 100),

    # ==========================================
    # BACKFILL
    # ==========================================

    'BACKFILL_BATCH_SIZE': getattr(settings, 'COURIER_FINANCE_BACKFILL_BATCH_SIZE', 500),
    'BACKFILL_PROGRESS_EVERY': getattr(settings, 'COURIER_FINANCE_BACKFILL_PROGRESS_EVERY', 100),

    # Export Settings
    'EXPORT_PAGESIZE': getattr(settings, 'COURIER_FINANCE_EXPORT_PAGESIZE', 'A4'),
    'EXPORT_ORIENTATION': getattr(settings, 'COURIER_FINANCE_EXPORT_ORIENTATION', 'landscape'),
}


def get_finance_setting(name):
    """
    Helper function to get a specific finance setting
    """
    if name not in FINANCE_SETTINGS:
        raise ValueError(f"Unknown setting: {name}")
    return FINANCE_SETTINGS[name]
