from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class CourierFinanceConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'courier_finance'
    verbose_name = _("Courier finance")

    def ready(self):
        """Initialize the courier finance app"""
        # Import signals
        from courier_finance.signals import handlers  # noqa
