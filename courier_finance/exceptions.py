from django.utils.translation import gettext_lazy as _


class FinanceError(Exception):
    """Base exception for all courier finance errors"""
    pass


class ConfigurationMissing(FinanceError):
    """Exception raised when a shipper or rider has no commission configuration"""
    def __init__(self, owner=None, kind=None):
        message = _("Commission configuration missing")
        if kind:
            message = _("{kind} commission configuration missing").format(kind=kind)
        if owner is not None:
            message = _("{message} for {owner}").format(message=message, owner=owner)
        super().__init__(message)
        self.owner = owner
        self.kind = kind


class NoMatchingBracket(FinanceError):
    """Exception raised when a weight falls outside every configured bracket"""
    def __init__(self, weight_kg=None, shipper=None):
        message = _("No weight bracket matched")
        if weight_kg is not None:
            message = _("No weight bracket matched for {weight}kg").format(weight=weight_kg)
        if shipper is not None:
            message = _("{message} (Shipper: {shipper})").format(message=message, shipper=shipper)
        super().__init__(message)
        self.weight_kg = weight_kg


class InvalidWeightBrackets(FinanceError):
    """Exception raised when a set of weight brackets is inconsistent"""
    def __init__(self, message=None):
        msg = _("Invalid weight brackets")
        if message:
            msg = _("Invalid weight brackets: {message}").format(message=message)
        super().__init__(msg)


class InvalidRange(FinanceError):
    """Exception raised when a date filter bound cannot be parsed"""
    def __init__(self, value=None):
        message = _("Invalid date range")
        if value is not None:
            message = _("Invalid date value: {value}").format(value=value)
        super().__init__(message)
        self.value = value


class PeriodCloseConflict(FinanceError):
    """Exception raised when a finance period was already closed by a concurrent request"""
    def __init__(self, period_id=None):
        message = _("Finance period already closed")
        if period_id:
            message = _("Finance period {period} already closed").format(period=period_id)
        super().__init__(message)
        self.period_id = period_id


class TransactionNotFound(FinanceError):
    """Exception raised when an order has no financial transaction"""
    def __init__(self, order_id=None):
        message = _("Transaction not found")
        if order_id:
            message = _("Transaction not found for order {order}").format(order=order_id)
        super().__init__(message)


class InvalidSettlementStatus(FinanceError):
    """Exception raised when a settlement status cannot be normalised"""
    def __init__(self, status=None):
        message = _("Invalid settlement status")
        if status:
            message = _("Invalid settlement status: {status}").format(status=status)
        super().__init__(message)
