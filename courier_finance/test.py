from decimal import Decimal
from itertools import count

from django.test import TestCase
from django.contrib.auth import get_user_model
from djmoney.money import Money
from rest_framework.test import APIClient

from courier_finance.models import (
    Order, CommissionConfig, WeightBracket, RiderCommissionConfig, RiderCommissionRule
)
from courier_finance.settings import get_finance_setting
from courier_finance.constants import (
    ORDER_STATUS_OUT_FOR_DELIVERY,
    PAYMENT_TYPE_COD,
    COMMISSION_TYPE_PERCENTAGE,
)

User = get_user_model()
DEFAULT_CURRENCY = get_finance_setting('CURRENCY')

_booking_numbers = count(1)


def money(amount):
    return Money(Decimal(str(amount)), DEFAULT_CURRENCY)


class FinanceFixturesMixin:
    """Builders for the shippers, riders, configs and orders the finance tests need"""

    def create_user(self, username, **kwargs):
        return User.objects.create_user(
            username=username,
            email=f'{username}@example.com',
            password='password123',
            **kwargs
        )

    def create_shipper_config(self, shipper, commission_type=COMMISSION_TYPE_PERCENTAGE,
                              value=10, return_charge=None, brackets=None):
        config = CommissionConfig.objects.create(
            shipper=shipper,
            type=commission_type,
            value=Decimal(str(value)),
            return_charge=money(return_charge) if return_charge is not None else None,
        )
        if brackets is None:
            brackets = [(0, 1, 100), (1, 5, 150), (5, None, 250)]
        for min_kg, max_kg, charge in brackets:
            WeightBracket.objects.create(
                config=config,
                min_kg=Decimal(str(min_kg)),
                max_kg=Decimal(str(max_kg)) if max_kg is not None else None,
                charge=money(charge),
            )
        return config

    def create_rider_config(self, rider, commission_type=None, value=None, rules=None):
        config = RiderCommissionConfig.objects.create(
            rider=rider,
            type=commission_type,
            value=Decimal(str(value)) if value is not None else None,
        )
        for status, rule_type, rule_value in rules or []:
            RiderCommissionRule.objects.create(
                config=config,
                status=status,
                type=rule_type,
                value=Decimal(str(rule_value)),
            )
        return config

    def create_order(self, shipper, rider=None, status=ORDER_STATUS_OUT_FOR_DELIVERY,
                     cod_amount=1000, payment_type=PAYMENT_TYPE_COD, **kwargs):
        number = next(_booking_numbers)
        return Order.objects.create(
            booking_id=kwargs.pop('booking_id', f'BK{number:06d}'),
            tracking_id=kwargs.pop('tracking_id', f'TRK{number:06d}'),
            shipper=shipper,
            assigned_rider=rider,
            status=status,
            payment_type=payment_type,
            cod_amount=money(cod_amount),
            **kwargs
        )

    def move_order(self, order, status, **fields):
        """Save a status transition the way the order subsystem does"""
        order.status = status
        for name, value in fields.items():
            setattr(order, name, value)
        order.save()
        order.refresh_from_db()
        return order


class FinanceTestCase(FinanceFixturesMixin, TestCase):
    """Base test case for finance tests"""

    def setUp(self):
        """Setup test data for each test method"""
        self.shipper = self.create_user('shipper')
        self.rider = self.create_user('rider')
        self.admin_user = User.objects.create_superuser(
            username='admin',
            email='admin@example.com',
            password='adminpass123'
        )

        # Create API clients
        self.api_client = APIClient()
        self.rider_client = APIClient()
        self.rider_client.force_authenticate(user=self.rider)

        self.admin_client = APIClient()
        self.admin_client.force_authenticate(user=self.admin_user)
