"""
Courier Finance - Commission Rule Resolver Tests

Test Coverage:
1. WeightBracketValidationTestCase - validate_weight_brackets
2. ServiceChargeResolutionTestCase - find_weight_bracket, resolve_service_charge, assign_service_charges
3. CommissionResolutionTestCase - company and rider commission rules
"""
from decimal import Decimal

from django.core.exceptions import ValidationError

from courier_finance.test import FinanceTestCase
from courier_finance.constants import (
    COMMISSION_TYPE_FLAT,
    COMMISSION_TYPE_PERCENTAGE,
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_RETURNED,
    ORDER_STATUS_FAILED,
)
from courier_finance.exceptions import (
    ConfigurationMissing,
    InvalidWeightBrackets,
    NoMatchingBracket,
)
from courier_finance.models import CommissionConfig
from courier_finance.services.commission_service import (
    validate_weight_brackets,
    find_weight_bracket,
    resolve_service_charge,
    resolve_service_charge_or_zero,
    assign_service_charges,
    weight_bracket_label,
    resolve_commission_amount,
    resolve_rider_commission,
    resolve_company_commission,
)


def bracket(min_kg, max_kg, charge):
    return {'min_kg': min_kg, 'max_kg': max_kg, 'charge': charge}


class WeightBracketValidationTestCase(FinanceTestCase):
    """Test case for bracket set validation"""

    def test_valid_brackets_with_gap(self):
        validate_weight_brackets([
            bracket('0', '1', '100'),
            bracket('2', '5', '150'),
            bracket('5', None, '250'),
        ])

    def test_empty_brackets_rejected(self):
        with self.assertRaisesMessage(InvalidWeightBrackets, 'At least one weight bracket is required'):
            validate_weight_brackets([])

    def test_negative_minimum_rejected(self):
        with self.assertRaisesMessage(InvalidWeightBrackets, 'Invalid minimum weight for bracket 1'):
            validate_weight_brackets([bracket('-1', '1', '100')])

    def test_negative_charge_rejected(self):
        with self.assertRaisesMessage(InvalidWeightBrackets, 'Invalid charge for bracket 2'):
            validate_weight_brackets([bracket('0', '1', '100'), bracket('1', '2', '-5')])

    def test_maximum_must_exceed_minimum(self):
        with self.assertRaisesMessage(
            InvalidWeightBrackets, 'Maximum weight must be greater than minimum for bracket 1'
        ):
            validate_weight_brackets([bracket('2', '2', '100')])

    def test_overlap_rejected(self):
        with self.assertRaisesMessage(InvalidWeightBrackets, 'Overlap between 0-2kg and 1-3kg'):
            validate_weight_brackets([bracket('0', '2', '100'), bracket('1', '3', '150')])

    def test_only_last_bracket_open_ended(self):
        with self.assertRaisesMessage(
            InvalidWeightBrackets, 'Only the last bracket can have no maximum weight'
        ):
            validate_weight_brackets([bracket('0', None, '100'), bracket('5', '10', '150')])

    def test_brackets_checked_in_min_order(self):
        # Unsorted input is valid once ordered by min_kg
        validate_weight_brackets([bracket('5', None, '250'), bracket('0', '5', '100')])

    def test_config_clean_reports_invalid_brackets(self):
        config = self.create_shipper_config(self.shipper, brackets=[(0, 2, 100), (1, 3, 150)])
        with self.assertRaises(ValidationError):
            config.clean()


class ServiceChargeResolutionTestCase(FinanceTestCase):
    """Test case for service charge lookup"""

    def setUp(self):
        super().setUp()
        self.config = self.create_shipper_config(self.shipper)

    def test_lower_bound_inclusive_upper_exclusive(self):
        self.assertEqual(resolve_service_charge(self.config, Decimal('0')), Decimal('100'))
        self.assertEqual(resolve_service_charge(self.config, Decimal('0.999')), Decimal('100'))
        self.assertEqual(resolve_service_charge(self.config, Decimal('1')), Decimal('150'))
        self.assertEqual(resolve_service_charge(self.config, Decimal('5')), Decimal('250'))
        self.assertEqual(resolve_service_charge(self.config, Decimal('80')), Decimal('250'))

    def test_weight_in_gap_raises(self):
        brackets = [bracket('0', '1', '100'), bracket('2', '5', '150')]
        self.assertIsNone(find_weight_bracket(brackets, Decimal('1.5')))
        with self.assertRaises(NoMatchingBracket):
            resolve_service_charge(brackets, Decimal('1.5'))

    def test_soft_resolution_without_config(self):
        other_shipper = self.create_user('other-shipper')
        self.assertEqual(resolve_service_charge_or_zero(other_shipper, Decimal('2')), Decimal('0'))

    def test_soft_resolution_with_config(self):
        self.assertEqual(resolve_service_charge_or_zero(self.shipper, Decimal('2')), Decimal('150'))

    def test_assign_service_charges_stores_snapshot(self):
        order = self.create_order(self.shipper, self.rider, weight_kg=Decimal('2.5'))

        charge = assign_service_charges(order)
        order.refresh_from_db()

        self.assertEqual(charge, Decimal('150'))
        self.assertEqual(order.service_charges.amount, Decimal('150.00'))
        self.assertEqual(Decimal(order.service_charges_snapshot['min_kg']), Decimal('1'))
        self.assertEqual(Decimal(order.service_charges_snapshot['max_kg']), Decimal('5'))
        self.assertEqual(Decimal(order.service_charges_snapshot['rate']), Decimal('150'))
        self.assertIn('calculated_at', order.service_charges_snapshot)
        self.assertEqual(weight_bracket_label(order.service_charges_snapshot), '1–5kg')

    def test_assign_service_charges_fails_closed(self):
        other_shipper = self.create_user('other-shipper')
        order = self.create_order(other_shipper, self.rider, weight_kg=Decimal('1'))
        with self.assertRaises(ConfigurationMissing):
            assign_service_charges(order)

    def test_assign_service_charges_without_bracket(self):
        CommissionConfig.objects.filter(pk=self.config.pk).delete()
        self.create_shipper_config(self.shipper, brackets=[(0, 1, 100)])
        order = self.create_order(self.shipper, self.rider, weight_kg=Decimal('3'))
        with self.assertRaises(NoMatchingBracket):
            assign_service_charges(order)

    def test_weight_bracket_labels(self):
        self.assertEqual(weight_bracket_label({'min_kg': '5', 'max_kg': None}), '5kg+')
        self.assertEqual(weight_bracket_label({'min_kg': '0', 'max_kg': '0.5'}), '0–0.5kg')
        self.assertIsNone(weight_bracket_label(None))


class CommissionResolutionTestCase(FinanceTestCase):
    """Test case for FLAT/PERCENTAGE commission rules"""

    def test_percentage_commission(self):
        amount = resolve_commission_amount(COMMISSION_TYPE_PERCENTAGE, Decimal('10'), Decimal('1000'))
        self.assertEqual(amount, Decimal('100'))

    def test_flat_commission(self):
        amount = resolve_commission_amount(COMMISSION_TYPE_FLAT, Decimal('75'), Decimal('1000'))
        self.assertEqual(amount, Decimal('75'))

    def test_negative_commission_floored(self):
        amount = resolve_commission_amount(COMMISSION_TYPE_FLAT, Decimal('-5'), Decimal('1000'))
        self.assertEqual(amount, Decimal('0'))

    def test_company_commission_clamped_to_cod(self):
        config = self.create_shipper_config(self.shipper, COMMISSION_TYPE_FLAT, 1500)
        self.assertEqual(resolve_company_commission(config, Decimal('1000')), Decimal('1000'))
        self.assertEqual(resolve_company_commission(config, Decimal('0')), Decimal('0'))
        self.assertEqual(resolve_company_commission(None, Decimal('1000')), Decimal('0'))

    def test_status_rule_wins_over_base(self):
        config = self.create_rider_config(
            self.rider,
            commission_type=COMMISSION_TYPE_PERCENTAGE,
            value=5,
            rules=[(ORDER_STATUS_RETURNED, COMMISSION_TYPE_FLAT, 40)],
        )
        self.assertEqual(resolve_rider_commission(config, ORDER_STATUS_RETURNED, Decimal('1000')), Decimal('40'))
        self.assertEqual(resolve_rider_commission(config, ORDER_STATUS_DELIVERED, Decimal('1000')), Decimal('50'))

    def test_rule_type_falls_back_to_config_type(self):
        config = self.create_rider_config(
            self.rider,
            commission_type=COMMISSION_TYPE_PERCENTAGE,
            rules=[(ORDER_STATUS_DELIVERED, None, 10)],
        )
        self.assertEqual(resolve_rider_commission(config, ORDER_STATUS_DELIVERED, Decimal('500')), Decimal('50'))

    def test_rule_type_defaults_to_flat(self):
        config = self.create_rider_config(self.rider, rules=[(ORDER_STATUS_FAILED, None, 30)])
        self.assertEqual(resolve_rider_commission(config, ORDER_STATUS_FAILED, Decimal('500')), Decimal('30'))

    def test_no_rule_and_no_base_is_zero(self):
        config = self.create_rider_config(self.rider)
        self.assertEqual(resolve_rider_commission(config, ORDER_STATUS_DELIVERED, Decimal('500')), Decimal('0'))
        self.assertEqual(resolve_rider_commission(None, ORDER_STATUS_DELIVERED, Decimal('500')), Decimal('0'))
