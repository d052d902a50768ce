"""
Courier Finance - Transaction Writer Tests

Test Coverage:
1. TransactionRecordingTestCase - record_order_transaction via the order save hook
2. TransactionHookTestCase - trigger conditions, failure isolation, Celery dispatch
3. RiderSettlementTestCase - set_rider_settlement_by_order, bulk_set_rider_settlement
4. RiderBalanceTestCase - rider COD balance and service charge status
"""
import uuid
from decimal import Decimal
from unittest.mock import patch

from courier_finance.test import FinanceTestCase, money
from courier_finance.constants import (
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_RETURNED,
    ORDER_STATUS_FAILED,
    ORDER_STATUS_OUT_FOR_DELIVERY,
    PAYMENT_TYPE_ADVANCE,
    COMMISSION_TYPE_FLAT,
    COMMISSION_TYPE_PERCENTAGE,
    SETTLEMENT_STATUS_PAID,
    SETTLEMENT_STATUS_UNPAID,
    SETTLEMENT_STATUS_SETTLED,
    SERVICE_CHARGE_STATUS_PAID,
    SERVICE_CHARGE_STATUS_UNPAID,
)
from courier_finance.exceptions import InvalidSettlementStatus, TransactionNotFound
from courier_finance.models import FinancialTransaction, Order, RiderBalance
from courier_finance.services.transaction_service import (
    FinancialTransactionService,
    normalize_settlement_status,
)
from courier_finance.settings import FINANCE_SETTINGS


class TransactionRecordingTestCase(FinanceTestCase):
    """Test case for the per-order money split"""

    def setUp(self):
        super().setUp()
        self.create_shipper_config(self.shipper, COMMISSION_TYPE_PERCENTAGE, 10, return_charge=150)
        self.create_rider_config(
            self.rider,
            rules=[
                (ORDER_STATUS_DELIVERED, COMMISSION_TYPE_FLAT, 50),
                (ORDER_STATUS_RETURNED, COMMISSION_TYPE_FLAT, 20),
            ],
        )

    def test_delivered_cod_split(self):
        order = self.create_order(self.shipper, self.rider)
        self.move_order(order, ORDER_STATUS_DELIVERED)

        tx = FinancialTransaction.objects.get(order=order)
        self.assertEqual(tx.total_cod_collected.amount, Decimal('1000.00'))
        self.assertEqual(tx.company_commission.amount, Decimal('100.00'))
        self.assertEqual(tx.shipper_share.amount, Decimal('900.00'))
        self.assertEqual(tx.rider_commission.amount, Decimal('50.00'))
        self.assertEqual(tx.settlement_status, SETTLEMENT_STATUS_UNPAID)
        self.assertEqual(tx.shipper_id, self.shipper.id)
        self.assertEqual(tx.rider_id, self.rider.id)

    def test_amount_collected_overrides_quote(self):
        order = self.create_order(self.shipper, self.rider)
        self.move_order(order, ORDER_STATUS_DELIVERED, amount_collected=money(800))

        tx = FinancialTransaction.objects.get(order=order)
        self.assertEqual(tx.total_cod_collected.amount, Decimal('800.00'))
        self.assertEqual(tx.company_commission.amount, Decimal('80.00'))

    def test_rider_commission_clamped_to_collected(self):
        self.rider.rider_commission_config.rules.filter(status=ORDER_STATUS_DELIVERED).update(
            value=Decimal('1200')
        )
        order = self.create_order(self.shipper, self.rider)
        self.move_order(order, ORDER_STATUS_DELIVERED, amount_collected=money(900))

        tx = FinancialTransaction.objects.get(order=order)
        self.assertEqual(tx.rider_commission.amount, Decimal('900.00'))

    def test_advance_paid_delivery_collects_nothing(self):
        order = self.create_order(self.shipper, self.rider, payment_type=PAYMENT_TYPE_ADVANCE)
        self.move_order(order, ORDER_STATUS_DELIVERED)

        tx = FinancialTransaction.objects.get(order=order)
        self.assertEqual(tx.total_cod_collected.amount, Decimal('0.00'))
        self.assertEqual(tx.company_commission.amount, Decimal('0.00'))
        self.assertEqual(tx.shipper_share.amount, Decimal('0.00'))

    def test_returned_order_gets_return_charge(self):
        order = self.create_order(self.shipper, self.rider, service_charges=money(250))
        order = self.move_order(order, ORDER_STATUS_RETURNED)

        self.assertEqual(order.service_charges.amount, Decimal('150.00'))
        tx = FinancialTransaction.objects.get(order=order)
        self.assertEqual(tx.total_cod_collected.amount, Decimal('0.00'))
        self.assertEqual(tx.rider_commission.amount, Decimal('20.00'))

    def test_return_charge_keeps_updated_at(self):
        order = self.create_order(self.shipper, self.rider)
        order = self.move_order(order, ORDER_STATUS_RETURNED)
        updated_at = order.updated_at

        FinancialTransactionService().record_order_transaction(order)
        order.refresh_from_db()
        self.assertEqual(order.updated_at, updated_at)

    def test_non_terminal_order_is_ignored(self):
        order = self.create_order(self.shipper, self.rider)
        self.assertIsNone(FinancialTransactionService().record_order_transaction(order))
        self.assertFalse(FinancialTransaction.objects.filter(order=order).exists())

    def test_missing_configs_record_zero_commissions(self):
        other_shipper = self.create_user('other-shipper')
        other_rider = self.create_user('other-rider')
        order = self.create_order(other_shipper, other_rider)
        self.move_order(order, ORDER_STATUS_DELIVERED)

        tx = FinancialTransaction.objects.get(order=order)
        self.assertEqual(tx.company_commission.amount, Decimal('0.00'))
        self.assertEqual(tx.rider_commission.amount, Decimal('0.00'))
        self.assertEqual(tx.shipper_share.amount, Decimal('1000.00'))

    def test_rerecording_is_idempotent(self):
        order = self.create_order(self.shipper, self.rider)
        order = self.move_order(order, ORDER_STATUS_DELIVERED)
        first = FinancialTransaction.objects.get(order=order)

        FinancialTransactionService().record_order_transaction(order, ORDER_STATUS_DELIVERED)
        second = FinancialTransaction.objects.get(order=order)

        self.assertEqual(FinancialTransaction.objects.filter(order=order).count(), 1)
        self.assertEqual(first.pk, second.pk)
        for field in ('total_cod_collected', 'shipper_share', 'company_commission', 'rider_commission'):
            self.assertEqual(getattr(first, field), getattr(second, field))

    def test_terminal_to_terminal_keeps_settlement(self):
        order = self.create_order(self.shipper, self.rider)
        order = self.move_order(order, ORDER_STATUS_DELIVERED)
        FinancialTransactionService().set_rider_settlement_by_order(order.pk, SETTLEMENT_STATUS_PAID, user=self.admin_user)

        order.refresh_from_db()
        self.move_order(order, ORDER_STATUS_RETURNED)

        tx = FinancialTransaction.objects.get(order=order)
        self.assertEqual(tx.settlement_status, SETTLEMENT_STATUS_PAID)
        self.assertIsNotNone(tx.paid_at)
        self.assertEqual(tx.total_cod_collected.amount, Decimal('0.00'))
        self.assertEqual(tx.rider_commission.amount, Decimal('20.00'))


class TransactionHookTestCase(FinanceTestCase):
    """Test case for the order save hook"""

    def setUp(self):
        super().setUp()
        self.create_shipper_config(self.shipper, COMMISSION_TYPE_PERCENTAGE, 10)

    def test_same_status_save_does_not_rerecord(self):
        order = self.create_order(self.shipper, self.rider)
        order = self.move_order(order, ORDER_STATUS_DELIVERED)
        FinancialTransaction.objects.filter(order=order).update(company_commission=money(1))

        order.consignee_name = 'Updated'
        order.save()

        tx = FinancialTransaction.objects.get(order=order)
        self.assertEqual(tx.company_commission.amount, Decimal('1.00'))

    def test_order_created_terminal_is_recorded(self):
        order = self.create_order(self.shipper, self.rider, status=ORDER_STATUS_FAILED)
        self.assertTrue(FinancialTransaction.objects.filter(order=order).exists())

    def test_disabled_auto_record(self):
        with patch.dict(FINANCE_SETTINGS, {'AUTO_RECORD_TRANSACTIONS': False}):
            order = self.create_order(self.shipper, self.rider)
            self.move_order(order, ORDER_STATUS_DELIVERED)
        self.assertFalse(FinancialTransaction.objects.filter(order=order).exists())

    def test_writer_failure_does_not_break_order_save(self):
        order = self.create_order(self.shipper, self.rider)
        with patch.object(
            FinancialTransactionService, 'record_order_transaction', side_effect=RuntimeError('boom')
        ):
            order = self.move_order(order, ORDER_STATUS_DELIVERED)

        self.assertEqual(Order.objects.get(pk=order.pk).status, ORDER_STATUS_DELIVERED)
        self.assertFalse(FinancialTransaction.objects.filter(order=order).exists())

    def test_celery_dispatch_after_commit(self):
        order = self.create_order(self.shipper, self.rider)
        with patch.dict(FINANCE_SETTINGS, {'USE_CELERY': True}), \
                patch('courier_finance.tasks.record_order_transaction_task.delay') as delay:
            with self.captureOnCommitCallbacks(execute=True):
                self.move_order(order, ORDER_STATUS_DELIVERED)

        delay.assert_called_once_with(str(order.pk), ORDER_STATUS_OUT_FOR_DELIVERY)
        self.assertFalse(FinancialTransaction.objects.filter(order=order).exists())

    def test_task_records_transaction(self):
        from courier_finance.tasks import record_order_transaction_task

        with patch.dict(FINANCE_SETTINGS, {'AUTO_RECORD_TRANSACTIONS': False}):
            order = self.create_order(self.shipper, self.rider)
            self.move_order(order, ORDER_STATUS_DELIVERED)

        tx_id = record_order_transaction_task(str(order.pk), ORDER_STATUS_OUT_FOR_DELIVERY)
        self.assertEqual(str(FinancialTransaction.objects.get(order=order).pk), tx_id)


class RiderSettlementTestCase(FinanceTestCase):
    """Test case for rider payout settlement"""

    def setUp(self):
        super().setUp()
        self.service = FinancialTransactionService()
        self.order = self.move_order(self.create_order(self.shipper, self.rider), ORDER_STATUS_DELIVERED)
        self.other_order = self.move_order(self.create_order(self.shipper, self.rider), ORDER_STATUS_DELIVERED)

    def test_normalize_settlement_status(self):
        self.assertEqual(normalize_settlement_status('paid'), SETTLEMENT_STATUS_PAID)
        self.assertEqual(normalize_settlement_status(' unpaid '), SETTLEMENT_STATUS_UNPAID)
        self.assertEqual(normalize_settlement_status('SETTLED'), SETTLEMENT_STATUS_SETTLED)
        self.assertEqual(normalize_settlement_status(None), SETTLEMENT_STATUS_PAID)
        self.assertEqual(normalize_settlement_status('whatever'), SETTLEMENT_STATUS_PAID)
        with self.assertRaises(InvalidSettlementStatus):
            normalize_settlement_status('SETTLED', strict=True)

    def test_mark_paid_stamps_transaction_and_order(self):
        tx = self.service.set_rider_settlement_by_order(self.order.pk, 'PAID', user=self.admin_user)

        self.assertEqual(tx.settlement_status, SETTLEMENT_STATUS_PAID)
        self.assertIsNotNone(tx.paid_at)
        self.assertEqual(tx.paid_by, self.admin_user)

        self.order.refresh_from_db()
        self.assertEqual(self.order.rider_settlement_status, SETTLEMENT_STATUS_PAID)
        self.assertIsNotNone(self.order.rider_settlement_at)
        self.assertEqual(self.order.rider_settlement_by_id, self.admin_user.id)

    def test_empty_status_means_paid(self):
        tx = self.service.set_rider_settlement_by_order(self.order.pk, None)
        self.assertEqual(tx.settlement_status, SETTLEMENT_STATUS_PAID)

    def test_mark_unpaid_clears_stamp(self):
        self.service.set_rider_settlement_by_order(self.order.pk, 'PAID', user=self.admin_user)
        tx = self.service.set_rider_settlement_by_order(self.order.pk, 'UNPAID', user=self.admin_user)

        self.assertEqual(tx.settlement_status, SETTLEMENT_STATUS_UNPAID)
        self.assertIsNone(tx.paid_at)
        self.assertIsNone(tx.paid_by)
        self.order.refresh_from_db()
        self.assertEqual(self.order.rider_settlement_status, SETTLEMENT_STATUS_UNPAID)
        self.assertIsNone(self.order.rider_settlement_at)

    def test_missing_transaction(self):
        with self.assertRaises(TransactionNotFound):
            self.service.set_rider_settlement_by_order(uuid.uuid4(), 'PAID')
        with self.assertRaises(TransactionNotFound):
            self.service.get_transaction_for_order(uuid.uuid4())

    def test_bulk_settlement_shares_batch(self):
        result = self.service.bulk_set_rider_settlement(
            [self.order.pk, self.other_order.pk, uuid.uuid4()], 'paid', user=self.admin_user
        )

        self.assertEqual(result['updated'], 2)
        batch = FinancialTransaction.objects.get_queryset().in_batch(result['batch_id'])
        self.assertEqual(batch.count(), 2)
        self.assertTrue(all(tx.settlement_status == SETTLEMENT_STATUS_PAID for tx in batch))
        self.assertEqual(
            Order.objects.filter(rider_settlement_status=SETTLEMENT_STATUS_PAID).count(), 2
        )

    def test_bulk_settlement_rejects_legacy_status(self):
        with self.assertRaises(InvalidSettlementStatus):
            self.service.bulk_set_rider_settlement([self.order.pk], 'SETTLED')


class RiderBalanceTestCase(FinanceTestCase):
    """Test case for the rider running balance"""

    def setUp(self):
        super().setUp()
        self.service = FinancialTransactionService()

    def test_delivery_accumulates_cod(self):
        self.move_order(
            self.create_order(self.shipper, self.rider, service_charges=money(150)), ORDER_STATUS_DELIVERED
        )
        self.move_order(
            self.create_order(self.shipper, self.rider, cod_amount=500, service_charges=money(100)),
            ORDER_STATUS_DELIVERED
        )

        balance = RiderBalance.objects.get(rider=self.rider)
        self.assertEqual(balance.cod_collected.amount, Decimal('1500.00'))
        self.assertEqual(balance.service_charges.amount, Decimal('250.00'))
        self.assertEqual(balance.service_charge_status, SERVICE_CHARGE_STATUS_UNPAID)

    def test_balance_tracking_disabled(self):
        with patch.dict(FINANCE_SETTINGS, {'TRACK_RIDER_BALANCE': False}):
            self.move_order(self.create_order(self.shipper, self.rider), ORDER_STATUS_DELIVERED)
        self.assertFalse(RiderBalance.objects.filter(rider=self.rider).exists())

    def test_marking_service_charges_paid_resets_total(self):
        self.move_order(
            self.create_order(self.shipper, self.rider, service_charges=money(150)), ORDER_STATUS_DELIVERED
        )
        balance = self.service.set_rider_service_charge_status(self.rider, 'PAID')

        self.assertEqual(balance.service_charge_status, SERVICE_CHARGE_STATUS_PAID)
        self.assertEqual(balance.service_charges.amount, Decimal('0.00'))
        self.assertEqual(balance.cod_collected.amount, Decimal('1000.00'))

    def test_paid_rider_accrues_cod_only(self):
        self.service.set_rider_service_charge_status(self.rider, 'paid')

        self.move_order(
            self.create_order(self.shipper, self.rider, service_charges=money(150)), ORDER_STATUS_DELIVERED
        )

        balance = RiderBalance.objects.get(rider=self.rider)
        self.assertEqual(balance.cod_collected.amount, Decimal('1000.00'))
        self.assertEqual(balance.service_charges.amount, Decimal('0.00'))
        self.assertEqual(balance.service_charge_status, SERVICE_CHARGE_STATUS_PAID)

    def test_unpaid_again_resumes_service_charges(self):
        self.service.set_rider_service_charge_status(self.rider, 'paid')
        self.service.set_rider_service_charge_status(self.rider, 'unpaid')

        self.move_order(
            self.create_order(self.shipper, self.rider, service_charges=money(150)), ORDER_STATUS_DELIVERED
        )

        balance = RiderBalance.objects.get(rider=self.rider)
        self.assertEqual(balance.service_charges.amount, Decimal('150.00'))
        self.assertEqual(balance.service_charge_status, SERVICE_CHARGE_STATUS_UNPAID)

    def test_invalid_service_charge_status(self):
        with self.assertRaises(ValueError):
            self.service.set_rider_service_charge_status(self.rider, 'half')
