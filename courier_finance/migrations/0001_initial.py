# Initial schema of the courier finance app

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import djmoney.models.fields
import uuid


CURRENCY_CHOICES = [('PKR', 'Pakistani Rupee')]

COMMISSION_TYPE_CHOICES = [('FLAT', 'Flat'), ('PERCENTAGE', 'Percentage')]


def currency_field():
    return djmoney.models.fields.CurrencyField(
        choices=CURRENCY_CHOICES, default='PKR', editable=False, max_length=3
    )


def base_fields():
    return [
        ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False, verbose_name='ID')),
        ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, verbose_name='Created at')),
        ('updated_at', models.DateTimeField(auto_now=True, db_index=True, verbose_name='Updated at')),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        # ==========================================
        # ORDER
        # ==========================================
        migrations.CreateModel(
            name='Order',
            fields=base_fields() + [
                ('booking_id', models.CharField(max_length=50, unique=True, verbose_name='Booking ID')),
                ('tracking_id', models.CharField(max_length=50, unique=True, verbose_name='Tracking ID')),
                ('consignee_name', models.CharField(blank=True, default='', max_length=255, verbose_name='Consignee name')),
                ('consignee_phone', models.CharField(blank=True, default='', max_length=30, verbose_name='Consignee phone')),
                ('destination_city', models.CharField(blank=True, default='', max_length=100, verbose_name='Destination city')),
                ('status', models.CharField(
                    choices=[
                        ('CREATED', 'Created'),
                        ('ASSIGNED', 'Assigned'),
                        ('AT_WAREHOUSE', 'At warehouse'),
                        ('OUT_FOR_DELIVERY', 'Out for delivery'),
                        ('DELIVERED', 'Delivered'),
                        ('RETURNED', 'Returned'),
                        ('FAILED', 'Failed'),
                        ('FIRST_ATTEMPT', 'First attempt'),
                        ('SECOND_ATTEMPT', 'Second attempt'),
                        ('THIRD_ATTEMPT', 'Third attempt')
                    ],
                    db_index=True,
                    default='CREATED',
                    max_length=20,
                    verbose_name='Status'
                )),
                ('payment_type', models.CharField(
                    choices=[('COD', 'Cash on delivery'), ('ADVANCE', 'Advance')],
                    default='COD',
                    max_length=10,
                    verbose_name='Payment type'
                )),
                ('cod_amount_currency', currency_field()),
                ('cod_amount', djmoney.models.fields.MoneyField(decimal_places=2, default=0, default_currency='PKR', help_text='Cash on delivery amount quoted at booking', max_digits=19, verbose_name='COD amount')),
                ('amount_collected_currency', currency_field()),
                ('amount_collected', djmoney.models.fields.MoneyField(blank=True, decimal_places=2, default_currency='PKR', help_text='Cash actually collected by the rider, when it differs from the quote', max_digits=19, null=True, verbose_name='Amount collected')),
                ('weight_kg', models.DecimalField(decimal_places=3, default=0, max_digits=8, verbose_name='Weight (kg)')),
                ('service_charges_currency', currency_field()),
                ('service_charges', djmoney.models.fields.MoneyField(decimal_places=2, default=0, default_currency='PKR', max_digits=19, verbose_name='Service charges')),
                ('service_charges_snapshot', models.JSONField(blank=True, help_text='Weight bracket used when the service charge was assigned', null=True, verbose_name='Service charges snapshot')),
                ('rider_earning_currency', currency_field()),
                ('rider_earning', djmoney.models.fields.MoneyField(blank=True, decimal_places=2, default_currency='PKR', max_digits=19, null=True, verbose_name='Rider earning')),
                ('rider_settlement_status', models.CharField(
                    blank=True,
                    choices=[('UNPAID', 'Unpaid'), ('PAID', 'Paid')],
                    db_index=True,
                    max_length=10,
                    null=True,
                    verbose_name='Rider settlement status'
                )),
                ('rider_settlement_at', models.DateTimeField(blank=True, null=True, verbose_name='Rider settled at')),
                ('delivered_at', models.DateTimeField(blank=True, db_index=True, null=True, verbose_name='Delivered at')),
                ('is_deleted', models.BooleanField(db_index=True, default=False, verbose_name='Deleted')),
                ('shipper', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='shipped_orders',
                    to=settings.AUTH_USER_MODEL,
                    verbose_name='Shipper'
                )),
                ('assigned_rider', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='assigned_orders',
                    to=settings.AUTH_USER_MODEL,
                    verbose_name='Assigned rider'
                )),
                ('rider_settlement_by', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='+',
                    to=settings.AUTH_USER_MODEL,
                    verbose_name='Rider settled by'
                )),
            ],
            options={
                'verbose_name': 'Order',
                'verbose_name_plural': 'Orders',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['assigned_rider', 'status'], name='order_rider_status_idx'),
                    models.Index(fields=['shipper', 'status'], name='order_shipper_status_idx'),
                ],
            },
        ),

        # ==========================================
        # COMMISSION CONFIGURATION
        # ==========================================
        migrations.CreateModel(
            name='CommissionConfig',
            fields=base_fields() + [
                ('type', models.CharField(choices=COMMISSION_TYPE_CHOICES, default='PERCENTAGE', max_length=20, verbose_name='Commission type')),
                ('value', models.DecimalField(decimal_places=2, default=0, help_text='Percent for percentage commissions, amount for flat ones', max_digits=12, verbose_name='Commission value')),
                ('return_charge_currency', currency_field()),
                ('return_charge', djmoney.models.fields.MoneyField(blank=True, decimal_places=2, default_currency='PKR', help_text='Flat service charge replacing the bracket charge on returned orders', max_digits=19, null=True, verbose_name='Return charge')),
                ('shipper', models.OneToOneField(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='commission_config',
                    to=settings.AUTH_USER_MODEL,
                    verbose_name='Shipper'
                )),
            ],
            options={
                'verbose_name': 'Commission configuration',
                'verbose_name_plural': 'Commission configurations',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='WeightBracket',
            fields=base_fields() + [
                ('min_kg', models.DecimalField(decimal_places=3, default=0, help_text='Inclusive', max_digits=8, verbose_name='Minimum weight (kg)')),
                ('max_kg', models.DecimalField(blank=True, decimal_places=3, help_text='Exclusive; leave empty for no upper limit', max_digits=8, null=True, verbose_name='Maximum weight (kg)')),
                ('charge_currency', currency_field()),
                ('charge', djmoney.models.fields.MoneyField(decimal_places=2, default=0, default_currency='PKR', max_digits=19, verbose_name='Charge')),
                ('config', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='weight_brackets',
                    to='courier_finance.commissionconfig',
                    verbose_name='Configuration'
                )),
            ],
            options={
                'verbose_name': 'Weight bracket',
                'verbose_name_plural': 'Weight brackets',
                'ordering': ['min_kg'],
            },
        ),
        migrations.CreateModel(
            name='RiderCommissionConfig',
            fields=base_fields() + [
                ('type', models.CharField(blank=True, choices=COMMISSION_TYPE_CHOICES, max_length=20, null=True, verbose_name='Base commission type')),
                ('value', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True, verbose_name='Base commission value')),
                ('rider', models.OneToOneField(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='rider_commission_config',
                    to=settings.AUTH_USER_MODEL,
                    verbose_name='Rider'
                )),
            ],
            options={
                'verbose_name': 'Rider commission configuration',
                'verbose_name_plural': 'Rider commission configurations',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='RiderCommissionRule',
            fields=base_fields() + [
                ('status', models.CharField(
                    choices=[
                        ('DELIVERED', 'Delivered'),
                        ('RETURNED', 'Returned'),
                        ('FAILED', 'Failed'),
                        ('OUT_FOR_DELIVERY', 'Out for delivery')
                    ],
                    max_length=20,
                    verbose_name='Order status'
                )),
                ('type', models.CharField(blank=True, choices=COMMISSION_TYPE_CHOICES, help_text='Falls back to the configuration type, then flat', max_length=20, null=True, verbose_name='Commission type')),
                ('value', models.DecimalField(decimal_places=2, default=0, max_digits=12, verbose_name='Commission value')),
                ('config', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='rules',
                    to='courier_finance.ridercommissionconfig',
                    verbose_name='Configuration'
                )),
            ],
            options={
                'verbose_name': 'Rider commission rule',
                'verbose_name_plural': 'Rider commission rules',
                'ordering': ['status'],
                'constraints': [
                    models.UniqueConstraint(fields=('config', 'status'), name='unique_rider_rule_per_status'),
                ],
            },
        ),

        # ==========================================
        # FINANCE PERIOD
        # ==========================================
        migrations.CreateModel(
            name='FinancePeriod',
            fields=base_fields() + [
                ('period_start', models.DateTimeField(db_index=True, verbose_name='Period start')),
                ('period_end', models.DateTimeField(blank=True, help_text='Empty while the period is open', null=True, verbose_name='Period end')),
                ('status', models.CharField(choices=[('OPEN', 'Open'), ('CLOSED', 'Closed')], db_index=True, default='OPEN', max_length=10, verbose_name='Status')),
                ('closed_at', models.DateTimeField(blank=True, null=True, verbose_name='Closed at')),
                ('closed_by', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='+',
                    to=settings.AUTH_USER_MODEL,
                    verbose_name='Closed by'
                )),
            ],
            options={
                'verbose_name': 'Finance period',
                'verbose_name_plural': 'Finance periods',
                'ordering': ['-period_start'],
                'constraints': [
                    models.UniqueConstraint(
                        condition=models.Q(('status', 'OPEN')),
                        fields=('status',),
                        name='single_open_finance_period'
                    ),
                ],
            },
        ),

        # ==========================================
        # FINANCIAL TRANSACTION
        # ==========================================
        migrations.CreateModel(
            name='FinancialTransaction',
            fields=base_fields() + [
                ('total_cod_collected_currency', currency_field()),
                ('total_cod_collected', djmoney.models.fields.MoneyField(decimal_places=2, default=0, default_currency='PKR', max_digits=19, verbose_name='Total COD collected')),
                ('shipper_share_currency', currency_field()),
                ('shipper_share', djmoney.models.fields.MoneyField(decimal_places=2, default=0, default_currency='PKR', max_digits=19, verbose_name='Shipper share')),
                ('company_commission_currency', currency_field()),
                ('company_commission', djmoney.models.fields.MoneyField(decimal_places=2, default=0, default_currency='PKR', max_digits=19, verbose_name='Company commission')),
                ('rider_commission_currency', currency_field()),
                ('rider_commission', djmoney.models.fields.MoneyField(decimal_places=2, default=0, default_currency='PKR', max_digits=19, verbose_name='Rider commission')),
                ('settlement_status', models.CharField(
                    choices=[
                        ('UNPAID', 'Unpaid'),
                        ('PAID', 'Paid'),
                        ('PENDING', 'Pending (legacy)'),
                        ('SETTLED', 'Settled (legacy)')
                    ],
                    db_index=True,
                    default='UNPAID',
                    max_length=10,
                    verbose_name='Settlement status'
                )),
                ('paid_at', models.DateTimeField(blank=True, null=True, verbose_name='Paid at')),
                ('settlement_batch_id', models.CharField(blank=True, db_index=True, help_text='Shared by transactions settled in the same bulk operation', max_length=64, null=True, verbose_name='Settlement batch')),
                ('order', models.OneToOneField(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='financial_transaction',
                    to='courier_finance.order',
                    verbose_name='Order'
                )),
                ('shipper', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='shipper_transactions',
                    to=settings.AUTH_USER_MODEL,
                    verbose_name='Shipper'
                )),
                ('rider', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='rider_transactions',
                    to=settings.AUTH_USER_MODEL,
                    verbose_name='Rider'
                )),
                ('paid_by', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='+',
                    to=settings.AUTH_USER_MODEL,
                    verbose_name='Paid by'
                )),
            ],
            options={
                'verbose_name': 'Financial transaction',
                'verbose_name_plural': 'Financial transactions',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['rider', 'settlement_status'], name='fintx_rider_status_idx'),
                    models.Index(fields=['shipper', 'created_at'], name='fintx_shipper_created_idx'),
                ],
            },
        ),

        # ==========================================
        # RIDER BALANCE
        # ==========================================
        migrations.CreateModel(
            name='RiderBalance',
            fields=base_fields() + [
                ('cod_collected_currency', currency_field()),
                ('cod_collected', djmoney.models.fields.MoneyField(decimal_places=2, default=0, default_currency='PKR', max_digits=19, verbose_name='COD collected')),
                ('service_charges_currency', currency_field()),
                ('service_charges', djmoney.models.fields.MoneyField(decimal_places=2, default=0, default_currency='PKR', max_digits=19, verbose_name='Service charges')),
                ('service_charge_status', models.CharField(choices=[('paid', 'Paid'), ('unpaid', 'Unpaid')], default='unpaid', max_length=10, verbose_name='Service charge status')),
                ('rider', models.OneToOneField(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='rider_balance',
                    to=settings.AUTH_USER_MODEL,
                    verbose_name='Rider'
                )),
            ],
            options={
                'verbose_name': 'Rider balance',
                'verbose_name_plural': 'Rider balances',
                'ordering': ['-updated_at'],
            },
        ),
    ]
