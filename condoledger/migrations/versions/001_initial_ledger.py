"""Create ledger tables.

Revision ID: 001_initial_ledger
Revises: None
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_initial_ledger'
down_revision = None
branch_labels = None
depends_on = None

USAGE_CLASS = sa.Enum('RESIDENTIAL', 'COMMERCIAL', name='usageclass')


def _timestamps():
    return [
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


def _money(name, nullable=False):
    return sa.Column(name, sa.Numeric(precision=12, scale=2), nullable=nullable)


def upgrade() -> None:
    """Create ledger tables."""
    # Create tenant_settings table
    op.create_table(
        'tenant_settings',
        *_timestamps(),
        sa.Column('tenant_id', sa.String(64), nullable=False),
        sa.Column('electric_rate', sa.Numeric(precision=12, scale=4), nullable=False),
        _money('electric_min_charge'),
        _money('dues_rate_per_sqm'),
        _money('parking_rate_per_sqm', nullable=True),
        sa.Column('penalty_rate', sa.Numeric(precision=6, scale=2), nullable=False),
        _money('sp_assessment_rate'),
        sa.Column('sp_assessment_cycle', sa.String(32), nullable=True),
        sa.Column('reading_day', sa.Integer(), nullable=False),
        sa.Column('statement_day', sa.Integer(), nullable=False),
        sa.Column('due_day', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id'),
    )

    # Create water_tier_rates table
    op.create_table(
        'water_tier_rates',
        *_timestamps(),
        sa.Column('settings_id', sa.Integer(), nullable=False),
        sa.Column('usage_class', USAGE_CLASS, nullable=False),
        sa.Column('tier', sa.Integer(), nullable=False),
        _money('upper_bound', nullable=True),
        _money('base_amount'),
        _money('excess_rate'),
        _money('excess_from'),
        sa.ForeignKeyConstraint(['settings_id'], ['tenant_settings.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_water_tier_rates_settings_id', 'water_tier_rates', ['settings_id'])
    op.create_index(
        'idx_water_tier_unique', 'water_tier_rates', ['settings_id', 'usage_class', 'tier'], unique=True
    )

    # Create units table
    op.create_table(
        'units',
        *_timestamps(),
        sa.Column('tenant_id', sa.String(64), nullable=False),
        sa.Column('unit_number', sa.String(32), nullable=False),
        sa.Column('floor_level', sa.String(32), nullable=False),
        sa.Column('owner_name', sa.String(200), nullable=True),
        sa.Column('unit_type', USAGE_CLASS, nullable=False),
        sa.Column('area', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('parking_area', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('has_sp_assessment', sa.Boolean(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_units_tenant_id', 'units', ['tenant_id'])
    op.create_index('idx_unit_tenant_number', 'units', ['tenant_id', 'unit_number'], unique=True)
    op.create_index('idx_unit_tenant_floor', 'units', ['tenant_id', 'floor_level'])

    # Create meter_readings table
    op.create_table(
        'meter_readings',
        *_timestamps(),
        sa.Column('unit_id', sa.Integer(), nullable=False),
        sa.Column('meter_type', sa.Enum('ELECTRIC', 'WATER', name='metertype'), nullable=False),
        sa.Column('billing_period', sa.Date(), nullable=False),
        _money('previous_reading'),
        _money('present_reading'),
        _money('consumption'),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_meter_readings_unit_id', 'meter_readings', ['unit_id'])
    op.create_index(
        'idx_reading_unit_type_period',
        'meter_readings',
        ['unit_id', 'meter_type', 'billing_period'],
        unique=True,
    )

    # Create billing_adjustments table
    op.create_table(
        'billing_adjustments',
        *_timestamps(),
        sa.Column('tenant_id', sa.String(64), nullable=False),
        sa.Column('unit_id', sa.Integer(), nullable=False),
        sa.Column('billing_period', sa.Date(), nullable=False),
        _money('sp_assessment', nullable=True),
        _money('discounts'),
        _money('other_charges'),
        sa.Column('remarks', sa.String(500), nullable=True),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_billing_adjustments_tenant_id', 'billing_adjustments', ['tenant_id'])
    op.create_index('ix_billing_adjustments_unit_id', 'billing_adjustments', ['unit_id'])
    op.create_index(
        'idx_adjustment_unit_period', 'billing_adjustments', ['unit_id', 'billing_period'], unique=True
    )

    # Create bills table
    op.create_table(
        'bills',
        *_timestamps(),
        sa.Column('bill_number', sa.String(32), nullable=False),
        sa.Column('tenant_id', sa.String(64), nullable=False),
        sa.Column('unit_id', sa.Integer(), nullable=False),
        sa.Column(
            'bill_type',
            sa.Enum('REGULAR', 'OPENING_BALANCE', 'ADJUSTMENT', name='billtype'),
            nullable=False,
        ),
        sa.Column('billing_month', sa.Date(), nullable=False, comment='First day of month'),
        sa.Column('billing_period_start', sa.Date(), nullable=False),
        sa.Column('billing_period_end', sa.Date(), nullable=False),
        sa.Column('statement_date', sa.Date(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        _money('electric_consumption'),
        _money('water_consumption'),
        _money('electric_amount'),
        _money('water_amount'),
        _money('dues_amount'),
        _money('parking_fee'),
        _money('sp_assessment'),
        _money('other_charges'),
        _money('penalty_amount'),
        _money('discounts'),
        _money('advance_dues_applied'),
        _money('advance_util_applied'),
        _money('total_amount'),
        _money('paid_amount'),
        _money('balance'),
        sa.Column(
            'status',
            sa.Enum('UNPAID', 'PARTIAL', 'PAID', 'OVERDUE', name='billstatus'),
            nullable=False,
        ),
        sa.Column('sp_assessment_cycle', sa.String(32), nullable=True),
        sa.Column('is_locked', sa.Boolean(), nullable=False),
        sa.Column('locked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('locked_by', sa.String(64), nullable=True),
        sa.Column('generated_by', sa.String(64), nullable=True),
        sa.Column('remarks', sa.String(500), nullable=True),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_bills_tenant_id', 'bills', ['tenant_id'])
    op.create_index('ix_bills_unit_id', 'bills', ['unit_id'])
    op.create_index('ix_bills_status', 'bills', ['status'])
    op.create_index(
        'idx_bill_unit_month_type', 'bills', ['unit_id', 'billing_month', 'bill_type'], unique=True
    )
    op.create_index('idx_bill_tenant_number', 'bills', ['tenant_id', 'bill_number'], unique=True)
    op.create_index('idx_bill_tenant_month', 'bills', ['tenant_id', 'billing_month'])

    # Create payments table
    op.create_table(
        'payments',
        *_timestamps(),
        sa.Column('tenant_id', sa.String(64), nullable=False),
        sa.Column('unit_id', sa.Integer(), nullable=False),
        sa.Column('or_number', sa.String(50), nullable=True),
        sa.Column('payment_date', sa.Date(), nullable=False),
        sa.Column('payment_method', sa.String(30), nullable=False),
        sa.Column('reference_number', sa.String(100), nullable=True),
        _money('electric_amount'),
        _money('water_amount'),
        _money('dues_amount'),
        _money('penalty_amount'),
        _money('sp_assessment_amount'),
        _money('advance_dues_amount'),
        _money('advance_util_amount'),
        _money('other_advance_amount'),
        _money('total_amount'),
        _money('advance_dues_credited'),
        _money('advance_util_credited'),
        sa.Column('status', sa.Enum('CONFIRMED', 'VOIDED', name='paymentstatus'), nullable=False),
        sa.Column('recorded_by', sa.String(64), nullable=True),
        sa.Column('remarks', sa.String(500), nullable=True),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_payments_tenant_id', 'payments', ['tenant_id'])
    op.create_index('ix_payments_unit_id', 'payments', ['unit_id'])
    op.create_index('idx_payment_tenant_or', 'payments', ['tenant_id', 'or_number'], unique=True)
    op.create_index('idx_payment_unit_date', 'payments', ['unit_id', 'payment_date'])

    # Create bill_payments table
    op.create_table(
        'bill_payments',
        *_timestamps(),
        sa.Column('payment_id', sa.Integer(), nullable=False),
        sa.Column('bill_id', sa.Integer(), nullable=False),
        _money('penalty_amount'),
        _money('sp_assessment_amount'),
        _money('dues_amount'),
        _money('parking_amount'),
        _money('water_amount'),
        _money('electric_amount'),
        _money('other_amount'),
        _money('total_amount'),
        sa.ForeignKeyConstraint(['payment_id'], ['payments.id'], ),
        sa.ForeignKeyConstraint(['bill_id'], ['bills.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_bill_payments_payment_id', 'bill_payments', ['payment_id'])
    op.create_index('ix_bill_payments_bill_id', 'bill_payments', ['bill_id'])
    op.create_index('idx_bill_payment_pair', 'bill_payments', ['payment_id', 'bill_id'], unique=True)

    # Create unit_advance_balances table
    op.create_table(
        'unit_advance_balances',
        *_timestamps(),
        sa.Column('tenant_id', sa.String(64), nullable=False),
        sa.Column('unit_id', sa.Integer(), nullable=False),
        _money('advance_dues'),
        _money('advance_utilities'),
        sa.CheckConstraint('advance_dues >= 0', name='ck_advance_dues_non_negative'),
        sa.CheckConstraint('advance_utilities >= 0', name='ck_advance_utilities_non_negative'),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('unit_id'),
    )
    op.create_index('ix_unit_advance_balances_tenant_id', 'unit_advance_balances', ['tenant_id'])

    # Create soa_batches table
    op.create_table(
        'soa_batches',
        *_timestamps(),
        sa.Column('batch_number', sa.String(32), nullable=False),
        sa.Column('tenant_id', sa.String(64), nullable=False),
        sa.Column('as_of_date', sa.Date(), nullable=False),
        sa.Column('billing_month', sa.Date(), nullable=False),
        sa.Column('filter_type', sa.Enum('ALL', 'FLOOR', 'UNIT', name='soafiltertype'), nullable=False),
        sa.Column('filter_value', sa.String(64), nullable=True),
        sa.Column(
            'status',
            sa.Enum('GENERATED', 'DISTRIBUTED', 'CANCELLED', name='soabatchstatus'),
            nullable=False,
        ),
        sa.Column('total_units', sa.Integer(), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('total_balance', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('generated_by', sa.String(64), nullable=True),
        sa.Column('distributed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('distributed_by', sa.String(64), nullable=True),
        sa.Column('remarks', sa.String(500), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_soa_batches_tenant_id', 'soa_batches', ['tenant_id'])
    op.create_index(
        'idx_soa_batch_tenant_number', 'soa_batches', ['tenant_id', 'batch_number'], unique=True
    )

    # Create soa_documents table
    op.create_table(
        'soa_documents',
        *_timestamps(),
        sa.Column('batch_id', sa.Integer(), nullable=False),
        sa.Column('unit_id', sa.Integer(), nullable=False),
        sa.Column('unit_number', sa.String(32), nullable=False),
        sa.Column('owner_name', sa.String(200), nullable=True),
        sa.Column('floor_level', sa.String(32), nullable=False),
        sa.Column('total_billed', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('total_paid', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('current_balance', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('current', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('days_31_60', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('days_61_90', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('over_90', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('soa_data', sa.JSON(), nullable=False),
        sa.ForeignKeyConstraint(['batch_id'], ['soa_batches.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_soa_documents_batch_id', 'soa_documents', ['batch_id'])
    op.create_index('ix_soa_documents_unit_id', 'soa_documents', ['unit_id'])

    # Create soa_document_bills association table
    op.create_table(
        'soa_document_bills',
        sa.Column('document_id', sa.Integer(), nullable=False),
        sa.Column('bill_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['document_id'], ['soa_documents.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['bill_id'], ['bills.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('document_id', 'bill_id'),
    )

    # Create audit_logs table
    op.create_table(
        'audit_logs',
        *_timestamps(),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('actor', sa.String(64), nullable=True),
        sa.Column('changes', sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )


def downgrade() -> None:
    """Drop ledger tables."""
    op.drop_table('audit_logs')
    op.drop_table('soa_document_bills')
    op.drop_table('soa_documents')
    op.drop_table('soa_batches')
    op.drop_table('unit_advance_balances')
    op.drop_table('bill_payments')
    op.drop_table('payments')
    op.drop_table('bills')
    op.drop_table('billing_adjustments')
    op.drop_table('meter_readings')
    op.drop_table('units')
    op.drop_table('water_tier_rates')
    op.drop_table('tenant_settings')
