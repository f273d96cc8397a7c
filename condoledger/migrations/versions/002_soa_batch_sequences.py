"""Add per-month SOA batch number counters and widen bill numbers.

Revision ID: 002_soa_batch_sequences
Revises: 001_initial_ledger
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '002_soa_batch_sequences'
down_revision = '001_initial_ledger'
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create soa_batch_sequences and widen bills.bill_number."""
    # Bill numbers carry the unit number
    with op.batch_alter_table('bills') as batch_op:
        batch_op.alter_column(
            'bill_number',
            existing_type=sa.String(32),
            type_=sa.String(48),
            existing_nullable=False,
        )

    op.create_table(
        'soa_batch_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('tenant_id', sa.String(64), nullable=False),
        sa.Column('billing_month', sa.Date(), nullable=False),
        sa.Column('last_number', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'idx_soa_sequence_tenant_month',
        'soa_batch_sequences',
        ['tenant_id', 'billing_month'],
        unique=True,
    )


def downgrade() -> None:
    """Drop soa_batch_sequences and restore bills.bill_number."""
    op.drop_index('idx_soa_sequence_tenant_month', table_name='soa_batch_sequences')
    op.drop_table('soa_batch_sequences')
    with op.batch_alter_table('bills') as batch_op:
        batch_op.alter_column(
            'bill_number',
            existing_type=sa.String(48),
            type_=sa.String(32),
            existing_nullable=False,
        )
