"""Scheduled payout batches

Revision ID: 7d2e9b41a6c8
Revises: c4a5e0f1b2d3
Create Date: 2026-10-19 15:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ENUM

# revision identifiers, used by Alembic.
revision: str = '7d2e9b41a6c8'
down_revision: Union[str, None] = 'c4a5e0f1b2d3'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

BATCH_STATUS = ('PROCESSING', 'COMPLETED')


def upgrade() -> None:
    ENUM(*BATCH_STATUS, name='payoutbatchstatus').create(op.get_bind(), checkfirst=True)

    op.create_table(
        'payout_batches',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('batch_id', sa.String(), nullable=False),
        sa.Column('run_date', sa.Date(), nullable=False),
        sa.Column('period_start', sa.DateTime(), nullable=False),
        sa.Column('period_end', sa.DateTime(), nullable=False),
        sa.Column('status', ENUM(*BATCH_STATUS, name='payoutbatchstatus', create_type=False), nullable=False),
        sa.Column('totals', sa.JSON(), nullable=True),
        sa.Column('total_transfers', sa.Integer(), nullable=False),
        sa.Column('successful_transfers', sa.Integer(), nullable=False),
        sa.Column('failed_transfers', sa.Integer(), nullable=False),
        sa.Column('started_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('batch_id')
    )
    op.create_index(op.f('ix_payout_batches_id'), 'payout_batches', ['id'], unique=False)

    op.add_column('payout_transfers', sa.Column('batch_id', sa.Integer(), nullable=True))
    op.add_column('payout_transfers', sa.Column('stripe_transfer_id', sa.String(), nullable=True))
    op.create_foreign_key(
        'fk_payout_transfers_batch_id', 'payout_transfers', 'payout_batches', ['batch_id'], ['id']
    )
    op.create_unique_constraint('uq_payout_transfers_stripe_transfer_id', 'payout_transfers', ['stripe_transfer_id'])
    op.create_index(op.f('ix_payout_transfers_batch_id'), 'payout_transfers', ['batch_id'], unique=False)

    op.add_column('bookings', sa.Column('payout_transfer_id', sa.Integer(), nullable=True))
    op.create_foreign_key(
        'fk_bookings_payout_transfer_id', 'bookings', 'payout_transfers', ['payout_transfer_id'], ['id']
    )
    op.create_index(op.f('ix_bookings_payout_transfer_id'), 'bookings', ['payout_transfer_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_bookings_payout_transfer_id'), table_name='bookings')
    op.drop_constraint('fk_bookings_payout_transfer_id', 'bookings', type_='foreignkey')
    op.drop_column('bookings', 'payout_transfer_id')

    op.drop_index(op.f('ix_payout_transfers_batch_id'), table_name='payout_transfers')
    op.drop_constraint('uq_payout_transfers_stripe_transfer_id', 'payout_transfers', type_='unique')
    op.drop_constraint('fk_payout_transfers_batch_id', 'payout_transfers', type_='foreignkey')
    op.drop_column('payout_transfers', 'stripe_transfer_id')
    op.drop_column('payout_transfers', 'batch_id')

    op.drop_index(op.f('ix_payout_batches_id'), table_name='payout_batches')
    op.drop_table('payout_batches')
    ENUM(name='payoutbatchstatus').drop(op.get_bind(), checkfirst=True)
