"""create trip, spend and settlement tables

Revision ID: 7c1e4b2a9d10
Revises:
Create Date: 2026-10-16 09:12:40.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '7c1e4b2a9d10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('display_name', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_table(
        'trips',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('base_currency', sa.String(3), nullable=False),
        sa.Column('created_by_id', sa.String(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_table(
        'trip_members',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('trip_id', sa.String(), sa.ForeignKey('trips.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', sa.String(10), nullable=False),
        sa.Column('rsvp_status', sa.String(10), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('trip_id', 'user_id'),
    )
    op.create_table(
        'spends',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('trip_id', sa.String(), sa.ForeignKey('trips.id', ondelete='CASCADE'), nullable=False),
        sa.Column('paid_by_id', sa.String(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('description', sa.String(500), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('fx_rate', sa.Numeric(18, 8), nullable=False),
        sa.Column('normalized_amount', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(10), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_spends_trip_id', 'spends', ['trip_id'])
    op.create_table(
        'spend_assignments',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('spend_id', sa.String(), sa.ForeignKey('spends.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('split_type', sa.String(12), nullable=False),
        sa.Column('split_value', sa.Numeric(18, 6), nullable=True),
        sa.Column('share_amount', sa.Integer(), nullable=False),
        sa.Column('normalized_share_amount', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('spend_id', 'user_id'),
    )
    op.create_index('ix_spend_assignments_spend_id', 'spend_assignments', ['spend_id'])
    op.create_table(
        'settlements',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('trip_id', sa.String(), sa.ForeignKey('trips.id', ondelete='CASCADE'), nullable=False),
        sa.Column('from_user_id', sa.String(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('to_user_id', sa.String(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(16), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_settlements_trip_id', 'settlements', ['trip_id'])
    op.create_table(
        'payments',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('settlement_id', sa.String(), sa.ForeignKey('settlements.id', ondelete='CASCADE'), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('paid_at', sa.Date(), nullable=False),
        sa.Column('payment_method', sa.String(50), nullable=True),
        sa.Column('payment_reference', sa.String(255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('recorded_by_id', sa.String(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_table(
        'event_logs',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('trip_id', sa.String(), sa.ForeignKey('trips.id', ondelete='CASCADE'), nullable=True),
        sa.Column('entity_type', sa.String(32), nullable=False),
        sa.Column('entity_id', sa.String(), nullable=False),
        sa.Column('event_type', sa.String(32), nullable=False),
        sa.Column('actor_id', sa.String(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_event_logs_trip_id', 'event_logs', ['trip_id'])
    op.create_index('ix_event_logs_created_at', 'event_logs', ['created_at'])
    op.create_table(
        'exchange_rates',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('base_currency', sa.String(3), nullable=False),
        sa.Column('target_currency', sa.String(3), nullable=False),
        sa.Column('rate', sa.Numeric(18, 8), nullable=False),
        sa.Column('fetched_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('date', 'base_currency', 'target_currency'),
    )


def downgrade() -> None:
    op.drop_table('exchange_rates')
    op.drop_index('ix_event_logs_created_at', table_name='event_logs')
    op.drop_index('ix_event_logs_trip_id', table_name='event_logs')
    op.drop_table('event_logs')
    op.drop_table('payments')
    op.drop_index('ix_settlements_trip_id', table_name='settlements')
    op.drop_table('settlements')
    op.drop_index('ix_spend_assignments_spend_id', table_name='spend_assignments')
    op.drop_table('spend_assignments')
    op.drop_index('ix_spends_trip_id', table_name='spends')
    op.drop_table('spends')
    op.drop_table('trip_members')
    op.drop_table('trips')
    op.drop_table('users')
