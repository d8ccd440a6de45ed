"""add spend items and item-linked assignments

Revision ID: b41d2e6f8a37
Revises: 7c1e4b2a9d10
Create Date: 2026-10-16 15:03:27.552910

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'b41d2e6f8a37'
down_revision: Union[str, Sequence[str], None] = '7c1e4b2a9d10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'spend_items',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('spend_id', sa.String(), sa.ForeignKey('spends.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('cost', sa.Integer(), nullable=False),
        sa.Column('assigned_user_id', sa.String(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_by_id', sa.String(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_spend_items_spend_id', 'spend_items', ['spend_id'])
    op.add_column(
        'spend_assignments',
        sa.Column('item_linked', sa.Boolean(), nullable=False, server_default=sa.false()),
    )


def downgrade() -> None:
    op.drop_column('spend_assignments', 'item_linked')
    op.drop_index('ix_spend_items_spend_id', table_name='spend_items')
    op.drop_table('spend_items')
