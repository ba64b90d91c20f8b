"""Initial schema with the key-value entries table.

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Issues, profiles, gamification state and points log all live here
    op.create_table(
        'kv_entries',
        sa.Column('key', sa.String(512), primary_key=True),
        sa.Column('value', sa.JSON().with_variant(postgresql.JSONB(), 'postgresql'), nullable=True),
        sa.Column('version', sa.Integer, nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )

    # Prefix scans (issue:, user-issue:<id>:, points-log:<id>:) use the key ordering
    op.create_index(
        'idx_kv_entries_key_pattern', 'kv_entries', ['key'],
        postgresql_ops={'key': 'varchar_pattern_ops'},
    )


def downgrade() -> None:
    op.drop_index('idx_kv_entries_key_pattern', table_name='kv_entries')
    op.drop_table('kv_entries')
