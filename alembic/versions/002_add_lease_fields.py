"""add lease fields for parallel workers

Revision ID: 002
Revises: 001
Create Date: 2026-09-08 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '002'
down_revision = '001'
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Lease metadata: both NULL (unclaimed) or both set (claimed)
    op.add_column('games', sa.Column('lease_owner', sa.String(length=100), nullable=True))
    op.add_column('games', sa.Column('lease_at', sa.DateTime(timezone=True), nullable=True))
    op.create_index(op.f('ix_games_lease_owner'), 'games', ['lease_owner'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_games_lease_owner'), table_name='games')
    op.drop_column('games', 'lease_at')
    op.drop_column('games', 'lease_owner')
