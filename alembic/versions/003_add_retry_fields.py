"""add retry bookkeeping fields

Revision ID: 003
Revises: 002
Create Date: 2026-09-22 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '003'
down_revision = '002'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column('games',
        sa.Column('scrape_attempts', sa.Integer(), server_default='0', nullable=False)
    )
    op.add_column('games',
        sa.Column('next_attempt_at', sa.DateTime(timezone=True), nullable=True)
    )
    op.add_column('games',
        sa.Column('last_scrape_error', sa.Text(), nullable=True)
    )
    op.add_column('games',
        sa.Column('detail_scrape_status', sa.String(length=50), nullable=True)
    )

    op.create_index(
        op.f('ix_games_detail_scrape_status'),
        'games',
        ['detail_scrape_status'],
        unique=False
    )


def downgrade() -> None:
    op.drop_index(op.f('ix_games_detail_scrape_status'), table_name='games')
    op.drop_column('games', 'detail_scrape_status')
    op.drop_column('games', 'last_scrape_error')
    op.drop_column('games', 'next_attempt_at')
    op.drop_column('games', 'scrape_attempts')
