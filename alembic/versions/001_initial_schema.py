"""initial schema

Revision ID: 001
Revises:
Create Date: 2026-09-01 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table('language_dependences',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('text', sa.String(length=255), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('text')
    )
    for table in ('categories', 'mechanisms', 'families'):
        op.create_table(table,
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
        )

    op.create_table('games',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('rank', sa.Integer(), nullable=False),
    sa.Column('name', sa.String(length=255), nullable=False),
    sa.Column('bgg_url', sa.Text(), nullable=False),
    sa.Column('year', sa.Integer(), nullable=True),
    sa.Column('min_players', sa.Integer(), nullable=True),
    sa.Column('max_players', sa.Integer(), nullable=True),
    sa.Column('min_playing_time', sa.Integer(), nullable=True),
    sa.Column('max_playing_time', sa.Integer(), nullable=True),
    sa.Column('weight', sa.Float(), nullable=True),
    sa.Column('official_age', sa.Integer(), nullable=True),
    sa.Column('language_dependence_id', sa.Integer(), nullable=True),
    sa.Column('scraped_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
    sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    sa.ForeignKeyConstraint(['language_dependence_id'], ['language_dependences.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_games_id'), 'games', ['id'], unique=False)
    op.create_index(op.f('ix_games_bgg_url'), 'games', ['bgg_url'], unique=True)

    for table, column, target in (
        ('game_categories', 'category_id', 'categories'),
        ('game_mechanisms', 'mechanism_id', 'mechanisms'),
        ('game_families', 'family_id', 'families'),
    ):
        op.create_table(table,
        sa.Column('game_id', sa.Integer(), nullable=False),
        sa.Column(column, sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['game_id'], ['games.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint([column], [f'{target}.id'], ),
        sa.PrimaryKeyConstraint('game_id', column)
        )

    op.create_table('community_player_ratings',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('game_id', sa.Integer(), nullable=False),
    sa.Column('player_count', sa.Integer(), nullable=False),
    sa.Column('best_percentage', sa.Float(), nullable=True),
    sa.Column('recommended_percentage', sa.Float(), nullable=True),
    sa.Column('not_recommended_percentage', sa.Float(), nullable=True),
    sa.Column('total_votes', sa.Integer(), nullable=True),
    sa.ForeignKeyConstraint(['game_id'], ['games.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('game_id', 'player_count', name='uq_player_rating_game_count')
    )
    op.create_index(op.f('ix_community_player_ratings_game_id'), 'community_player_ratings', ['game_id'], unique=False)

    op.create_table('community_age_ratings',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('game_id', sa.Integer(), nullable=False),
    sa.Column('age', sa.Integer(), nullable=False),
    sa.Column('percentage', sa.Float(), nullable=True),
    sa.Column('vote_count', sa.Integer(), nullable=True),
    sa.ForeignKeyConstraint(['game_id'], ['games.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('game_id', 'age', name='uq_age_rating_game_age')
    )
    op.create_index(op.f('ix_community_age_ratings_game_id'), 'community_age_ratings', ['game_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_community_age_ratings_game_id'), table_name='community_age_ratings')
    op.drop_table('community_age_ratings')
    op.drop_index(op.f('ix_community_player_ratings_game_id'), table_name='community_player_ratings')
    op.drop_table('community_player_ratings')
    op.drop_table('game_families')
    op.drop_table('game_mechanisms')
    op.drop_table('game_categories')
    op.drop_index(op.f('ix_games_bgg_url'), table_name='games')
    op.drop_index(op.f('ix_games_id'), table_name='games')
    op.drop_table('games')
    op.drop_table('families')
    op.drop_table('mechanisms')
    op.drop_table('categories')
    op.drop_table('language_dependences')
