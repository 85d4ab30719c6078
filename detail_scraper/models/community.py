from sqlalchemy import Column, Integer, Float, ForeignKey, UniqueConstraint
from detail_scraper.database import Base


class CommunityPlayerRating(Base):
    """
    Community poll results for a given player count
    """
    __tablename__ = "community_player_ratings"
    __table_args__ = (
        UniqueConstraint('game_id', 'player_count', name='uq_player_rating_game_count'),
    )

    id = Column(Integer, primary_key=True)
    game_id = Column(Integer, ForeignKey("games.id", ondelete="CASCADE"), nullable=False, index=True)
    player_count = Column(Integer, nullable=False)
    best_percentage = Column(Float)
    recommended_percentage = Column(Float)
    not_recommended_percentage = Column(Float)
    total_votes = Column(Integer)


class CommunityAgeRating(Base):
    """
    Community poll results for the suggested minimum age
    """
    __tablename__ = "community_age_ratings"
    __table_args__ = (
        UniqueConstraint('game_id', 'age', name='uq_age_rating_game_age'),
    )

    id = Column(Integer, primary_key=True)
    game_id = Column(Integer, ForeignKey("games.id", ondelete="CASCADE"), nullable=False, index=True)
    age = Column(Integer, nullable=False)
    percentage = Column(Float)
    vote_count = Column(Integer)
