from sqlalchemy import Column, Integer, String, Text, DateTime, Float, ForeignKey
from sqlalchemy.sql import func
from detail_scraper.database import Base


class Game(Base):
    """
    A ranked game from the list scrape; the unit of work for the detail scraper.

    Lease fields (lease_owner, lease_at) are written only by ClaimCoordinator
    and are either both set or both NULL.
    """
    __tablename__ = "games"

    id = Column(Integer, primary_key=True, index=True)
    rank = Column(Integer, nullable=False)
    name = Column(String(255), nullable=False)
    bgg_url = Column(Text, nullable=False, unique=True, index=True)

    # Detail page fields
    year = Column(Integer)
    min_players = Column(Integer)
    max_players = Column(Integer)
    min_playing_time = Column(Integer)
    max_playing_time = Column(Integer)
    weight = Column(Float)
    official_age = Column(Integer)
    language_dependence_id = Column(Integer, ForeignKey("language_dependences.id"))
    scraped_at = Column(DateTime(timezone=True))

    # Lease (claim) metadata
    lease_owner = Column(String(100), index=True)
    lease_at = Column(DateTime(timezone=True))

    # Retry bookkeeping
    # Status flow: None -> completed | incomplete | failed
    scrape_attempts = Column(Integer, nullable=False, default=0, server_default="0")
    next_attempt_at = Column(DateTime(timezone=True))
    last_scrape_error = Column(Text)
    detail_scrape_status = Column(String(50), index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Game(id={self.id}, name={self.name}, lease_owner={self.lease_owner})>"
