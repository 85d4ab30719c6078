"""
Detail payload returned by the scraper service.

The service speaks camelCase JSON; models accept both camelCase aliases and
field names.
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _ScraperModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PlayerCountRating(_ScraperModel):
    player_count: int
    best_percentage: Optional[float] = None
    recommended_percentage: Optional[float] = None
    not_recommended_percentage: Optional[float] = None
    total_votes: Optional[int] = None


class AgeRating(_ScraperModel):
    age: int
    percentage: Optional[float] = None
    vote_count: Optional[int] = None


class GameDetails(_ScraperModel):
    year: Optional[int] = None
    min_players: Optional[int] = None
    max_players: Optional[int] = None
    min_playing_time: Optional[int] = None
    max_playing_time: Optional[int] = None
    weight: Optional[float] = None
    official_age: Optional[int] = None
    language_dependence_text: Optional[str] = None

    # Relationship collections (credits page)
    categories: List[str] = []
    mechanisms: List[str] = []
    families: List[str] = []

    community_player_ratings: List[PlayerCountRating] = []
    community_age_ratings: List[AgeRating] = []


# Scalar columns copied onto Game; NULLs never overwrite stored values
SCALAR_FIELDS = (
    "year",
    "min_players",
    "max_players",
    "min_playing_time",
    "max_playing_time",
    "weight",
    "official_age",
)
