# Database Models
from .game import Game
from .lookups import (
    Category,
    Family,
    GameCategory,
    GameFamily,
    GameMechanism,
    LanguageDependence,
    Mechanism,
)
from .community import CommunityAgeRating, CommunityPlayerRating

__all__ = [
    "Game",
    "Category",
    "Family",
    "GameCategory",
    "GameFamily",
    "GameMechanism",
    "LanguageDependence",
    "Mechanism",
    "CommunityAgeRating",
    "CommunityPlayerRating",
]
