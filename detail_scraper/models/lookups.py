"""
Lookup entities referenced by a game's relationship collections.
All lookups are unique on their natural key and are only ever upserted.
"""
from sqlalchemy import Column, Integer, String, ForeignKey
from detail_scraper.database import Base


class LanguageDependence(Base):
    __tablename__ = "language_dependences"

    id = Column(Integer, primary_key=True)
    text = Column(String(255), nullable=False, unique=True)


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False, unique=True)


class Mechanism(Base):
    __tablename__ = "mechanisms"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False, unique=True)


class Family(Base):
    __tablename__ = "families"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False, unique=True)


class GameCategory(Base):
    __tablename__ = "game_categories"

    game_id = Column(Integer, ForeignKey("games.id", ondelete="CASCADE"), primary_key=True)
    category_id = Column(Integer, ForeignKey("categories.id"), primary_key=True)


class GameMechanism(Base):
    __tablename__ = "game_mechanisms"

    game_id = Column(Integer, ForeignKey("games.id", ondelete="CASCADE"), primary_key=True)
    mechanism_id = Column(Integer, ForeignKey("mechanisms.id"), primary_key=True)


class GameFamily(Base):
    __tablename__ = "game_families"

    game_id = Column(Integer, ForeignKey("games.id", ondelete="CASCADE"), primary_key=True)
    family_id = Column(Integer, ForeignKey("families.id"), primary_key=True)
