"""SQLAlchemy models."""
from models.base import Base, TimestampMixin
from models.genre import Genre, game_genres  # Must be before game due to import
from models.publisher import Publisher, game_publishers
from models.game import Game

__all__ = [
    "Base",
    "Game",
    "Genre",
    "Publisher",
    "TimestampMixin",
    "game_genres",
    "game_publishers",
]
