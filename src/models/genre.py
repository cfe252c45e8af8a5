"""Genre model and the game/genre junction table."""
from typing import TYPE_CHECKING

from sqlalchemy import Column, ForeignKey, Index, Integer, String, Table
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base

if TYPE_CHECKING:
    from models.game import Game


# Junction table for many-to-many relationship between games and genres
game_genres = Table(
    "game_genres",
    Base.metadata,
    Column(
        "game_id",
        Integer,
        ForeignKey("games.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "genre_id",
        Integer,
        ForeignKey("genres.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    # Index for lookups by genre (composite PK already indexes game_id first)
    Index("ix_game_genres_genre_id", "genre_id"),
)


class Genre(Base):
    """Genre model - a named category games can be filed under."""

    __tablename__ = "genres"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)

    games: Mapped[list["Game"]] = relationship(
        secondary=game_genres,
        order_by="Game.title",
        viewonly=True,
    )
