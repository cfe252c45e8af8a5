"""Publisher model and the game/publisher junction table."""
from typing import TYPE_CHECKING

from sqlalchemy import Column, ForeignKey, Index, Integer, String, Table
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from models.game import Game


# Junction table for many-to-many relationship between games and publishers
game_publishers = Table(
    "game_publishers",
    Base.metadata,
    Column(
        "game_id",
        Integer,
        ForeignKey("games.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "publisher_id",
        Integer,
        ForeignKey("publishers.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Index("ix_game_publishers_publisher_id", "publisher_id"),
)


class Publisher(Base, TimestampMixin):
    """Publisher model - the studio or label releasing games."""

    __tablename__ = "publishers"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    games: Mapped[list["Game"]] = relationship(
        secondary=game_publishers,
        order_by="Game.title",
        viewonly=True,
    )
