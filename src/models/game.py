"""Game model."""
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Date, String, Text, false
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, TimestampMixin
from models.genre import game_genres
from models.publisher import game_publishers

if TYPE_CHECKING:
    from models.genre import Genre
    from models.publisher import Publisher


class Game(Base, TimestampMixin):
    """Game model - the owning side of the genre and publisher links."""

    __tablename__ = "games"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    release_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_featured: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
        index=True,
    )

    # Join rows are written directly by the association service; these
    # relationships are read-only views over them.
    genres: Mapped[list["Genre"]] = relationship(
        secondary=game_genres,
        order_by="Genre.name",
        viewonly=True,
    )
    publishers: Mapped[list["Publisher"]] = relationship(
        secondary=game_publishers,
        order_by="Publisher.name",
        viewonly=True,
    )
