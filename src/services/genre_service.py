"""Service layer for genre operations."""
import logging
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from models.game import Game
from models.genre import Genre

logger = logging.getLogger(__name__)

DEFAULT_GENRES = (
    "Action",
    "Aventure",
    "RPG",
    "Simulation",
    "Sport",
    "MMORPG",
)


async def list_genres(db: AsyncSession) -> list[Genre]:
    """List all genres ordered by name."""
    result = await db.execute(select(Genre).order_by(Genre.name))
    return list(result.scalars())


async def get_genre(db: AsyncSession, genre_id: int) -> Genre | None:
    """
    Get a genre by ID with its games, and their genres and publishers, loaded.

    Returns:
        The Genre if found, None otherwise.
    """
    result = await db.execute(
        select(Genre)
        .options(
            selectinload(Genre.games).selectinload(Game.genres),
            selectinload(Genre.games).selectinload(Game.publishers),
        )
        .where(Genre.id == genre_id),
    )
    return result.scalar_one_or_none()


async def seed_default_genres(
    db: AsyncSession,
    names: Iterable[str] = DEFAULT_GENRES,
) -> list[Genre]:
    """
    Ensure the given genres exist, creating the missing ones.

    Safe to run on every startup.

    Args:
        db: Database session.
        names: Genre names; blanks are skipped and repeats collapse.

    Returns:
        List of Genre objects in the order of first appearance.
    """
    wanted = list(dict.fromkeys(name.strip() for name in names if name.strip()))
    if not wanted:
        return []

    result = await db.execute(select(Genre).where(Genre.name.in_(wanted)))
    existing = {genre.name: genre for genre in result.scalars()}

    genres = []
    for name in wanted:
        if name in existing:
            genres.append(existing[name])
        else:
            genre = Genre(name=name)
            db.add(genre)
            genres.append(genre)

    await db.flush()
    logger.info("Genres ensured: %s", ", ".join(g.name for g in genres))
    return genres
