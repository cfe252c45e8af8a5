"""Service layer for game CRUD operations."""
import logging

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from models.game import Game
from schemas.game import GameForm
from services.association_service import Relation, replace_associations
from services.exceptions import GameNotFoundError

logger = logging.getLogger(__name__)


def _with_links(query: Select) -> Select:
    """Eager-load both link collections."""
    return query.options(selectinload(Game.genres), selectinload(Game.publishers))


async def get_game(db: AsyncSession, game_id: int) -> Game | None:
    """
    Get a game by ID with its genres and publishers loaded.

    Returns:
        The Game if found, None otherwise.
    """
    result = await db.execute(
        _with_links(select(Game).where(Game.id == game_id)).execution_options(
            populate_existing=True,
        ),
    )
    return result.scalar_one_or_none()


async def list_games(db: AsyncSession) -> list[Game]:
    """List all games ordered by title, with genres and publishers loaded."""
    result = await db.execute(_with_links(select(Game).order_by(Game.title, Game.id)))
    return list(result.scalars())


async def list_featured_games(db: AsyncSession) -> list[Game]:
    """List games flagged as featured for the home page."""
    result = await db.execute(
        _with_links(
            select(Game).where(Game.is_featured.is_(True)).order_by(Game.title, Game.id),
        ),
    )
    return list(result.scalars())


async def _sync_links(db: AsyncSession, game_id: int, data: GameForm) -> None:
    await replace_associations(db, Relation.GENRE_LINK, game_id, data.genre_ids)
    await replace_associations(db, Relation.PUBLISHER_LINK, game_id, data.publisher_ids)


async def create_game(db: AsyncSession, data: GameForm) -> Game:
    """
    Create a game and link its genres and publishers.

    The game row and both link sets are written under one savepoint, so a
    failing link leaves no game behind and the request session stays usable.

    Raises:
        AssociationError: If a genre or publisher id is invalid or unknown.
    """
    game = Game(
        title=data.title,
        description=data.description,
        release_date=data.release_date_or_today(),
        is_featured=data.is_featured,
    )
    async with db.begin_nested():
        db.add(game)
        await db.flush()
        await _sync_links(db, game.id, data)
    logger.info("Created game %s (%s)", game.id, game.title)
    return await get_game(db, game.id)


async def update_game(db: AsyncSession, game_id: int, data: GameForm) -> Game:
    """
    Update a game's fields and replace its genre and publisher links.

    All-or-nothing: if a link set is rejected, the field changes are rolled
    back too and the previous links stay in place.

    Raises:
        GameNotFoundError: If the game doesn't exist.
        AssociationError: If a genre or publisher id is invalid or unknown.
    """
    game = await db.get(Game, game_id)
    if game is None:
        raise GameNotFoundError(game_id)

    async with db.begin_nested():
        game.title = data.title
        game.description = data.description
        game.release_date = data.release_date_or_today()
        game.is_featured = data.is_featured
        await db.flush()
        await _sync_links(db, game_id, data)
    logger.info("Updated game %s", game_id)
    return await get_game(db, game_id)


async def delete_game(db: AsyncSession, game_id: int) -> None:
    """
    Delete a game. Junction table entries cascade automatically.

    Raises:
        GameNotFoundError: If the game doesn't exist.
    """
    game = await db.get(Game, game_id)
    if game is None:
        raise GameNotFoundError(game_id)
    await db.delete(game)
    await db.flush()
    logger.info("Deleted game %s", game_id)
