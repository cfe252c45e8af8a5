"""Service layer for publisher CRUD operations."""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from models.game import Game
from models.publisher import Publisher
from schemas.publisher import PublisherForm
from services.exceptions import PublisherNotFoundError

logger = logging.getLogger(__name__)


async def list_publishers(db: AsyncSession) -> list[Publisher]:
    """List all publishers ordered by name, with their games loaded."""
    result = await db.execute(
        select(Publisher)
        .options(selectinload(Publisher.games))
        .order_by(Publisher.name, Publisher.id),
    )
    return list(result.scalars())


async def get_publisher(db: AsyncSession, publisher_id: int) -> Publisher | None:
    """
    Get a publisher by ID with its games, and their genres and publishers, loaded.

    Returns:
        The Publisher if found, None otherwise.
    """
    result = await db.execute(
        select(Publisher)
        .options(
            selectinload(Publisher.games).selectinload(Game.genres),
            selectinload(Publisher.games).selectinload(Game.publishers),
        )
        .where(Publisher.id == publisher_id),
    )
    return result.scalar_one_or_none()


async def create_publisher(db: AsyncSession, data: PublisherForm) -> Publisher:
    """Create a publisher."""
    publisher = Publisher(name=data.name)
    db.add(publisher)
    await db.flush()
    await db.refresh(publisher)
    logger.info("Created publisher %s (%s)", publisher.id, publisher.name)
    return publisher


async def update_publisher(
    db: AsyncSession,
    publisher_id: int,
    data: PublisherForm,
) -> Publisher:
    """
    Rename a publisher.

    Raises:
        PublisherNotFoundError: If the publisher doesn't exist.
    """
    publisher = await db.get(Publisher, publisher_id)
    if publisher is None:
        raise PublisherNotFoundError(publisher_id)
    publisher.name = data.name
    await db.flush()
    await db.refresh(publisher)
    return publisher


async def delete_publisher(db: AsyncSession, publisher_id: int) -> None:
    """
    Delete a publisher. Its links to games cascade automatically.

    Raises:
        PublisherNotFoundError: If the publisher doesn't exist.
    """
    publisher = await db.get(Publisher, publisher_id)
    if publisher is None:
        raise PublisherNotFoundError(publisher_id)
    await db.delete(publisher)
    await db.flush()
    logger.info("Deleted publisher %s", publisher_id)
