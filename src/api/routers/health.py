"""Health check endpoint."""
import logging

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session
from models.game import Game
from models.genre import Genre
from models.publisher import Publisher

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class CatalogHealth(BaseModel):
    """Health of the catalog and the size of its tables."""

    status: str
    database: str
    games: int | None = None
    genres: int | None = None
    publishers: int | None = None


@router.get("/health", response_model=CatalogHealth)
async def health_check(
    response: Response,
    db: AsyncSession = Depends(get_async_session),
) -> CatalogHealth:
    """
    Check that the catalog tables can be read.

    Returns 503 with ``database: unhealthy`` when they cannot.
    """
    try:
        counts = {
            name: await db.scalar(select(func.count()).select_from(model))
            for name, model in (("games", Game), ("genres", Genre), ("publishers", Publisher))
        }
    except SQLAlchemyError:
        logger.exception("Catalog tables are unreachable")
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return CatalogHealth(status="degraded", database="unhealthy")

    return CatalogHealth(status="healthy", database="healthy", **counts)
