"""Genre pages."""
from fastapi import APIRouter, Depends, HTTPException, Path, Request, status
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session
from core.templating import templates
from models.base import MAX_ID
from services import genre_service

router = APIRouter(tags=["genres"])


@router.get("/genres", response_class=HTMLResponse)
async def list_genres(
    request: Request,
    db: AsyncSession = Depends(get_async_session),
) -> HTMLResponse:
    """List all genres."""
    genres = await genre_service.list_genres(db)
    return templates.TemplateResponse(request, "genres/list.html", {"genres": genres})


@router.get("/genres/{genre_id}/games", response_class=HTMLResponse)
async def genre_games(
    request: Request,
    genre_id: int = Path(ge=1, le=MAX_ID),
    db: AsyncSession = Depends(get_async_session),
) -> HTMLResponse:
    """List the games filed under a genre."""
    genre = await genre_service.get_genre(db, genre_id)
    if genre is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Genre not found")
    return templates.TemplateResponse(
        request, "genres/games.html", {"genre": genre, "games": genre.games},
    )
