"""Home page."""
from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session
from core.templating import templates
from services import game_service

router = APIRouter(tags=["home"])


@router.get("/", response_class=HTMLResponse)
async def index(
    request: Request,
    db: AsyncSession = Depends(get_async_session),
) -> HTMLResponse:
    """Show the featured games."""
    featured_games = await game_service.list_featured_games(db)
    return templates.TemplateResponse(
        request, "index.html", {"featured_games": featured_games},
    )
