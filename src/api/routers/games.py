"""Game pages and form endpoints."""
import logging
from typing import Any

from fastapi import APIRouter, Depends, Form, HTTPException, Path, Query, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session
from core.templating import input_date, templates
from models.base import MAX_ID
from models.game import Game
from schemas.game import GameForm, parse_checkbox
from services import game_service, genre_service, publisher_service
from services.exceptions import (
    AssociationConflictError,
    AssociationError,
    AssociationStorageError,
    GameNotFoundError,
    OwnerNotFoundError,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["games"])


def association_error_status(exc: AssociationError) -> int:
    """Map an association failure to the HTTP status of the re-rendered form."""
    if isinstance(exc, OwnerNotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, AssociationConflictError):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, AssociationStorageError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_422_UNPROCESSABLE_ENTITY


def _validation_messages(exc: ValidationError) -> list[str]:
    return [
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    ]


def _values_from_game(game: Game) -> dict[str, Any]:
    return {
        "id": game.id,
        "title": game.title,
        "description": game.description or "",
        "release_date": input_date(game.release_date),
        "is_featured": game.is_featured,
        "genres": [genre.id for genre in game.genres],
        "publishers": [publisher.id for publisher in game.publishers],
    }


async def _render_form(
    request: Request,
    db: AsyncSession,
    template: str,
    values: dict[str, Any],
    errors: list[str] | None = None,
    status_code: int = status.HTTP_200_OK,
) -> HTMLResponse:
    genres = await genre_service.list_genres(db)
    publishers = await publisher_service.list_publishers(db)
    return templates.TemplateResponse(
        request,
        template,
        {
            "form": values,
            "genres": genres,
            "publishers": publishers,
            "errors": errors or [],
        },
        status_code=status_code,
    )


def _build_form(
    title: str,
    description: str,
    release_date: str,
    is_featured: str | None,
    genres: list[str],
    publishers: list[str],
) -> GameForm:
    return GameForm(
        title=title,
        description=description,
        release_date=release_date,
        is_featured=is_featured,
        genre_ids=genres,
        publisher_ids=publishers,
    )


@router.get("/games", response_class=HTMLResponse)
async def list_games(
    request: Request,
    db: AsyncSession = Depends(get_async_session),
) -> HTMLResponse:
    """List all games with their genres and publishers."""
    games = await game_service.list_games(db)
    return templates.TemplateResponse(request, "games/list.html", {"games": games})


@router.get("/games/{game_id}", response_class=HTMLResponse)
async def show_game(
    request: Request,
    game_id: int = Path(ge=1, le=MAX_ID),
    db: AsyncSession = Depends(get_async_session),
) -> HTMLResponse:
    """Show a single game."""
    game = await game_service.get_game(db, game_id)
    if game is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Game not found")
    return templates.TemplateResponse(request, "games/show.html", {"game": game})


@router.get("/add-game", response_class=HTMLResponse)
async def add_game_form(
    request: Request,
    db: AsyncSession = Depends(get_async_session),
) -> HTMLResponse:
    """Show the game creation form."""
    return await _render_form(request, db, "games/add.html", {"genres": [], "publishers": []})


@router.post("/add-game", response_class=HTMLResponse)
async def add_game(
    request: Request,
    title: str = Form(default=""),
    description: str = Form(default=""),
    release_date: str = Form(default=""),
    is_featured: str | None = Form(default=None),
    genres: list[str] = Form(default=[]),
    publishers: list[str] = Form(default=[]),
    db: AsyncSession = Depends(get_async_session),
) -> Response:
    """Create a game and link the checked genres and publishers."""
    values = {
        "title": title,
        "description": description,
        "release_date": release_date,
        "is_featured": parse_checkbox(is_featured),
        "genres": genres,
        "publishers": publishers,
    }
    try:
        data = _build_form(title, description, release_date, is_featured, genres, publishers)
    except ValidationError as e:
        return await _render_form(
            request, db, "games/add.html", values, _validation_messages(e),
            status.HTTP_422_UNPROCESSABLE_ENTITY,
        )

    try:
        await game_service.create_game(db, data)
    except AssociationError as e:
        logger.warning("Game creation rejected: %s", e)
        return await _render_form(
            request, db, "games/add.html", values, [str(e)], association_error_status(e),
        )
    return RedirectResponse("/games", status_code=status.HTTP_303_SEE_OTHER)


@router.get("/edit-game", response_class=HTMLResponse)
async def edit_game_form(
    request: Request,
    game_id: int = Query(alias="id", ge=1, le=MAX_ID),
    db: AsyncSession = Depends(get_async_session),
) -> HTMLResponse:
    """Show the edit form with the current genres and publishers checked."""
    game = await game_service.get_game(db, game_id)
    if game is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Game not found")
    return await _render_form(request, db, "games/edit.html", _values_from_game(game))


@router.post("/edit-game", response_class=HTMLResponse)
async def edit_game(
    request: Request,
    game_id: int = Form(alias="id", ge=1, le=MAX_ID),
    title: str = Form(default=""),
    description: str = Form(default=""),
    release_date: str = Form(default=""),
    is_featured: str | None = Form(default=None),
    genres: list[str] = Form(default=[]),
    publishers: list[str] = Form(default=[]),
    db: AsyncSession = Depends(get_async_session),
) -> Response:
    """
    Update a game and replace its genre and publisher links.

    Returns 404 if the game doesn't exist. If the links are rejected, nothing
    is changed and the form is shown again with the error.
    """
    values = {
        "id": game_id,
        "title": title,
        "description": description,
        "release_date": release_date,
        "is_featured": parse_checkbox(is_featured),
        "genres": genres,
        "publishers": publishers,
    }
    try:
        data = _build_form(title, description, release_date, is_featured, genres, publishers)
    except ValidationError as e:
        return await _render_form(
            request, db, "games/edit.html", values, _validation_messages(e),
            status.HTTP_422_UNPROCESSABLE_ENTITY,
        )

    try:
        await game_service.update_game(db, game_id, data)
    except GameNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except AssociationError as e:
        logger.warning("Edit of game %s rejected: %s", game_id, e)
        if isinstance(e, OwnerNotFoundError):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
        return await _render_form(
            request, db, "games/edit.html", values,
            [f"The game was not updated. {e}"], association_error_status(e),
        )
    return RedirectResponse("/games", status_code=status.HTTP_303_SEE_OTHER)


@router.get("/delete-game")
async def delete_game(
    game_id: int = Query(alias="id", ge=1, le=MAX_ID),
    db: AsyncSession = Depends(get_async_session),
) -> RedirectResponse:
    """Delete a game and its links."""
    try:
        await game_service.delete_game(db, game_id)
    except GameNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return RedirectResponse("/games", status_code=status.HTTP_303_SEE_OTHER)
