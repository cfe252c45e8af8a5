"""Publisher pages and form endpoints (served under /editors)."""
from fastapi import APIRouter, Depends, Form, HTTPException, Path, Query, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session
from core.templating import templates
from models.base import MAX_ID
from schemas.publisher import PublisherForm
from services import publisher_service
from services.exceptions import PublisherNotFoundError

router = APIRouter(tags=["publishers"])


def _form_error(request: Request, template: str, values: dict, exc: ValidationError) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        template,
        {"form": values, "errors": [err["msg"] for err in exc.errors()]},
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
    )


@router.get("/editors", response_class=HTMLResponse)
async def list_publishers(
    request: Request,
    db: AsyncSession = Depends(get_async_session),
) -> HTMLResponse:
    """List all publishers with their games."""
    publishers = await publisher_service.list_publishers(db)
    return templates.TemplateResponse(
        request, "editors/list.html", {"publishers": publishers},
    )


@router.get("/add-editor", response_class=HTMLResponse)
async def add_publisher_form(request: Request) -> HTMLResponse:
    """Show the publisher creation form."""
    return templates.TemplateResponse(request, "editors/add.html", {"form": {}, "errors": []})


@router.post("/add-editor", response_class=HTMLResponse)
async def add_publisher(
    request: Request,
    name: str = Form(default=""),
    db: AsyncSession = Depends(get_async_session),
) -> Response:
    """Create a publisher."""
    try:
        data = PublisherForm(name=name)
    except ValidationError as e:
        return _form_error(request, "editors/add.html", {"name": name}, e)
    await publisher_service.create_publisher(db, data)
    return RedirectResponse("/editors", status_code=status.HTTP_303_SEE_OTHER)


@router.get("/editors/{publisher_id}/games", response_class=HTMLResponse)
async def publisher_games(
    request: Request,
    publisher_id: int = Path(ge=1, le=MAX_ID),
    db: AsyncSession = Depends(get_async_session),
) -> HTMLResponse:
    """List the games released by a publisher."""
    publisher = await publisher_service.get_publisher(db, publisher_id)
    if publisher is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Publisher not found")
    return templates.TemplateResponse(
        request, "editors/games.html", {"publisher": publisher, "games": publisher.games},
    )


@router.get("/edit-editor", response_class=HTMLResponse)
async def edit_publisher_form(
    request: Request,
    publisher_id: int = Query(alias="id", ge=1, le=MAX_ID),
    db: AsyncSession = Depends(get_async_session),
) -> HTMLResponse:
    """Show the publisher edit form."""
    publisher = await publisher_service.get_publisher(db, publisher_id)
    if publisher is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Publisher not found")
    return templates.TemplateResponse(
        request,
        "editors/edit.html",
        {"form": {"id": publisher.id, "name": publisher.name}, "publisher": publisher, "errors": []},
    )


@router.post("/edit-editor", response_class=HTMLResponse)
async def edit_publisher(
    request: Request,
    publisher_id: int = Form(alias="id", ge=1, le=MAX_ID),
    name: str = Form(default=""),
    db: AsyncSession = Depends(get_async_session),
) -> Response:
    """Rename a publisher. Returns 404 if it doesn't exist."""
    try:
        data = PublisherForm(name=name)
    except ValidationError as e:
        return _form_error(request, "editors/edit.html", {"id": publisher_id, "name": name}, e)
    try:
        await publisher_service.update_publisher(db, publisher_id, data)
    except PublisherNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return RedirectResponse("/editors", status_code=status.HTTP_303_SEE_OTHER)


@router.get("/delete-editor")
async def delete_publisher(
    publisher_id: int = Query(alias="id", ge=1, le=MAX_ID),
    db: AsyncSession = Depends(get_async_session),
) -> RedirectResponse:
    """Delete a publisher; its links to games are removed with it."""
    try:
        await publisher_service.delete_publisher(db, publisher_id)
    except PublisherNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return RedirectResponse("/editors", status_code=status.HTTP_303_SEE_OTHER)
