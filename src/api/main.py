"""FastAPI application entry point."""
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.routers import games, genres, health, home, publishers
from core.config import get_settings
from core.templating import STATIC_DIR, templates
from db.session import async_session_factory, engine
from models.base import Base
from services.genre_service import seed_default_genres

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifespan - startup and shutdown."""
    app_settings = get_settings()
    logging.basicConfig(
        level=app_settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # Startup: Create tables and default genres
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    if app_settings.seed_default_genres:
        async with async_session_factory() as session, session.begin():
            await seed_default_genres(session)
    logger.info("%s started", app_settings.app_title)

    yield

    # Shutdown: Release pooled connections
    await engine.dispose()


app_settings = get_settings()

app = FastAPI(
    title=app_settings.app_title,
    description="A game catalog with genres and publishers.",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> Response:
    """Render HTML error pages; keep JSON for clients that ask for it."""
    if "application/json" in request.headers.get("accept", ""):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})
    if exc.status_code == 404:
        return templates.TemplateResponse(
            request,
            "errors/404.html",
            {"url": request.url.path, "detail": exc.detail},
            status_code=404,
        )
    return templates.TemplateResponse(
        request,
        "errors/error.html",
        {"status_code": exc.status_code, "detail": exc.detail},
        status_code=exc.status_code,
    )


app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

app.include_router(health.router)
app.include_router(home.router)
app.include_router(games.router)
app.include_router(publishers.router)
app.include_router(genres.router)

