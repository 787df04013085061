from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from core import errors
from core.config import Settings, configure_logging, load_settings
from core.db import Database
from uploads import router as uploads_router
from uploads import service as upload_service
from users import repository as user_repository
from users import router as users_router
from web import router as web_router
from web.templating import templates

API_V1_PREFIX = "/api/v1"

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # One pool per process, injected into routes through core.db.get_db.
    settings: Settings = app.state.settings
    database = await Database.connect(settings)
    app.state.db = database
    try:
        if settings.db_create_schema:
            await user_repository.ensure_schema(database)
        yield
    finally:
        app.state.db = None
        await database.close()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="users-app", lifespan=lifespan)
    app.state.settings = settings
    app.state.db = None

    errors.install_error_handlers(app, templates)

    # Uploaded files are public static assets addressed by their stored name.
    os.makedirs(settings.upload_dir, exist_ok=True)
    app.mount(
        upload_service.UPLOADS_URL_PREFIX,
        StaticFiles(directory=settings.upload_dir),
        name="uploads",
    )

    app.include_router(users_router.router, prefix=API_V1_PREFIX, tags=["users"])
    app.include_router(uploads_router.router, prefix=API_V1_PREFIX, tags=["uploads"])
    app.include_router(web_router.router, tags=["pages"])

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    logger.info("app_created upload_dir=%s", settings.upload_dir)
    return app


app = create_app()


if __name__ == "__main__":
    settings = app.state.settings
    uvicorn.run(app, host=settings.host, port=settings.port)
