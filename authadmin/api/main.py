from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from authadmin import __version__
from authadmin.api.routers import admin
from authadmin.common.logger import setup_logger
from authadmin.core.config import Settings, get_settings
from authadmin.core.errors import AdminAPIError, BanRedirect
from authadmin.db.session import get_engine, init_db


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the FastAPI application for ``settings``."""
    settings = settings or get_settings()
    logger = setup_logger(
        level=settings.log_level,
        log_dir=settings.log_dir if settings.log_to_file else None,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_db(get_engine(settings.database_url))
        logger.info("%s started", settings.app_name)
        yield

    app = FastAPI(
        title=settings.app_name,
        description="Admin authorization layer: roles, bans and impersonation",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AdminAPIError)
    async def admin_error_handler(request: Request, exc: AdminAPIError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(BanRedirect)
    async def ban_redirect_handler(request: Request, exc: BanRedirect):
        return RedirectResponse(exc.url, status_code=302)

    app.include_router(admin.router)
    app.include_router(admin.session_router)

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "version": __version__}

    return app


app = create_app()
