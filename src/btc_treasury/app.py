from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from btc_treasury import __version__
from btc_treasury.api.errors import UpstreamError
from btc_treasury.config import configure_logging, load_env_file
from btc_treasury.sync.errors import EntityNotFoundError
from btc_treasury.web.responses import error_response
from btc_treasury.web.routes import admin, bitcoin, entities

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    load_env_file()
    configure_logging()

    app = FastAPI(
        title="Bitcoin Treasury API",
        version=__version__,
        description="Cached, upstream-synchronised Bitcoin treasury datasets.",
    )

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.exception_handler(StarletteHTTPException)
    def http_error(_: Request, exc: StarletteHTTPException):
        return error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    def validation_error(_: Request, exc: RequestValidationError):
        return error_response(422, str(exc.errors()))

    @app.exception_handler(EntityNotFoundError)
    def entity_not_found(_: Request, exc: EntityNotFoundError):
        return error_response(404, str(exc))

    @app.exception_handler(UpstreamError)
    def upstream_error(_: Request, exc: UpstreamError):
        logger.warning("Upstream request failed: %s", exc)
        return error_response(502, str(exc))

    @app.exception_handler(SQLAlchemyError)
    def database_error(_: Request, exc: SQLAlchemyError):
        logger.exception("Database error while serving request")
        return error_response(500, "Database error")

    app.include_router(bitcoin.router)
    app.include_router(entities.router)
    app.include_router(admin.router)

    return app


app = create_app()
