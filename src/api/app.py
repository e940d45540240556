"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.api import health, market_data, watchlist
from src.config.settings import Settings
from src.data.storage.duckdb import MEMORY_DB, DuckDBStorage
from src.errors import AppError
from src.services.market_data import MarketDataService, create_market_data_service
from src.services.watchlist import WatchlistService

logger = logging.getLogger(__name__)

API_VERSION = "0.1.0"


def create_app(
    settings: Settings | None = None,
    market_data_service: MarketDataService | None = None,
) -> FastAPI:
    """Build the REST application.

    Args:
        settings: Service settings (read from the environment if omitted)
        market_data_service: Aggregator to serve (built from settings if
            omitted)

    Returns:
        Configured FastAPI application
    """
    settings = settings or Settings.from_env()
    service = market_data_service or create_market_data_service(settings)

    storage = service.storage
    if storage is None:
        logger.warning("No DATABASE_PATH configured; watchlists are kept in memory")
        storage = DuckDBStorage(MEMORY_DB)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        service.close()
        if service.storage is None:
            storage.close()

    app = FastAPI(
        title="Market Data API",
        description="Aggregated cryptocurrency, stock and precious metal prices",
        version=API_VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.market_data = service
    app.state.watchlist = WatchlistService(storage, service)

    _register_error_handlers(app, include_stack=settings.is_development)

    app.include_router(health.router, tags=["health"])
    app.include_router(
        market_data.router, prefix="/api/market-data", tags=["market-data"]
    )
    app.include_router(watchlist.router, prefix="/api/users", tags=["watchlist"])

    return app


def _register_error_handlers(app: FastAPI, include_stack: bool) -> None:
    """Serialize every error in the AppError body shape."""

    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(include_stack=include_stack),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        error = AppError.bad_request(
            "Invalid request parameters",
            details={"errors": jsonable_encoder(exc.errors())},
        )
        return JSONResponse(status_code=400, content=error.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        error = AppError(str(exc.detail), exc.status_code)
        return JSONResponse(status_code=exc.status_code, content=error.to_dict())

    @app.exception_handler(Exception)
    async def handle_unexpected_error(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        error = AppError.internal("Something went wrong")
        return JSONResponse(status_code=500, content=error.to_dict())
