"""Market data endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query

from src.api.dependencies import get_market_data
from src.api.responses import success
from src.data.models import (
    AssetCategory,
    AssetType,
    ListAssetsOptions,
    SortField,
    SortOrder,
)
from src.errors import AppError
from src.services.market_data import MarketDataService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/assets")
def list_assets(
    category: AssetCategory | None = None,
    search: str | None = None,
    sort_by: SortField | None = Query(default=None, alias="sortBy"),
    sort_order: SortOrder = Query(default=SortOrder.ASC, alias="sortOrder"),
    limit: int = Query(default=100, ge=1, le=250),
    service: MarketDataService = Depends(get_market_data),
) -> dict[str, Any]:
    """List assets with optional filtering and sorting."""
    options = ListAssetsOptions(
        category=category,
        search_query=search,
        sort_by=sort_by,
        sort_order=sort_order,
        limit=limit,
    )
    return success(service.list_assets(options))


@router.get("/popular")
def popular_assets(
    limit: int = Query(default=10, ge=1),
    service: MarketDataService = Depends(get_market_data),
) -> dict[str, Any]:
    """Latest prices of popular assets."""
    return success(service.get_popular_assets(limit))


@router.get("/search")
def search_assets(
    query: str | None = None,
    asset_type: AssetType | None = Query(default=None, alias="type"),
    service: MarketDataService = Depends(get_market_data),
) -> dict[str, Any]:
    """Search assets by name or symbol."""
    if not query or not query.strip():
        raise AppError.bad_request("Search query is required")
    return success(service.search_assets(query, asset_type))


@router.get("/price/{symbol}")
def asset_price(
    symbol: str,
    service: MarketDataService = Depends(get_market_data),
) -> dict[str, Any]:
    """Latest price of one asset."""
    quote = service.get_asset_price(symbol)
    if quote is None:
        raise AppError.not_found(f"Price data not found for {symbol.upper()}")
    return success(quote)


@router.get("/historical/{symbol}")
def historical_data(
    symbol: str,
    days: int = 30,
    service: MarketDataService = Depends(get_market_data),
) -> dict[str, Any]:
    """Daily price history of one asset."""
    return success(service.get_historical_data(symbol, days))


@router.get("/overview")
def market_overview(
    service: MarketDataService = Depends(get_market_data),
) -> dict[str, Any]:
    """Aggregated market overview."""
    return success(service.get_market_overview())
