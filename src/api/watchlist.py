"""User watchlist endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field

from src.api.dependencies import get_watchlist
from src.api.responses import success
from src.data.models import AssetType
from src.services.watchlist import WatchlistService

router = APIRouter()
logger = logging.getLogger(__name__)


class AddWatchlistRequest(BaseModel):
    """Request body for adding an asset to a watchlist."""

    symbol: str = Field(min_length=1)
    asset_type: AssetType | None = Field(default=None, alias="type")


@router.get("/{user_id}/watchlist")
def get_watchlist_entries(
    user_id: str,
    prices: bool = False,
    service: WatchlistService = Depends(get_watchlist),
) -> dict[str, Any]:
    """List a user's watchlist, optionally with latest prices."""
    if prices:
        return success(service.list_with_prices(user_id))
    return success(service.list(user_id))


@router.post("/{user_id}/watchlist", status_code=201)
def add_watchlist_entry(
    user_id: str,
    request: AddWatchlistRequest,
    service: WatchlistService = Depends(get_watchlist),
) -> dict[str, Any]:
    """Add an asset to a user's watchlist."""
    entry = service.add(user_id, request.symbol, request.asset_type)
    return success(entry)


@router.delete("/{user_id}/watchlist/{symbol}", status_code=204)
def remove_watchlist_entry(
    user_id: str,
    symbol: str,
    service: WatchlistService = Depends(get_watchlist),
) -> Response:
    """Remove an asset from a user's watchlist."""
    service.remove(user_id, symbol)
    return Response(status_code=204)
