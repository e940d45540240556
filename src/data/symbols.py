"""Static symbol registry: classification and provider preferences."""

from src.data.models import AssetCategory, AssetType, MarketAsset, SearchResult

CRYPTO_SYMBOLS = frozenset(
    {
        "BTC",
        "ETH",
        "USDT",
        "BNB",
        "SOL",
        "XRP",
        "ADA",
        "DOGE",
        "DOT",
        "AVAX",
        "MATIC",
        "LTC",
        "USDC",
    }
)

METAL_NAMES = {
    "XAU": "Gold",
    "XAG": "Silver",
    "XPT": "Platinum",
    "XPD": "Palladium",
}

METAL_SYMBOLS = frozenset(METAL_NAMES)

# Provider names, as reported in AssetPrice.source
COINGECKO = "CoinGecko"
COINMARKETCAP = "CoinMarketCap"
ALPHA_VANTAGE = "Alpha Vantage"
METALS_API = "Metals-API"
MOCK = "Mock"

# BTC and ETH have the most reliable free CoinGecko coverage; other coins are
# looked up on CoinMarketCap first.
COINGECKO_FIRST = frozenset({"BTC", "ETH"})

POPULAR_SYMBOLS = ("BTC", "ETH", "SOL", "AAPL", "MSFT", "GOOGL", "XAU", "XAG")

STOCK_CATALOG = {
    "AAPL": "Apple Inc.",
    "MSFT": "Microsoft Corporation",
    "GOOGL": "Alphabet Inc.",
    "AMZN": "Amazon.com Inc.",
    "NVDA": "NVIDIA Corporation",
    "TSLA": "Tesla Inc.",
    "META": "Meta Platforms Inc.",
}


def normalize_symbol(symbol: str) -> str:
    """Upper-case a symbol and strip exchange suffixes such as ``:IND``.

    Raises:
        ValueError: If the symbol is empty after normalization
    """
    cleaned = symbol.split(":")[0].strip().upper()
    if not cleaned:
        raise ValueError(f"Invalid symbol: {symbol!r}")
    return cleaned


def classify_symbol(symbol: str) -> AssetType:
    """Classify a symbol as crypto, metal or stock.

    Anything not on the crypto or metal allow-lists is treated as a stock.
    """
    cleaned = normalize_symbol(symbol)
    if cleaned in CRYPTO_SYMBOLS:
        return AssetType.CRYPTO
    if cleaned in METAL_SYMBOLS:
        return AssetType.METAL
    return AssetType.STOCK


def provider_order(symbol: str, asset_type: AssetType | None = None) -> list[str]:
    """Ordered provider names to try for a symbol's latest price.

    Args:
        symbol: Asset symbol
        asset_type: Routing class; classified from the symbol when omitted

    Returns:
        Provider names, primary first
    """
    cleaned = normalize_symbol(symbol)
    asset_type = asset_type or classify_symbol(cleaned)

    if asset_type == AssetType.CRYPTO:
        if cleaned in COINGECKO_FIRST:
            return [COINGECKO, COINMARKETCAP]
        return [COINMARKETCAP, COINGECKO]
    if asset_type == AssetType.METAL:
        return [METALS_API]
    return [ALPHA_VANTAGE]


def static_catalog() -> list[MarketAsset]:
    """Stock and metal assets that are always listed."""
    stocks = [
        MarketAsset(symbol=symbol, name=name, category=AssetCategory.STOCKS)
        for symbol, name in STOCK_CATALOG.items()
    ]
    metals = [
        MarketAsset(symbol=symbol, name=name, category=AssetCategory.PRECIOUS_METAL)
        for symbol, name in METAL_NAMES.items()
    ]
    return stocks + metals


def history_provider_order(
    symbol: str, asset_type: AssetType | None = None
) -> list[str]:
    """Ordered provider names to try for a symbol's daily history.

    Crypto history always starts with CoinGecko, whose market chart endpoint
    is available on the free tier.
    """
    asset_type = asset_type or classify_symbol(symbol)
    if asset_type == AssetType.CRYPTO:
        return [COINGECKO, COINMARKETCAP]
    if asset_type == AssetType.METAL:
        return [METALS_API]
    return [ALPHA_VANTAGE]


def search_metals(query: str) -> list[SearchResult]:
    """Match metals by symbol or name, case-insensitively."""
    needle = query.strip().lower()
    return [
        SearchResult(symbol=symbol, name=name, asset_type=AssetType.METAL)
        for symbol, name in METAL_NAMES.items()
        if needle in symbol.lower() or needle in name.lower()
    ]
