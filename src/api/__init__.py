"""REST API for the market data service."""
