"""Main entry point for the market data service.

Equivalent to the ``market-data`` console script, e.g.
``python main.py serve --port 8000``.
"""

from src.cli.main import cli_main

if __name__ == "__main__":
    cli_main()
