"""Serve command running the REST API with uvicorn."""

import logging

import typer
import uvicorn

from src.api.app import create_app
from src.cli.output import console
from src.config.settings import Settings

logger = logging.getLogger(__name__)


def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind."),
    port: int = typer.Option(8000, "--port", "-p", help="Port to listen on."),
) -> None:
    """Run the market data REST API.

    Example:
        market-data serve --host 0.0.0.0 --port 8080
    """
    settings = Settings.from_env()
    app = create_app(settings)

    mode = "mock data" if settings.use_mock_data else "live providers"
    console.print(
        f"[bold blue]Serving market data API on http://{host}:{port}[/bold blue] "
        f"({mode})"
    )
    uvicorn.run(app, host=host, port=port, log_config=None)
