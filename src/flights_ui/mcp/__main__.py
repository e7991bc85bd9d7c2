"""CLI entry point for the Flights UI MCP server."""

import logging
import sys

import click
import uvicorn

from flights_ui.config import Settings
from flights_ui.mcp.server import create_app

logger = logging.getLogger("flights_ui")


@click.command()
@click.option(
    '--host',
    default=None,
    help='Host to bind the server to (default: FLIGHTS_UI_HOST or localhost)'
)
@click.option(
    '--port',
    default=None,
    type=int,
    help='Port to run the server on (default: FLIGHTS_UI_PORT or 3000)'
)
@click.option(
    '--log-level',
    default=None,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
    help='Logging level for the server and uvicorn'
)
@click.option(
    '--json-response/--sse',
    'json_response',
    default=None,
    help='Answer POST requests with JSON bodies instead of SSE streams'
)
def main(host, port, log_level, json_response):
    """Launch the Flights UI MCP server.

    Serves MCP over streamable HTTP at /mcp and prebuilt UI components at
    /lwc/<namespace-component>.

    Example:
        uv run python -m flights_ui.mcp
        uv run python -m flights_ui.mcp --host 0.0.0.0 --port 8080 --sse
    """
    settings = Settings.from_env().with_overrides(
        host=host,
        port=port,
        log_level=log_level.upper() if log_level else None,
        json_response=json_response,
    )

    # Logs go to stderr, keeping stdout free.
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    app = create_app(settings)
    logger.info("Flights UI MCP server listening at %s/mcp", settings.base_url)

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
