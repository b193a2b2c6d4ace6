"""Run the API server locally."""

from typing import Optional

import click

from sunroad.settings import settings


@click.command(name='serve')
@click.option('--host', default=None, help='Bind address (defaults to API_HOST)')
@click.option('--port', default=None, type=int, help='Port (defaults to API_PORT)')
@click.option('--reload', is_flag=True, help='Reload on code changes')
def serve_command(host: Optional[str], port: Optional[int], reload: bool):
    """Serve the autocomplete API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "sunroad.api:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        workers=1 if reload else settings.api_workers,
        reload=reload or settings.debug,
    )
