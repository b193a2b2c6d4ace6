"""Base command class for shared CLI setup and error reporting."""

import asyncio
import logging

import click

from sunroad.errors import SunroadError
from sunroad.settings import Settings, settings


class CliCommand:
    """Base class for CLI commands.

    Subclasses implement ``execute``; ``run`` maps service errors onto
    ``click.ClickException`` so users see the same message an API caller would.
    """

    def __init__(self, app_settings: Settings = None, verbose: bool = False):
        self.settings = app_settings or settings
        self.verbose = verbose

    def setup_logging(self):
        """Configure root logging for command-line use."""
        logging.basicConfig(
            level=logging.DEBUG if self.verbose else logging.INFO,
            format="%(levelname)s %(name)s: %(message)s",
        )

    def execute(self):
        """Execute command - override in subclasses."""
        raise NotImplementedError

    def run(self):
        self.setup_logging()
        try:
            result = self.execute()
            if asyncio.iscoroutine(result):
                result = asyncio.run(result)
            return result
        except SunroadError as exc:
            if self.verbose:
                click.echo(f"detail: {exc}", err=True)
            raise click.ClickException(exc.client_message())
