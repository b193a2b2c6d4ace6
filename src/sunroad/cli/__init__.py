"""Sunroad CLI entry point with lazy command registration."""

from __future__ import annotations

import click

_COMMANDS_REGISTERED = False


def _register_commands_once() -> None:
    global _COMMANDS_REGISTERED
    if _COMMANDS_REGISTERED:
        return

    from .commands import media, serve

    cli.add_command(media.normalize_image_command, name="normalize-image")
    cli.add_command(media.thumb_key_command, name="thumb-key")
    cli.add_command(serve.serve_command, name="serve")

    _COMMANDS_REGISTERED = True


class _LazyCLIGroup(click.Group):
    def list_commands(self, ctx):
        _register_commands_once()
        return super().list_commands(ctx)

    def get_command(self, ctx, cmd_name):
        _register_commands_once()
        return super().get_command(ctx, cmd_name)


@click.group(cls=_LazyCLIGroup)
def cli():
    """Sunroad CLI for media normalization and local serving."""
    pass


if __name__ == "__main__":
    cli()
