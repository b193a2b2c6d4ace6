"""CLI commands package."""

from . import (
    media,
    serve,
)

__all__ = [
    'media',
    'serve',
]
