"""API routers."""

from . import location

__all__ = ["location"]
