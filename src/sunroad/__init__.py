"""Sunroad media normalization and location autocomplete services."""

__version__ = "0.1.0"
