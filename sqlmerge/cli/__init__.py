"""Command line interface for sqlmerge."""

from .main import main

__all__ = ["main"]
