"""Command line interface (``supasheet`` / ``python -m supasheet.cli``)."""

from .app import main

__all__ = ["main"]
