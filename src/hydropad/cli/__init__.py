"""
Typer CLI for hydropad.

This module exports the Typer application that provides the command-line
interface for delineation, rainfall lookups and runoff analysis.
"""

from .main import app

__all__ = ["app"]
