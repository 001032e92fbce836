"""
FastAPI HTTP API for hydropad.

This module provides a REST API over the analysis pipeline, so a browser
front end can request watersheds, rainfall tables, land-use samples and
SWMM exports without talking to the upstream services itself.
"""

from .main import app, create_app

__all__ = ["app", "create_app"]
