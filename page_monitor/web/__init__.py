"""HTTP control surface for the page monitor."""

from .app import create_app

__all__ = ["create_app"]
