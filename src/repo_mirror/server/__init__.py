"""HTTP transport for the repository mirror."""

from .app import create_app

__all__ = ["create_app"]
