"""Web package for SeuCantto reviews."""

from .app import StorefrontApp, create_app

__all__ = ["StorefrontApp", "create_app"]
