"""HTTP surface: FastAPI app, routes and error mapping."""

from seasonboard.api.app import create_app

__all__ = ["create_app"]
