"""HTTP API -- FastAPI app factory and JSON routes."""

from launchpad.api.app import create_app

__all__ = ["create_app"]
