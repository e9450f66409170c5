"""API Package.

FastAPI server exposing the sync trigger and run history.
"""

from api.server import create_app, app

__all__ = [
    "create_app",
    "app",
]
