"""
HTTP API for the PropGraph gateway.
"""

from .app import create_app
from .routes import router

__all__ = ["create_app", "router"]
