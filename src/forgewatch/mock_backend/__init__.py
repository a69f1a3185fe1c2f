"""
Mock Backend
============
In-memory FastAPI stand-in for the orchestration backend, for local
development of the console.
"""

from .app import create_app
from .state import MockStore
from .websocket import ConnectionManager

__all__ = [
    "create_app",
    "MockStore",
    "ConnectionManager",
]
