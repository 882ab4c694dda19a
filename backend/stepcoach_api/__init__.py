"""
StepCoach API Module

FastAPI routes and WebSocket handlers for dance practice scoring.
"""

from .routes import router
from .websocket import websocket_endpoint, ConnectionManager

__all__ = [
    "router",
    "websocket_endpoint",
    "ConnectionManager",
]
