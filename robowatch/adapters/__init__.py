"""Adapter modules for external integrations."""

from .websocket import WebSocketTransport

__all__ = ["WebSocketTransport"]
