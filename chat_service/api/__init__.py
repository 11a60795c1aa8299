"""
HTTP API for the chat service.
"""

from chat_service.api.server import ChatServer

__all__ = ["ChatServer"]
