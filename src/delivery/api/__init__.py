"""Delivery tracking API package."""

from delivery.api.routes import backend_router, chat_router, tracking_router

__all__ = ["tracking_router", "chat_router", "backend_router"]
