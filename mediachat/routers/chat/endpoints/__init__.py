"""Chat endpoints - HTTP endpoint modules."""

from .conversation_endpoints import router as conversation_router
from .message_endpoints import router as message_router

__all__ = ["conversation_router", "message_router"]
