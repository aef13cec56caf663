"""
Chat Router Package - chat API endpoints.

Structure:
    endpoints/
        message_endpoints.py       - POST /chat/send
        conversation_endpoints.py  - conversation CRUD
    handlers/
        streaming_handler.py       - SSE streaming logic
"""

from fastapi import APIRouter

from .endpoints.conversation_endpoints import router as conversation_router
from .endpoints.message_endpoints import router as message_router

router = APIRouter()
router.include_router(message_router)
router.include_router(conversation_router)

__all__ = ["router"]
