"""
Tool providers (image/video generation and video understanding).
"""

from .base import ToolProvider
from .memories import MemoriesProvider
from .protocol import ToolCallRequest, ToolCallResponse, ToolCategory, ToolListResponse, ToolSpec
from .registry import ToolProviderRegistry
from .runware import RunwareProvider

__all__ = [
    "MemoriesProvider",
    "RunwareProvider",
    "ToolCallRequest",
    "ToolCallResponse",
    "ToolCategory",
    "ToolListResponse",
    "ToolProvider",
    "ToolProviderRegistry",
    "ToolSpec",
]
