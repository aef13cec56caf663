"""
MCP Protocol - Type definitions shared by the tool providers.

Defines the messages used for tool discovery and direct invocation:
- ToolSpec: Tool capability advertisement
- ToolCallRequest/Response: Direct invocation messages
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, Field

from ..domain.tool_selection import ToolArgs, ToolBackend


class ToolCategory(str, Enum):
    """Tool categories for discovery and organization."""
    IMAGE_GENERATION = "image_generation"
    IMAGE_EDITING = "image_editing"
    VIDEO_GENERATION = "video_generation"
    VIDEO_UNDERSTANDING = "video_understanding"
    PROMPT = "prompt"


class ToolSpec(BaseModel):
    """Tool specification - advertises tool capabilities."""
    name: str = Field(..., description="Unique tool identifier (e.g., 'generateImageFromText')")
    description: str = Field(..., description="Tool purpose")
    backend: ToolBackend
    category: ToolCategory
    input_schema: Dict[str, Any] = Field(..., alias="inputSchema", description="JSON Schema for the arguments")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_args_model(
        cls,
        args_model: Type[ToolArgs],
        description: str,
        category: ToolCategory,
    ) -> "ToolSpec":
        """Build a spec whose input schema is the argument record's JSON schema."""
        schema = args_model.model_json_schema(by_alias=True)
        schema.get("properties", {}).pop("tool", None)
        if "required" in schema:
            schema["required"] = [name for name in schema["required"] if name != "tool"]
        return cls(
            name=args_model.model_fields["tool"].default,
            description=description,
            backend=args_model.backend,
            category=category,
            input_schema=schema,
        )


class ToolListResponse(BaseModel):
    """Tools advertised by every configured provider."""
    tools: List[ToolSpec] = Field(default_factory=list)


class ToolCallRequest(BaseModel):
    """Direct invocation of a single tool."""
    name: str = Field(..., description="Tool name")
    args: Dict[str, Any] = Field(default_factory=dict, description="Tool arguments")


class ToolCallResponse(BaseModel):
    """Result of a direct tool invocation."""
    success: bool
    tool: str
    result: Optional[Any] = None
    error: Optional[str] = None
    duration_ms: float = Field(..., description="Execution time in milliseconds")
