"""
Tool Provider Registry - per-request lookup of tool providers by backend.

A registry is built for each request and closed when the request ends; no
provider client outlives it.
"""

from typing import Dict, List, Optional

import httpx
import structlog

from ..core.config import Settings
from ..core.exceptions import UnknownToolError
from ..domain.tool_selection import ToolBackend
from .base import ToolProvider
from .memories import MemoriesProvider
from .protocol import ToolSpec
from .runware import RunwareProvider

logger = structlog.get_logger(__name__)


class ToolProviderRegistry:
    """Routes tool calls to the provider owning a backend."""

    def __init__(self, providers: Dict[ToolBackend, ToolProvider]):
        self._providers = dict(providers)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        client: Optional[httpx.AsyncClient] = None,
    ) -> "ToolProviderRegistry":
        """Build the default registry (Runware + Memories.ai)."""
        return cls({
            ToolBackend.RUNWARE: RunwareProvider(settings, client=client),
            ToolBackend.MEMORIES: MemoriesProvider(settings, client=client),
        })

    def get(self, backend: ToolBackend) -> ToolProvider:
        provider = self._providers.get(backend)
        if provider is None:
            raise KeyError(f"No provider registered for backend '{backend.value}'")
        return provider

    def list_tools(self) -> List[ToolSpec]:
        specs: List[ToolSpec] = []
        for provider in self._providers.values():
            specs.extend(provider.list_tools())
        return specs

    def backend_for_tool(self, tool_name: str) -> ToolBackend:
        """Resolve the backend exposing ``tool_name``."""
        for backend, provider in self._providers.items():
            if any(spec.name == tool_name for spec in provider.list_tools()):
                return backend
        raise UnknownToolError(tool_name)

    async def close(self) -> None:
        for provider in self._providers.values():
            try:
                await provider.close()
            except Exception as e:
                logger.warning("Failed to close tool provider", backend=provider.backend.value, error=str(e))

    async def __aenter__(self) -> "ToolProviderRegistry":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
