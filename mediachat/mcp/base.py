"""Base abstractions for tool providers."""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
import structlog

from ..core.exceptions import ToolInvocationError, UnknownToolError
from ..domain.tool_selection import ToolArgs, ToolBackend, parse_tool_args
from .protocol import ToolSpec

logger = structlog.get_logger(__name__)

ToolHandler = Callable[[Any], Awaitable[Any]]


class ToolProvider(ABC):
    """
    A backend exposing a catalog of tools over HTTP.

    Providers are short-lived: one instance per request, closed when the
    request finishes. An injected ``httpx.AsyncClient`` is never closed by
    the provider.
    """

    backend: ToolBackend

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = 120.0):
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout, connect=10.0))
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ToolProvider":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @abstractmethod
    def list_tools(self) -> List[ToolSpec]:
        """Tools this provider exposes."""

    @abstractmethod
    def _handlers(self) -> Dict[str, ToolHandler]:
        """Map of tool name to coroutine taking the validated argument record."""

    async def call_tool(self, name: str, args: Any) -> Any:
        """
        Invoke ``name`` with ``args``.

        Args:
            name: Tool name from ``list_tools``
            args: A validated ``ToolArgs`` record or a raw argument map

        Returns:
            Raw tool result (URL string, list of URLs, or provider payload)

        Raises:
            UnknownToolError: Tool not exposed by this provider
            ToolInvocationError: Provider call failed
        """
        handler = self._handlers().get(name)
        if handler is None:
            raise UnknownToolError(name)

        if not isinstance(args, ToolArgs):
            args = parse_tool_args(name, dict(args or {}))

        logger.info("Calling tool", backend=self.backend.value, tool=name)
        try:
            return await handler(args)
        except ToolInvocationError:
            raise
        except httpx.HTTPError as e:
            raise ToolInvocationError(name, f"{type(e).__name__}: {e}") from e

    @staticmethod
    def _raise_for_status(tool: str, provider: str, response: httpx.Response) -> None:
        if response.is_success:
            return
        logger.error(
            "Tool provider returned error status",
            provider=provider,
            tool=tool,
            status_code=response.status_code,
            body=response.text[:500],
        )
        raise ToolInvocationError(
            tool,
            f"{provider} API error: {response.status_code} - {response.text[:200]}",
            status_code=response.status_code,
        )
