"""
Unit tests for ToolProviderRegistry.
"""

from unittest.mock import AsyncMock

import pytest

from mediachat.core.exceptions import UnknownToolError
from mediachat.domain.tool_selection import ToolBackend
from mediachat.mcp.memories import MemoriesProvider
from mediachat.mcp.registry import ToolProviderRegistry
from mediachat.mcp.runware import RunwareProvider


@pytest.fixture
def registry(settings):
    return ToolProviderRegistry.from_settings(settings)


class TestRegistry:
    """Backend lookup"""

    def test_default_providers(self, registry):
        assert isinstance(registry.get(ToolBackend.RUNWARE), RunwareProvider)
        assert isinstance(registry.get(ToolBackend.MEMORIES), MemoriesProvider)

    def test_backend_for_tool(self, registry):
        """Should resolve which backend exposes a tool"""
        assert registry.backend_for_tool("generateVideo") == ToolBackend.RUNWARE
        assert registry.backend_for_tool("getVideoTranscription") == ToolBackend.MEMORIES

    def test_unknown_tool(self, registry):
        with pytest.raises(UnknownToolError) as exc_info:
            registry.backend_for_tool("launchRocket")

        assert exc_info.value.message == "Unknown tool: launchRocket"

    def test_list_tools_has_no_duplicates(self, registry):
        names = [spec.name for spec in registry.list_tools()]

        assert len(names) == 17
        assert len(set(names)) == len(names)

    def test_missing_backend(self):
        with pytest.raises(KeyError):
            ToolProviderRegistry({}).get(ToolBackend.RUNWARE)

    @pytest.mark.asyncio
    async def test_close_continues_after_failure(self, registry):
        """Should close every provider even when one fails"""
        runware = registry.get(ToolBackend.RUNWARE)
        memories = registry.get(ToolBackend.MEMORIES)
        runware.close = AsyncMock(side_effect=RuntimeError("boom"))
        memories.close = AsyncMock()

        await registry.close()

        runware.close.assert_awaited_once()
        memories.close.assert_awaited_once()
