"""
Unit tests for CompletionClient and SSEDecoder.

Tests cover:
- Fragment extraction from data lines
- Chunk-boundary independence, including split multibyte characters
- [DONE] termination and undecodable line skipping
- Upstream error statuses and transport failures
- Request headers and payload
- Response stream and self-created client released on every exit path
"""

import json
from unittest.mock import patch

import httpx
import pytest

from mediachat.core.exceptions import UpstreamError
from mediachat.services.completion_client import CompletionClient, SSEDecoder


# ============================================================================
# HELPERS
# ============================================================================

def data_line(content: str) -> str:
    payload = {"choices": [{"delta": {"content": content}}]}
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n"


STREAM_BODY = (
    ": keep-alive\n"
    + data_line("Hola")
    + "\n"
    + data_line(", señor ")
    + data_line("☕")
    + "data: {not json}\n"
    + 'data: {"choices": [{"delta": {}}]}\n'
    + "data: [DONE]\n"
    + data_line("after done")
).encode("utf-8")


REAL_ASYNC_CLIENT = httpx.AsyncClient


class TrackingStream(httpx.AsyncByteStream):
    """Response body that records how far it was read and whether it was closed."""

    def __init__(self, chunks):
        self.chunks = list(chunks)
        self.reads = 0
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            self.reads += 1
            yield chunk

    async def aclose(self):
        self.closed = True


def feed_all(chunks):
    decoder = SSEDecoder()
    fragments = []
    for chunk in chunks:
        fragments.extend(decoder.feed(chunk))
    return fragments, decoder


# ============================================================================
# DECODER
# ============================================================================

class TestSSEDecoder:
    """Incremental line decoding"""

    def test_whole_body(self):
        """Should extract fragments until [DONE]"""
        fragments, decoder = feed_all([STREAM_BODY])

        assert fragments == ["Hola", ", señor ", "☕"]
        assert decoder.done is True

    @pytest.mark.parametrize("size", [1, 2, 3, 7, 64])
    def test_chunking_does_not_matter(self, size):
        """Should produce the same fragments for any chunk size"""
        chunks = [STREAM_BODY[i:i + size] for i in range(0, len(STREAM_BODY), size)]

        fragments, _ = feed_all(chunks)

        assert fragments == ["Hola", ", señor ", "☕"]

    def test_partial_line_is_buffered(self):
        """Should hold an unterminated line until its newline arrives"""
        decoder = SSEDecoder()
        line = data_line("partial").encode()

        assert decoder.feed(line[:-1]) == []
        assert decoder.feed(line[-1:]) == ["partial"]

    def test_crlf_lines(self):
        """Should accept CRLF line endings"""
        fragments, _ = feed_all([data_line("x").replace("\n", "\r\n").encode()])
        assert fragments == ["x"]

    def test_ignores_input_after_done(self):
        decoder = SSEDecoder()
        decoder.feed(b"data: [DONE]\n")

        assert decoder.feed(data_line("late").encode()) == []


# ============================================================================
# CLIENT
# ============================================================================

class TestCompletionClient:
    """Streaming requests against a mock transport"""

    @pytest.mark.asyncio
    async def test_streams_fragments(self, settings):
        """Should yield fragments and send the expected request"""
        captured = {}

        async def body():
            for i in range(0, len(STREAM_BODY), 5):
                yield STREAM_BODY[i:i + 5]

        def handler(request: httpx.Request) -> httpx.Response:
            captured["request"] = request
            return httpx.Response(200, content=body())

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = CompletionClient(settings, client=http)
            fragments = [f async for f in client.stream_chat_completion([{"role": "user", "content": "hi"}])]

            assert http.is_closed is False

        assert fragments == ["Hola", ", señor ", "☕"]
        request = captured["request"]
        assert str(request.url) == "https://openrouter.test/api/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-or-test-key"
        assert request.headers["X-Title"] == settings.openrouter_title
        payload = json.loads(request.content)
        assert payload["stream"] is True
        assert payload["model"] == settings.openrouter_model
        assert payload["messages"] == [{"role": "user", "content": "hi"}]

    @pytest.mark.asyncio
    async def test_error_status(self, settings):
        """Should raise UpstreamError with the reason phrase"""
        transport = httpx.MockTransport(lambda request: httpx.Response(429, text="slow down"))

        async with httpx.AsyncClient(transport=transport) as http:
            client = CompletionClient(settings, client=http)
            with pytest.raises(UpstreamError) as exc_info:
                async for _ in client.stream_chat_completion([{"role": "user", "content": "hi"}]):
                    pass

        assert exc_info.value.status_code == 429
        assert exc_info.value.message == "OpenRouter API error: Too Many Requests"

    @pytest.mark.asyncio
    async def test_transport_error(self, settings):
        """Should wrap transport failures"""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = CompletionClient(settings, client=http)
            with pytest.raises(UpstreamError) as exc_info:
                async for _ in client.stream_chat_completion([]):
                    pass

        assert "ConnectError" in str(exc_info.value)
        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_model_override(self, settings):
        """Should send an explicit model instead of the default"""
        seen = {}

        def handler(request):
            seen["model"] = json.loads(request.content)["model"]
            return httpx.Response(200, content=b"data: [DONE]\n")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = CompletionClient(settings, client=http)
            fragments = [f async for f in client.stream_chat_completion([], model="anthropic/claude-3-haiku")]

        assert fragments == []
        assert seen["model"] == "anthropic/claude-3-haiku"


# ============================================================================
# CLEANUP
# ============================================================================

class TestStreamRelease:
    """The upstream response and the relay's own client are always closed"""

    @pytest.fixture
    def upstream(self):
        """Serve one canned response through the client the relay creates itself."""
        state = {"response": None, "clients": []}

        def build_client(**kwargs):
            http = REAL_ASYNC_CLIENT(transport=httpx.MockTransport(lambda request: state["response"]), **kwargs)
            state["clients"].append(http)
            return http

        with patch("mediachat.services.completion_client.httpx.AsyncClient", side_effect=build_client):
            yield state

    @pytest.mark.asyncio
    async def test_closed_after_done(self, settings, upstream):
        """Should stop reading at [DONE] and close both resources"""
        stream = TrackingStream([
            data_line("Hola").encode(),
            b"data: [DONE]\n",
            data_line("late").encode(),
        ])
        upstream["response"] = httpx.Response(200, stream=stream)

        client = CompletionClient(settings)
        fragments = [f async for f in client.stream_chat_completion([{"role": "user", "content": "hi"}])]

        assert fragments == ["Hola"]
        assert stream.reads == 2
        assert stream.closed is True
        assert len(upstream["clients"]) == 1
        assert upstream["clients"][0].is_closed is True

    @pytest.mark.asyncio
    async def test_closed_after_error_status(self, settings, upstream):
        """Should release the response before raising UpstreamError"""
        stream = TrackingStream([b"upstream unavailable"])
        upstream["response"] = httpx.Response(502, stream=stream)

        client = CompletionClient(settings)
        with pytest.raises(UpstreamError) as exc_info:
            async for _ in client.stream_chat_completion([{"role": "user", "content": "hi"}]):
                pass

        assert exc_info.value.status_code == 502
        assert stream.closed is True
        assert upstream["clients"][0].is_closed is True

    @pytest.mark.asyncio
    async def test_closed_when_consumer_stops_early(self, settings, upstream):
        """Should release everything when the consumer closes the generator mid-stream"""
        stream = TrackingStream([
            data_line("first").encode(),
            data_line("second").encode(),
            b"data: [DONE]\n",
        ])
        upstream["response"] = httpx.Response(200, stream=stream)

        client = CompletionClient(settings)
        fragments = client.stream_chat_completion([{"role": "user", "content": "hi"}])

        assert await fragments.__anext__() == "first"
        await fragments.aclose()

        assert stream.reads == 1
        assert stream.closed is True
        assert upstream["clients"][0].is_closed is True

    @pytest.mark.asyncio
    async def test_injected_client_left_open(self, settings):
        """Should close the response but not a client it was given"""
        stream = TrackingStream([b"data: [DONE]\n"])
        transport = httpx.MockTransport(lambda request: httpx.Response(200, stream=stream))

        async with httpx.AsyncClient(transport=transport) as http:
            client = CompletionClient(settings, client=http)
            fragments = [f async for f in client.stream_chat_completion([])]

            assert fragments == []
            assert stream.closed is True
            assert http.is_closed is False
