"""
Completion client for OpenRouter-compatible chat completion APIs.

Streams ``choices[0].delta.content`` fragments from a server-sent event
response.
"""

import codecs
import json
from typing import Any, AsyncGenerator, Dict, List, Optional

import httpx
import structlog

from ..core.config import Settings, get_settings
from ..core.exceptions import UpstreamError

logger = structlog.get_logger(__name__)

DATA_PREFIX = "data: "
DONE_MARKER = "[DONE]"


def _delta_content(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    delta = choices[0].get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    return content if isinstance(content, str) and content else None


class SSEDecoder:
    """
    Incremental decoder for ``data:`` event lines.

    Bytes are decoded with an incremental UTF-8 decoder, appended to a rolling
    buffer and split on newlines; the trailing segment stays buffered until a
    later read terminates it. Output is therefore identical however the input
    bytes are chunked.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.done = False

    def feed(self, data: bytes) -> List[str]:
        """Consume raw bytes and return the content fragments completed by them."""
        if self.done:
            return []

        self._buffer += self._decoder.decode(data)
        *lines, self._buffer = self._buffer.split("\n")

        fragments: List[str] = []
        for line in lines:
            line = line.rstrip("\r")
            if not line.startswith(DATA_PREFIX):
                continue

            payload = line[len(DATA_PREFIX):]
            if payload == DONE_MARKER:
                self.done = True
                break

            try:
                parsed = json.loads(payload)
            except ValueError:
                logger.debug("Skipping undecodable stream line", line=payload[:200])
                continue

            content = _delta_content(parsed)
            if content:
                fragments.append(content)

        return fragments


class CompletionClient:
    """Short-lived client for one or more streaming completion requests."""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings or get_settings()
        self._client = client

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.openrouter_api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self.settings.openrouter_referer,
            "X-Title": self.settings.openrouter_title,
        }

    async def stream_chat_completion(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
    ) -> AsyncGenerator[str, None]:
        """
        Stream a chat completion.

        Args:
            messages: Ordered history of ``{"role", "content"}`` entries
            model: Model identifier (defaults to ``openrouter_model``)

        Yields:
            Non-empty text fragments in arrival order

        Raises:
            UpstreamError: Non-2xx status or transport failure
        """
        model = model or self.settings.openrouter_model
        url = f"{self.settings.openrouter_base_url.rstrip('/')}/chat/completions"

        owns_client = self._client is None
        client = self._client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.settings.openrouter_timeout, connect=10.0)
        )

        logger.info("Starting completion stream", model=model, message_count=len(messages))

        try:
            async with client.stream(
                "POST",
                url,
                json={"model": model, "messages": messages, "stream": True},
                headers=self._headers(),
            ) as response:
                if not response.is_success:
                    logger.error(
                        "Completion provider returned error status",
                        status_code=response.status_code,
                        reason=response.reason_phrase,
                    )
                    raise UpstreamError(
                        f"OpenRouter API error: {response.reason_phrase}",
                        status_code=response.status_code,
                    )

                decoder = SSEDecoder()
                async for raw in response.aiter_bytes():
                    for fragment in decoder.feed(raw):
                        yield fragment
                    if decoder.done:
                        return
        except httpx.HTTPError as e:
            logger.error("Completion stream transport error", error=str(e), error_type=type(e).__name__)
            raise UpstreamError(f"OpenRouter request failed: {type(e).__name__}: {e}") from e
        finally:
            if owns_client:
                await client.aclose()
