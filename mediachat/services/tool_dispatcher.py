"""
Tool Dispatcher - invokes a selected tool with bounded retries.

Attempt 0 runs with the classifier's arguments; later attempts substitute a
fallback model when one is listed for the tool and attempt number. Failures
are never raised to the caller: exhausting every attempt produces a single
error-summary chunk.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Dict, Optional, Tuple

import structlog

from ..core.exceptions import ToolInvocationError
from ..domain.events import StreamEvent
from ..domain.tool_selection import ToolArgs, ToolSelection
from ..mcp.registry import ToolProviderRegistry

logger = structlog.get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = 3

# tool name -> {attempt number -> model identifier}
FALLBACK_MODELS: Dict[str, Dict[int, str]] = {
    "generateImageFromText": {1: "runware:101@1", 2: "civitai:101055@128078"},
    "transformImage": {1: "runware:101@1", 2: "civitai:101055@128078"},
    "inpaintImage": {1: "runware:102@1", 2: "civitai:101055@128078"},
    "generateVideo": {1: "bytedance:1@1", 2: "minimax:1@1"},
}

VIDEO_MARKERS = (".mp4", ".mov", ".webm", ".m4v", "video")
IMAGE_MARKERS = (".png", ".jpg", ".jpeg", ".webp", ".gif", "image")
MEDIA_URI_PREFIXES = ("http://", "https://", "data:")
VIDEO_PATH_RE = re.compile(r"\.(?:mp4|mov|webm|m4v)(?:[?#]\S*)?$", re.IGNORECASE)
IMAGE_PATH_RE = re.compile(r"\.(?:png|jpe?g|webp|gif)(?:[?#]\S*)?$", re.IGNORECASE)


@dataclass(frozen=True)
class ToolAttempt:
    """One call of the retry loop."""
    attempt: int
    model: Optional[str]
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class DispatchOutcome:
    """Folded result of a dispatch call."""
    tool: str
    attempts: Tuple[ToolAttempt, ...]
    succeeded: bool
    result: Any = None
    text: str = ""

    @property
    def last_error(self) -> Optional[str]:
        failed = [a for a in self.attempts if a.error is not None]
        return failed[-1].error if failed else None


def media_kind(value: str) -> Optional[str]:
    """Media type of a single-token media reference (``"video"`` or ``"image"``), else None."""
    if not value or any(ch.isspace() for ch in value):
        return None

    lower = value.lower()
    if lower.startswith(MEDIA_URI_PREFIXES):
        if any(marker in lower for marker in VIDEO_MARKERS):
            return "video"
        if any(marker in lower for marker in IMAGE_MARKERS):
            return "image"
        return None

    # bare keywords are not enough for paths
    if VIDEO_PATH_RE.search(value):
        return "video"
    if IMAGE_PATH_RE.search(value):
        return "image"
    return None


def format_tool_result(result: Any) -> str:
    """
    Render a raw tool result as markdown.

    Single-token strings (URLs, ``data:`` URIs, relative paths) become media
    references, video checked before image; other strings pass through; lists
    of strings become an enumerated image list; anything else is dumped as a
    JSON block.
    """
    if result is None:
        return "The tool returned no result."

    if isinstance(result, str):
        value = result.strip()
        kind = media_kind(value)
        if kind == "video":
            return f"[Generated video]({value})"
        if kind == "image":
            return f"![Generated image]({value})"
        return value

    if isinstance(result, list) and result and all(isinstance(item, str) for item in result):
        return "\n\n".join(
            f"{index}. ![Image {index}]({url})" for index, url in enumerate(result, start=1)
        )

    return "```json\n" + json.dumps(result, indent=2, ensure_ascii=False, default=str) + "\n```"


def args_for_attempt(args: ToolArgs, attempt: int) -> ToolArgs:
    """Arguments for ``attempt`` (0-based); a new record when a fallback applies."""
    if attempt == 0:
        return args
    fallback = FALLBACK_MODELS.get(args.tool, {}).get(attempt)
    if fallback is None or not args.supports_model:
        return args
    return args.with_model(fallback)


class ToolDispatcher:
    """Runs one tool selection against its provider."""

    def __init__(self, registry: ToolProviderRegistry, max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        self.registry = registry
        self.max_attempts = max(1, max_attempts)
        self.last_outcome: Optional[DispatchOutcome] = None

    async def dispatch(self, selection: ToolSelection) -> AsyncGenerator[StreamEvent, None]:
        """
        Invoke the selected tool, yielding stream events as it progresses.

        After the generator is exhausted ``last_outcome`` holds the attempt
        records and the raw result.
        """
        if not selection.should_dispatch or selection.args is None:
            raise ValueError("Selection is not dispatchable")

        args = selection.args
        tool = args.tool
        provider = self.registry.get(selection.backend)

        yield StreamEvent.tool_call(tool)
        yield StreamEvent.chunk(f"Using tool: {tool}...\n\n")

        attempts: Tuple[ToolAttempt, ...] = ()

        for attempt in range(self.max_attempts):
            attempt_args = args_for_attempt(args, attempt)
            model = getattr(attempt_args, "model", None)

            if attempt > 0:
                if attempt_args is not args:
                    note = f"Retrying with fallback model {model} (attempt {attempt + 1}/{self.max_attempts})...\n\n"
                else:
                    note = f"Retrying (attempt {attempt + 1}/{self.max_attempts})...\n\n"
                yield StreamEvent.chunk(note)

            try:
                result = await provider.call_tool(tool, attempt_args)
            except Exception as e:
                message = e.message if isinstance(e, ToolInvocationError) else str(e) or type(e).__name__
                attempts = attempts + (ToolAttempt(attempt=attempt, model=model, error=message),)
                logger.warning(
                    "Tool attempt failed",
                    tool=tool,
                    attempt=attempt + 1,
                    max_attempts=self.max_attempts,
                    model=model,
                    error=message,
                    error_type=type(e).__name__,
                )
                continue

            attempts = attempts + (ToolAttempt(attempt=attempt, model=model),)
            text = format_tool_result(result)
            self.last_outcome = DispatchOutcome(
                tool=tool, attempts=attempts, succeeded=True, result=result, text=text
            )
            logger.info("Tool call succeeded", tool=tool, attempts=len(attempts), model=model)
            yield StreamEvent.chunk(text)
            return

        last_error = attempts[-1].error if attempts else "unknown error"
        text = f"Tool {tool} failed after {len(attempts)} attempts. Last error: {last_error}"
        self.last_outcome = DispatchOutcome(tool=tool, attempts=attempts, succeeded=False, text=text)
        logger.error("Tool retries exhausted", tool=tool, attempts=len(attempts), error=last_error)
        yield StreamEvent.chunk(text)
