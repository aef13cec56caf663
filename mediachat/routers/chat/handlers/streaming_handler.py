"""
Streaming Handler - SSE chat response handler.

Drives one of {completion stream, tool dispatch} for a single user message,
forwards every fragment to the client and finalizes the exchange.

Responsibilities:
    - Ownership check before any work
    - Persist the user message, then exactly one assistant message
    - Convert pipeline failures into chat text
    - Terminate every stream with exactly one ``done`` event
"""

from contextlib import aclosing
from enum import Enum
from typing import AsyncGenerator, Callable, Dict, List, Optional

import structlog

from ....core.config import Settings
from ....domain.chat import MediaRef, MediaState, MessageRole
from ....domain.events import StreamEvent, StreamEventType
from ....domain.tool_selection import ToolSelection, UploadVideoFromUrlArgs
from ....mcp.registry import ToolProviderRegistry
from ....schemas.chat import SendMessageRequest
from ....services.completion_client import CompletionClient
from ....services.context_assembler import ContextAssembler
from ....services.conversation_store import ConversationStore
from ....services.intent_classifier import IntentClassifier, resolve_media_references
from ....services.tool_dispatcher import DispatchOutcome, ToolDispatcher

logger = structlog.get_logger(__name__)

TITLE_MAX_LENGTH = 50


class StreamState(str, Enum):
    """Lifecycle of one chat-send stream"""
    INIT = "init"
    STREAMING = "streaming"
    DONE = "done"
    ERROR = "error"
    CLOSED = "closed"


def derive_title(content: str) -> str:
    """First 50 characters of the opening message, with an ellipsis when cut."""
    title = content[:TITLE_MAX_LENGTH]
    if len(content) > TITLE_MAX_LENGTH:
        title += "..."
    return title


class StreamingHandler:
    """
    Handles streaming SSE responses for chat messages.

    Collaborators are injected so one handler serves one request; the tool
    provider registry is only built when a tool is actually dispatched.
    """

    def __init__(
        self,
        settings: Settings,
        store: ConversationStore,
        classifier: Optional[IntentClassifier] = None,
        completion_client: Optional[CompletionClient] = None,
        registry_factory: Optional[Callable[[], ToolProviderRegistry]] = None,
    ):
        self.settings = settings
        self.store = store
        self.classifier = classifier or IntentClassifier()
        self.completion_client = completion_client or CompletionClient(settings)
        self.registry_factory = registry_factory or (lambda: ToolProviderRegistry.from_settings(settings))
        self.assembler = ContextAssembler(store)
        self.state = StreamState.INIT
        self._registry: Optional[ToolProviderRegistry] = None

    async def handle_send(
        self,
        request: SendMessageRequest,
        user_id: str,
    ) -> AsyncGenerator[Dict[str, str], None]:
        """
        Handle one chat-send request.

        Args:
            request: SendMessageRequest from the endpoint
            user_id: Authenticated user ID

        Yields:
            dict: SSE events with format {"event": str, "data": str}
        """
        conversation_id = request.conversation_id
        self.state = StreamState.INIT

        try:
            conversation = await self.store.find_conversation(conversation_id, user_id)
            if conversation is None:
                logger.warning("Conversation not found or not owned", conversation_id=conversation_id, user_id=user_id)
                yield StreamEvent.done().to_sse()
                return

            try:
                await self.store.insert_message(conversation_id, MessageRole.USER, request.content)
                history = await self.assembler.build(conversation_id)
                media = await self.store.list_media_for_conversation(conversation_id)
            except Exception as e:
                logger.error("Failed to prepare chat context", conversation_id=conversation_id, error=str(e))
                yield StreamEvent.chunk(f"Error: {e}").to_sse()
                yield StreamEvent.done().to_sse()
                return

            # history[0] is the system prompt
            is_first_exchange = len(history) - 1 == 1

            self.state = StreamState.STREAMING
            parts: List[str] = []

            try:
                async with aclosing(self._produce(conversation_id, request.content, history, media)) as events:
                    async for event in events:
                        if event.type == StreamEventType.CHUNK and event.content:
                            parts.append(event.content)
                        yield event.to_sse()
                self.state = StreamState.DONE
            except Exception as e:
                self.state = StreamState.ERROR
                logger.error(
                    "Chat stream failed",
                    conversation_id=conversation_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                error_text = f"Error: {e}" if str(e) else f"Error: {type(e).__name__}"
                parts.append(error_text)
                yield StreamEvent.chunk(error_text).to_sse()

            message_id = await self._finalize(
                conversation_id,
                request.content,
                "".join(parts),
                is_first_exchange,
            )
            yield StreamEvent.done(message_id).to_sse()

        finally:
            if self._registry is not None:
                await self._registry.close()
                self._registry = None
            logger.debug("Chat stream closed", conversation_id=conversation_id, final_state=self.state.value)
            self.state = StreamState.CLOSED

    # ========================================================================
    # Sources
    # ========================================================================

    async def _produce(
        self,
        conversation_id: str,
        content: str,
        history: List[Dict[str, str]],
        media: List[MediaRef],
    ) -> AsyncGenerator[StreamEvent, None]:
        selection = self.classifier.classify(content, media)

        if not selection.should_dispatch:
            async with aclosing(self._complete(history)) as events:
                async for event in events:
                    yield event
            return

        async with aclosing(self._dispatch(conversation_id, selection, history, media)) as events:
            async for event in events:
                yield event

    async def _complete(self, history: List[Dict[str, str]]) -> AsyncGenerator[StreamEvent, None]:
        async with aclosing(self.completion_client.stream_chat_completion(history)) as fragments:
            async for fragment in fragments:
                yield StreamEvent.chunk(fragment)

    async def _dispatch(
        self,
        conversation_id: str,
        selection: ToolSelection,
        history: List[Dict[str, str]],
        media: List[MediaRef],
    ) -> AsyncGenerator[StreamEvent, None]:
        injection = resolve_media_references(selection, media)
        note = injection.describe()
        if injection.unresolved:
            if not injection.pending:
                # only failed uploads in the conversation, answer as plain chat
                logger.info("No usable media for tool request", tool=selection.tool_name)
                async with aclosing(self._complete(history)) as events:
                    async for event in events:
                        yield event
                return
            yield StreamEvent.chunk(note)
            return
        if note:
            yield StreamEvent.chunk(note)

        self._registry = self.registry_factory()
        dispatcher = ToolDispatcher(self._registry, max_attempts=self.settings.tool_max_attempts)

        async with aclosing(dispatcher.dispatch(injection.selection)) as events:
            async for event in events:
                yield event

        if dispatcher.last_outcome is not None:
            await self._register_media(conversation_id, injection.selection, dispatcher.last_outcome)

    async def _register_media(
        self,
        conversation_id: str,
        selection: ToolSelection,
        outcome: DispatchOutcome,
    ) -> None:
        """Record successful URL uploads so later analysis requests can find them."""
        if not outcome.succeeded or not isinstance(selection.args, UploadVideoFromUrlArgs):
            return
        if not isinstance(outcome.result, dict) or not outcome.result.get("videoNo"):
            return

        result = outcome.result
        try:
            await self.store.add_media(
                conversation_id,
                media_id=result["videoNo"],
                name=result.get("videoName") or selection.args.url.rsplit("/", 1)[-1],
                state=MediaState.from_provider_status(result.get("videoStatus")),
                url=selection.args.url,
            )
        except Exception as e:
            logger.error(
                "Failed to register uploaded media",
                conversation_id=conversation_id,
                video_no=result.get("videoNo"),
                error=str(e),
            )

    # ========================================================================
    # Finalization
    # ========================================================================

    async def _finalize(
        self,
        conversation_id: str,
        user_content: str,
        response_text: str,
        is_first_exchange: bool,
    ) -> Optional[str]:
        """
        Persist the assistant message and conversation metadata.

        Returns the assistant message id, or None when persistence failed.
        """
        try:
            message = await self.store.insert_message(conversation_id, MessageRole.ASSISTANT, response_text)
            await self.store.touch_conversation(conversation_id)
            if is_first_exchange:
                await self.store.set_title(conversation_id, derive_title(user_content))
        except Exception as e:
            logger.error(
                "Failed to persist chat exchange",
                conversation_id=conversation_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        logger.info(
            "Chat exchange persisted",
            conversation_id=conversation_id,
            message_id=message.id,
            state=self.state.value,
            response_chars=len(response_text),
        )
        return message.id
