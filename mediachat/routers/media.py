"""
Media endpoints.

Endpoints:
    POST /media/callback - Parse-status notification from the video provider
"""

import secrets

import structlog
from fastapi import APIRouter, Depends, Query

from ..core.config import Settings, get_settings
from ..core.exceptions import AuthenticationError
from ..domain.chat import MediaState
from ..schemas.chat import MediaCallbackRequest
from ..services.conversation_store import ConversationStore, get_conversation_store

logger = structlog.get_logger(__name__)
router = APIRouter()


def _token_matches(token: str, expected: str) -> bool:
    if not expected:
        return False
    return secrets.compare_digest(token.encode("utf-8"), expected.encode("utf-8"))


@router.post("/media/callback", tags=["media"])
async def media_callback(
    body: MediaCallbackRequest,
    token: str = Query(default=""),
    settings: Settings = Depends(get_settings),
    store: ConversationStore = Depends(get_conversation_store),
) -> dict:
    """Update the processing state of every media row carrying ``videoNo``."""
    if not _token_matches(token, settings.memories_callback_token):
        logger.warning("Media callback rejected", video_no=body.video_no)
        raise AuthenticationError("Invalid callback token")

    state = MediaState.from_provider_status(body.status)
    updated = await store.update_media_state(body.video_no, state)

    logger.info("Media callback processed", video_no=body.video_no, status=body.status, state=state.value, updated=updated)
    return {"videoNo": body.video_no, "state": state.value, "updated": updated}
