"""
Memories.ai provider - video upload and video understanding tools.

Every endpoint answers with an envelope ``{code, msg, data, failed}``; a
non-"0000" code flagged as failed is an application error even when the HTTP
status is 200.
"""

from typing import Any, Dict, List, Optional

import httpx
import structlog

from ..core.config import Settings
from ..core.exceptions import ToolInvocationError
from ..domain.tool_selection import (
    ChatWithPersonalMediaArgs,
    ChatWithVideosArgs,
    GenerateSummaryArgs,
    GetAudioTranscriptionArgs,
    GetVideoTranscriptionArgs,
    ToolBackend,
    UploadVideoFromPlatformArgs,
    UploadVideoFromUrlArgs,
    VideoMarketerChatArgs,
)
from .base import ToolHandler, ToolProvider
from .protocol import ToolCategory, ToolSpec

logger = structlog.get_logger(__name__)

DEFAULT_UNIQUE_ID = "default"


def build_callback_url(settings: Settings) -> Optional[str]:
    """Parse-status callback URL, carrying the shared token as a query parameter."""
    if not settings.memories_callback_url:
        return None
    url = httpx.URL(settings.memories_callback_url)
    if settings.memories_callback_token:
        url = url.copy_merge_params({"token": settings.memories_callback_token})
    return str(url)


class MemoriesProvider(ToolProvider):
    """Tool provider backed by the Memories.ai REST API."""

    backend = ToolBackend.MEMORIES

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        super().__init__(client=client, timeout=settings.memories_timeout)
        self.api_key = settings.memories_api_key
        self.base_url = settings.memories_base_url.rstrip("/")
        self.callback_url = build_callback_url(settings)

    def list_tools(self) -> List[ToolSpec]:
        understanding = ToolCategory.VIDEO_UNDERSTANDING
        return [
            ToolSpec.from_args_model(UploadVideoFromUrlArgs, "Upload a video from a direct streaming URL (mp4, etc.)", understanding),
            ToolSpec.from_args_model(UploadVideoFromPlatformArgs, "Upload videos from TikTok, YouTube, or Instagram URLs", understanding),
            ToolSpec.from_args_model(ChatWithVideosArgs, "Ask questions about uploaded videos using their video IDs", understanding),
            ToolSpec.from_args_model(VideoMarketerChatArgs, "Chat with a database of public social videos for market research", understanding),
            ToolSpec.from_args_model(ChatWithPersonalMediaArgs, "Ask questions about all your uploaded videos", understanding),
            ToolSpec.from_args_model(GetVideoTranscriptionArgs, "Get full video transcription (visual + audio)", understanding),
            ToolSpec.from_args_model(GetAudioTranscriptionArgs, "Get audio-only transcription from video", understanding),
            ToolSpec.from_args_model(GenerateSummaryArgs, "Generate chapter or topic summary for a video", understanding),
        ]

    def _handlers(self) -> Dict[str, ToolHandler]:
        return {
            "uploadVideoFromURL": self.upload_video_from_url,
            "uploadVideoFromPlatform": self.upload_video_from_platform,
            "chatWithVideos": self.chat_with_videos,
            "videoMarketerChat": self.video_marketer_chat,
            "chatWithPersonalMedia": self.chat_with_personal_media,
            "getVideoTranscription": self.get_video_transcription,
            "getAudioTranscription": self.get_audio_transcription,
            "generateSummary": self.generate_summary,
        }

    # ========================================================================
    # Transport
    # ========================================================================

    async def _request(
        self,
        tool: str,
        endpoint: str,
        method: str = "POST",
        body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Any:
        """Call an endpoint and unwrap the response envelope."""
        url = f"{self.base_url}{endpoint}"
        logger.debug("Memories.ai request", method=method, endpoint=endpoint)

        response = await self.client.request(
            method,
            url,
            json=body,
            params=params,
            headers={"Authorization": self.api_key},
        )
        self._raise_for_status(tool, "Memories.ai", response)

        envelope = response.json()
        if envelope.get("code") != "0000" and envelope.get("failed"):
            raise ToolInvocationError(tool, f"Memories.ai error: {envelope.get('msg', 'unknown error')}")

        return envelope.get("data")

    @staticmethod
    def _chat_content(data: Any) -> Any:
        if isinstance(data, dict) and "content" in data:
            return data["content"]
        return data

    # ========================================================================
    # Upload
    # ========================================================================

    async def upload_video_from_url(self, args: UploadVideoFromUrlArgs) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "url": args.url,
            "unique_id": args.unique_id or DEFAULT_UNIQUE_ID,
        }
        if self.callback_url:
            body["callback"] = self.callback_url

        data = await self._request(args.tool, "/upload_url", body=body)
        logger.info("Video uploaded from URL", video_no=(data or {}).get("videoNo"))
        return data or {}

    async def upload_video_from_platform(self, args: UploadVideoFromPlatformArgs) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "video_urls": list(args.video_urls),
            "unique_id": args.unique_id or DEFAULT_UNIQUE_ID,
        }
        if self.callback_url:
            body["callback_url"] = self.callback_url

        data = await self._request(args.tool, "/scraper_url", body=body)
        return data or {}

    # ========================================================================
    # Chat
    # ========================================================================

    async def chat_with_videos(self, args: ChatWithVideosArgs) -> Any:
        if not args.video_nos:
            raise ToolInvocationError(args.tool, "No video IDs provided")

        data = await self._request(args.tool, "/chat", body={
            "video_nos": list(args.video_nos),
            "prompt": args.prompt,
            "session_id": "",
            "unique_id": args.unique_id or DEFAULT_UNIQUE_ID,
        })
        return self._chat_content(data)

    async def video_marketer_chat(self, args: VideoMarketerChatArgs) -> Any:
        data = await self._request(args.tool, "/marketer_chat", body={
            "prompt": args.prompt,
            "session_id": "",
            "unique_id": DEFAULT_UNIQUE_ID,
            "type": args.platform,
        })
        return self._chat_content(data)

    async def chat_with_personal_media(self, args: ChatWithPersonalMediaArgs) -> Any:
        data = await self._request(args.tool, "/chat_personal", body={
            "prompt": args.prompt,
            "session_id": "",
            "unique_id": args.unique_id or DEFAULT_UNIQUE_ID,
        })
        return self._chat_content(data)

    # ========================================================================
    # Transcription / summary
    # ========================================================================

    def _video_params(self, tool: str, video_no: Optional[str], unique_id: Optional[str]) -> Dict[str, str]:
        if not video_no:
            raise ToolInvocationError(tool, "No video ID provided")
        return {"video_no": video_no, "unique_id": unique_id or DEFAULT_UNIQUE_ID}

    async def get_video_transcription(self, args: GetVideoTranscriptionArgs) -> List[Dict[str, Any]]:
        params = self._video_params(args.tool, args.video_no, args.unique_id)
        data = await self._request(args.tool, "/get_video_transcription", method="GET", params=params)
        return (data or {}).get("transcriptions") or []

    async def get_audio_transcription(self, args: GetAudioTranscriptionArgs) -> List[Dict[str, Any]]:
        params = self._video_params(args.tool, args.video_no, args.unique_id)
        data = await self._request(args.tool, "/get_audio_transcription", method="GET", params=params)
        return (data or {}).get("transcriptions") or []

    async def generate_summary(self, args: GenerateSummaryArgs) -> Dict[str, Any]:
        params = self._video_params(args.tool, args.video_no, args.unique_id)
        params["type"] = args.summary_type
        data = await self._request(args.tool, "/generate_summary", method="GET", params=params)
        return data or {}
