"""
Tool selection - the classifier's verdict for a single message.

Each tool has its own argument record; the records form a tagged union
discriminated by ``tool`` so arguments are validated once, when the selection
is built, instead of failing late inside a provider call.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from typing_extensions import Annotated


class ToolBackend(str, Enum):
    """Tool-providing backends"""
    RUNWARE = "runware"      # image / video generation
    MEMORIES = "memories"    # video upload and understanding


DEFAULT_IMAGE_MODEL = "runware:100@1"
DEFAULT_VIDEO_MODEL = "klingai:5@3"
DEFAULT_MASK_MODEL = "runware:35@1"


class ToolArgs(BaseModel):
    """Base class for per-tool argument records."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="forbid")

    backend: ClassVar[ToolBackend]
    # "many" -> list of video ids, "one" -> single video id, None -> not media bound
    media_binding: ClassVar[Optional[str]] = None

    @property
    def supports_model(self) -> bool:
        return "model" in type(self).model_fields

    def with_model(self, model: str) -> "ToolArgs":
        if not self.supports_model:
            return self
        return self.model_copy(update={"model": model})

    def media_ids(self) -> List[str]:
        return []

    def with_media_ids(self, media_ids: List[str]) -> "ToolArgs":
        return self

    def to_payload(self) -> Dict[str, Any]:
        """Arguments as sent to ``ToolProvider.call_tool``."""
        return self.model_dump(by_alias=True, exclude={"tool"}, exclude_none=True)


# ----------------------------------------------------------------------------
# Runware
# ----------------------------------------------------------------------------

class GenerateImageArgs(ToolArgs):
    backend: ClassVar[ToolBackend] = ToolBackend.RUNWARE
    tool: Literal["generateImageFromText"] = "generateImageFromText"
    prompt: str = Field(..., min_length=1)
    model: str = DEFAULT_IMAGE_MODEL
    width: int = 512
    height: int = 512


class CaptionImageArgs(ToolArgs):
    backend: ClassVar[ToolBackend] = ToolBackend.RUNWARE
    tool: Literal["captionImage"] = "captionImage"
    image_url: str = Field(..., alias="imageURL")


class TransformImageArgs(ToolArgs):
    backend: ClassVar[ToolBackend] = ToolBackend.RUNWARE
    tool: Literal["transformImage"] = "transformImage"
    image_url: str = Field(..., alias="imageURL")
    prompt: str = Field(..., min_length=1)
    model: str = DEFAULT_IMAGE_MODEL
    strength: float = Field(default=0.7, ge=0.0, le=1.0)


class InpaintImageArgs(ToolArgs):
    backend: ClassVar[ToolBackend] = ToolBackend.RUNWARE
    tool: Literal["inpaintImage"] = "inpaintImage"
    image_url: str = Field(..., alias="imageURL")
    mask_url: Optional[str] = Field(default=None, alias="maskURL")
    prompt: str = Field(..., min_length=1)
    model: str = DEFAULT_IMAGE_MODEL


class RemoveBackgroundArgs(ToolArgs):
    backend: ClassVar[ToolBackend] = ToolBackend.RUNWARE
    tool: Literal["removeBackground"] = "removeBackground"
    image_url: str = Field(..., alias="imageURL")


class UpscaleImageArgs(ToolArgs):
    backend: ClassVar[ToolBackend] = ToolBackend.RUNWARE
    tool: Literal["upscaleImage"] = "upscaleImage"
    image_url: str = Field(..., alias="imageURL")
    upscale_factor: int = Field(default=2, ge=2, le=4, alias="upscaleFactor")


class GenerateMaskArgs(ToolArgs):
    backend: ClassVar[ToolBackend] = ToolBackend.RUNWARE
    tool: Literal["generateMask"] = "generateMask"
    image_url: str = Field(..., alias="imageURL")
    model: str = DEFAULT_MASK_MODEL


class GenerateVideoArgs(ToolArgs):
    backend: ClassVar[ToolBackend] = ToolBackend.RUNWARE
    tool: Literal["generateVideo"] = "generateVideo"
    prompt: str = Field(..., min_length=1)
    model: str = DEFAULT_VIDEO_MODEL
    image_url: Optional[str] = Field(default=None, alias="imageURL")
    duration: int = Field(default=5, ge=1, le=10)


class EnhancePromptArgs(ToolArgs):
    backend: ClassVar[ToolBackend] = ToolBackend.RUNWARE
    tool: Literal["enhancePrompt"] = "enhancePrompt"
    prompt: str = Field(..., min_length=1)
    max_length: int = Field(default=300, ge=12, le=400, alias="promptMaxLength")


# ----------------------------------------------------------------------------
# Memories.ai
# ----------------------------------------------------------------------------

class UploadVideoFromUrlArgs(ToolArgs):
    backend: ClassVar[ToolBackend] = ToolBackend.MEMORIES
    tool: Literal["uploadVideoFromURL"] = "uploadVideoFromURL"
    url: str
    unique_id: Optional[str] = Field(default=None, alias="uniqueId")


class UploadVideoFromPlatformArgs(ToolArgs):
    backend: ClassVar[ToolBackend] = ToolBackend.MEMORIES
    tool: Literal["uploadVideoFromPlatform"] = "uploadVideoFromPlatform"
    video_urls: List[str] = Field(..., min_length=1, alias="videoUrls")
    unique_id: Optional[str] = Field(default=None, alias="uniqueId")


class ChatWithVideosArgs(ToolArgs):
    backend: ClassVar[ToolBackend] = ToolBackend.MEMORIES
    media_binding: ClassVar[Optional[str]] = "many"
    tool: Literal["chatWithVideos"] = "chatWithVideos"
    video_nos: List[str] = Field(default_factory=list, alias="videoNos")
    prompt: str = Field(..., min_length=1)
    unique_id: Optional[str] = Field(default=None, alias="uniqueId")

    def media_ids(self) -> List[str]:
        return list(self.video_nos)

    def with_media_ids(self, media_ids: List[str]) -> "ChatWithVideosArgs":
        return self.model_copy(update={"video_nos": list(media_ids)})


class VideoMarketerChatArgs(ToolArgs):
    backend: ClassVar[ToolBackend] = ToolBackend.MEMORIES
    tool: Literal["videoMarketerChat"] = "videoMarketerChat"
    prompt: str = Field(..., min_length=1)
    platform: Literal["TIKTOK", "YOUTUBE", "INSTAGRAM"] = Field(default="TIKTOK", alias="type")


class ChatWithPersonalMediaArgs(ToolArgs):
    backend: ClassVar[ToolBackend] = ToolBackend.MEMORIES
    tool: Literal["chatWithPersonalMedia"] = "chatWithPersonalMedia"
    prompt: str = Field(..., min_length=1)
    unique_id: Optional[str] = Field(default=None, alias="uniqueId")


class _SingleVideoArgs(ToolArgs):
    media_binding: ClassVar[Optional[str]] = "one"
    video_no: Optional[str] = Field(default=None, alias="videoNo")
    unique_id: Optional[str] = Field(default=None, alias="uniqueId")

    def media_ids(self) -> List[str]:
        return [self.video_no] if self.video_no else []

    def with_media_ids(self, media_ids: List[str]) -> "_SingleVideoArgs":
        return self.model_copy(update={"video_no": media_ids[0] if media_ids else None})


class GetVideoTranscriptionArgs(_SingleVideoArgs):
    backend: ClassVar[ToolBackend] = ToolBackend.MEMORIES
    tool: Literal["getVideoTranscription"] = "getVideoTranscription"


class GetAudioTranscriptionArgs(_SingleVideoArgs):
    backend: ClassVar[ToolBackend] = ToolBackend.MEMORIES
    tool: Literal["getAudioTranscription"] = "getAudioTranscription"


class GenerateSummaryArgs(_SingleVideoArgs):
    backend: ClassVar[ToolBackend] = ToolBackend.MEMORIES
    tool: Literal["generateSummary"] = "generateSummary"
    summary_type: Literal["CHAPTER", "TOPIC"] = Field(default="CHAPTER", alias="type")


AnyToolArgs = Annotated[
    Union[
        GenerateImageArgs,
        CaptionImageArgs,
        TransformImageArgs,
        InpaintImageArgs,
        RemoveBackgroundArgs,
        UpscaleImageArgs,
        GenerateMaskArgs,
        GenerateVideoArgs,
        EnhancePromptArgs,
        UploadVideoFromUrlArgs,
        UploadVideoFromPlatformArgs,
        ChatWithVideosArgs,
        VideoMarketerChatArgs,
        ChatWithPersonalMediaArgs,
        GetVideoTranscriptionArgs,
        GetAudioTranscriptionArgs,
        GenerateSummaryArgs,
    ],
    Field(discriminator="tool"),
]

_tool_args_adapter: TypeAdapter = TypeAdapter(AnyToolArgs)


def parse_tool_args(tool_name: str, payload: Dict[str, Any]) -> ToolArgs:
    """
    Validate a raw argument map for ``tool_name``.

    Raises:
        pydantic.ValidationError: unknown tool or invalid arguments
    """
    return _tool_args_adapter.validate_python({**payload, "tool": tool_name})


@dataclass(frozen=True)
class ToolSelection:
    """
    Classifier output.

    ``should_dispatch=False`` means the message is a plain chat turn and goes
    to the completion stream instead of a tool.
    """
    should_dispatch: bool
    args: Optional[ToolArgs] = None
    rule: Optional[str] = None

    @classmethod
    def none(cls) -> "ToolSelection":
        return cls(should_dispatch=False)

    @classmethod
    def for_args(cls, args: ToolArgs, rule: Optional[str] = None) -> "ToolSelection":
        return cls(should_dispatch=True, args=args, rule=rule)

    @property
    def tool_name(self) -> Optional[str]:
        return self.args.tool if self.args is not None else None

    @property
    def backend(self) -> Optional[ToolBackend]:
        return self.args.backend if self.args is not None else None

    def with_args(self, args: ToolArgs) -> "ToolSelection":
        return ToolSelection(should_dispatch=self.should_dispatch, args=args, rule=self.rule)
