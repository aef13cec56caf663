"""
Intent Classifier - decides whether a chat message is a tool request.

Rules live in an explicit ordered table and are evaluated top to bottom; the
first rule whose predicate matches builds the tool arguments. Domain order:
media (upload / analysis), video generation, image, prompt enhancement.
"""

import re
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

import structlog
from pydantic import ValidationError

from ..domain.chat import MediaKind, MediaRef, MediaState
from ..domain.tool_selection import (
    DEFAULT_IMAGE_MODEL,
    DEFAULT_VIDEO_MODEL,
    CaptionImageArgs,
    ChatWithPersonalMediaArgs,
    ChatWithVideosArgs,
    EnhancePromptArgs,
    GenerateImageArgs,
    GenerateMaskArgs,
    GenerateSummaryArgs,
    GenerateVideoArgs,
    GetAudioTranscriptionArgs,
    GetVideoTranscriptionArgs,
    InpaintImageArgs,
    RemoveBackgroundArgs,
    ToolArgs,
    ToolSelection,
    TransformImageArgs,
    UploadVideoFromPlatformArgs,
    UploadVideoFromUrlArgs,
    UpscaleImageArgs,
    VideoMarketerChatArgs,
)

logger = structlog.get_logger(__name__)


# ============================================================================
# Patterns
# ============================================================================

URL_RE = re.compile(r"https?://[^\s<>\"'()\[\]]+", re.IGNORECASE)
IMAGE_URL_RE = re.compile(r"\.(?:png|jpe?g|webp|gif|bmp)(?:[?#]\S*)?$", re.IGNORECASE)
VIDEO_URL_RE = re.compile(r"\.(?:mp4|mov|webm|m4v|avi|mkv)(?:[?#]\S*)?$", re.IGNORECASE)
PLATFORM_URL_RE = re.compile(
    r"^https?://(?:www\.|m\.|vm\.)?(?:tiktok\.com|youtube\.com|youtu\.be|instagram\.com)/",
    re.IGNORECASE,
)
VIDEO_ID_RE = re.compile(r"\bVI\d{6,}\b", re.IGNORECASE)

_GENERATION_VERB = r"\b(?:generate|create|make|render|produce)\b"
_VIDEO_NOUN = r"\b(?:videos?|clips?|animations?|movies?)\b"
_IMAGE_NOUN = (
    r"\b(?:images?|pictures?|pics?|photos?|photographs?|illustrations?|drawings?|"
    r"paintings?|artworks?|art|logos?|portraits?|wallpapers?|icons?)\b"
)

_LEADING_WORDS = (
    r"^\s*(?:(?:please|kindly|hey|hi|ok|okay)[,!]?\s+|"
    r"(?:can|could|would|will)\s+you\s+(?:please\s+)?|"
    r"i\s+(?:want|need|would\s+like|'d\s+like)\s+(?:you\s+)?(?:to\s+)?)*"
)
_COMMAND_WORDS = (
    r"(?:generate|create|make|draw|paint|render|design|produce|sketch|illustrate|animate|"
    r"show\s+me|give\s+me|transform|turn|convert|restyle|inpaint|enhance|improve|expand|refine|rewrite)\s+"
    r"(?:me\s+)?"
)
_SUBJECT_NOUN = (
    r"(?:(?:an?|the|this|that|my|some)\s+)?"
    r"(?:(?:short|quick|high[- ]quality|realistic|detailed|hd|4k|cinematic)\s+)*"
    r"(?:images?|pictures?|photos?|photographs?|illustrations?|drawings?|paintings?|artworks?|art|"
    r"renders?|videos?|clips?|animations?|prompts?)\b\s*"
)
_CONNECTOR = r"(?:(?:of|showing|that\s+shows|depicting|about|featuring|with|for|into|to|where)\b)?\s*:?\s*"

PROMPT_PREFIX_RE = re.compile(
    _LEADING_WORDS + r"(?:" + _COMMAND_WORDS + r"(?:" + _SUBJECT_NOUN + _CONNECTOR + r")?)?",
    re.IGNORECASE,
)

IMAGE_MODEL_KEYWORDS: Sequence[Tuple[str, str]] = (
    ("flux", "runware:101@1"),
    ("sdxl", "civitai:101055@128078"),
    ("juggernaut", "civitai:133005@782002"),
)

VIDEO_MODEL_KEYWORDS: Sequence[Tuple[str, str]] = (
    ("kling", "klingai:5@3"),
    ("veo", "google:3@0"),
    ("seedance", "bytedance:1@1"),
    ("minimax", "minimax:1@1"),
    ("hailuo", "minimax:3@1"),
    ("pixverse", "pixverse:1@3"),
    ("vidu", "vidu:1@5"),
    ("wan", "runware:200@1"),
)

_MODEL_PHRASE_RE = re.compile(
    r"\s*\b(?:using|with|via|on|in)\s+(?:the\s+)?(?:"
    + "|".join(k for k, _ in (*IMAGE_MODEL_KEYWORDS, *VIDEO_MODEL_KEYWORDS))
    + r")\b(?:\s+model)?",
    re.IGNORECASE,
)

DEFAULT_IMAGE_PROMPT = "a beautiful, detailed image"
DEFAULT_VIDEO_PROMPT = "animate this image"
DEFAULT_EDIT_PROMPT = "a refined version of this image"


# ============================================================================
# Message view
# ============================================================================

@dataclass(frozen=True)
class MessageView:
    """Pre-computed features of one message, shared by every rule."""
    text: str
    lower: str
    urls: Tuple[str, ...]
    image_urls: Tuple[str, ...]
    video_urls: Tuple[str, ...]
    platform_urls: Tuple[str, ...]
    video_ids: Tuple[str, ...]
    media: Tuple[MediaRef, ...] = field(default_factory=tuple)

    @classmethod
    def from_message(cls, message: str, media: Sequence[MediaRef] = ()) -> "MessageView":
        urls = tuple(url.rstrip(".,;:!?") for url in URL_RE.findall(message))
        platform_urls = tuple(u for u in urls if PLATFORM_URL_RE.search(u))
        return cls(
            text=message,
            lower=message.lower(),
            urls=urls,
            image_urls=tuple(u for u in urls if IMAGE_URL_RE.search(u)),
            video_urls=tuple(u for u in urls if VIDEO_URL_RE.search(u) and u not in platform_urls),
            platform_urls=platform_urls,
            video_ids=tuple(dict.fromkeys(m.upper() for m in VIDEO_ID_RE.findall(message))),
            media=tuple(media),
        )

    def has(self, pattern: str) -> bool:
        return re.search(pattern, self.lower) is not None

    @property
    def image_url(self) -> Optional[str]:
        return self.image_urls[0] if self.image_urls else None


def extract_prompt(text: str, default: str) -> str:
    """
    Strip command words, URLs and model mentions, leaving the subject.

    >>> extract_prompt("generate an image of a red fox", "x")
    'a red fox'
    """
    residual = URL_RE.sub(" ", text)
    residual = _MODEL_PHRASE_RE.sub("", residual)
    residual = re.sub(r"\s+", " ", residual).strip()
    residual = PROMPT_PREFIX_RE.sub("", residual, count=1)
    residual = residual.strip().strip("\"'").strip(" .!?,;:")
    return residual or default


def select_model(lower: str, keywords: Sequence[Tuple[str, str]], default: str) -> str:
    """First keyword override mentioned in the message, else ``default``."""
    for keyword, model in keywords:
        if re.search(rf"\b{keyword}\b", lower):
            return model
    return default


def _question(view: MessageView) -> str:
    """Message text with URLs and video ids removed, for chat-style tools."""
    residual = VIDEO_ID_RE.sub(" ", URL_RE.sub(" ", view.text))
    residual = re.sub(r"\s+", " ", residual).strip()
    return residual or view.text.strip()


# ============================================================================
# Rule table
# ============================================================================

@dataclass(frozen=True)
class ClassificationRule:
    """One predicate -> selector pair of the ordered rule table."""
    name: str
    domain: str
    matches: Callable[[MessageView], bool]
    select: Callable[[MessageView], ToolArgs]


def _mentions_video_reference(view: MessageView) -> bool:
    return bool(view.video_ids) or view.has(
        r"\b(?:this|that|the|these|those|my|uploaded|last|latest)\s+"
        r"(?:videos?(?!\s+games?\b)|clips?|footage|recordings?)\b"
    )


def _refers_to_video(view: MessageView) -> bool:
    """Video reference that can be resolved: a named id, or a video uploaded to the conversation."""
    if view.video_ids:
        return True
    return _mentions_video_reference(view) and any(m.kind == MediaKind.VIDEO for m in view.media)


def _upscale_factor(view: MessageView) -> int:
    match = re.search(r"\b([234])x\b", view.lower)
    return int(match.group(1)) if match else 2


def _platform(view: MessageView) -> str:
    if "youtube" in view.lower:
        return "YOUTUBE"
    if "instagram" in view.lower:
        return "INSTAGRAM"
    return "TIKTOK"


MEDIA_RULES: List[ClassificationRule] = [
    ClassificationRule(
        name="upload_from_platform",
        domain="media",
        matches=lambda v: bool(v.platform_urls),
        select=lambda v: UploadVideoFromPlatformArgs(video_urls=list(v.platform_urls)),
    ),
    ClassificationRule(
        name="upload_from_url",
        domain="media",
        matches=lambda v: bool(v.video_urls),
        select=lambda v: UploadVideoFromUrlArgs(url=v.video_urls[0]),
    ),
    ClassificationRule(
        name="audio_transcription",
        domain="media",
        matches=lambda v: (
            v.has(r"transcri") and v.has(r"\b(?:audio|speech|spoken|voice)\b") and _refers_to_video(v)
        ),
        select=lambda v: GetAudioTranscriptionArgs(video_no=v.video_ids[0] if v.video_ids else None),
    ),
    ClassificationRule(
        name="video_transcription",
        domain="media",
        matches=lambda v: v.has(r"transcri") and _refers_to_video(v),
        select=lambda v: GetVideoTranscriptionArgs(video_no=v.video_ids[0] if v.video_ids else None),
    ),
    ClassificationRule(
        name="summary",
        domain="media",
        matches=lambda v: (
            v.has(r"\b(?:summar\w*|recap|chapters?|topics?)\b") and _refers_to_video(v)
        ),
        select=lambda v: GenerateSummaryArgs(
            video_no=v.video_ids[0] if v.video_ids else None,
            summary_type="TOPIC" if v.has(r"\btopics?\b") else "CHAPTER",
        ),
    ),
    ClassificationRule(
        name="marketer_chat",
        domain="media",
        matches=lambda v: v.has(r"\b(?:market\s+research|trending|viral|marketer|influencers?)\b"),
        select=lambda v: VideoMarketerChatArgs(prompt=_question(v), platform=_platform(v)),
    ),
    ClassificationRule(
        name="personal_media_chat",
        domain="media",
        matches=lambda v: v.has(
            r"\b(?:all\s+)?my\s+(?:videos|media|library|uploads|footage|recordings)\b|\bpersonal\s+media\b"
        ),
        select=lambda v: ChatWithPersonalMediaArgs(prompt=_question(v)),
    ),
    ClassificationRule(
        name="chat_with_videos",
        domain="media",
        matches=lambda v: _refers_to_video(v) and not v.has(_GENERATION_VERB + r"|\banimate\b"),
        select=lambda v: ChatWithVideosArgs(video_nos=list(v.video_ids), prompt=_question(v)),
    ),
]

VIDEO_RULES: List[ClassificationRule] = [
    ClassificationRule(
        name="generate_video",
        domain="video",
        matches=lambda v: v.has(_GENERATION_VERB + r".*" + _VIDEO_NOUN) or v.has(r"\banimate\b"),
        select=lambda v: GenerateVideoArgs(
            prompt=extract_prompt(v.text, DEFAULT_VIDEO_PROMPT),
            model=select_model(v.lower, VIDEO_MODEL_KEYWORDS, DEFAULT_VIDEO_MODEL),
            image_url=v.image_url,
        ),
    ),
]

IMAGE_RULES: List[ClassificationRule] = [
    ClassificationRule(
        name="caption_image",
        domain="image",
        matches=lambda v: bool(v.image_urls) and v.has(
            r"\b(?:caption|describe|description)\b|what(?:'s| is) in (?:this|the) (?:image|picture|photo)"
        ),
        select=lambda v: CaptionImageArgs(image_url=v.image_url),
    ),
    ClassificationRule(
        name="transform_image",
        domain="image",
        matches=lambda v: bool(v.image_urls) and v.has(
            r"\b(?:transform|restyle|stylize|convert|turn)\b|\bmake it (?:look|into)\b|\bin the style of\b"
        ),
        select=lambda v: TransformImageArgs(
            image_url=v.image_url,
            prompt=extract_prompt(v.text, DEFAULT_EDIT_PROMPT),
            model=select_model(v.lower, IMAGE_MODEL_KEYWORDS, DEFAULT_IMAGE_MODEL),
        ),
    ),
    ClassificationRule(
        name="inpaint_image",
        domain="image",
        matches=lambda v: bool(v.image_urls) and not v.has(r"\bbackground\b") and v.has(
            r"\b(?:inpaint\w*|fill\s+in|paint\s+over|erase|replace)\b"
        ),
        select=lambda v: InpaintImageArgs(
            image_url=v.image_url,
            mask_url=v.image_urls[1] if len(v.image_urls) > 1 else None,
            prompt=extract_prompt(v.text, DEFAULT_EDIT_PROMPT),
            model=select_model(v.lower, IMAGE_MODEL_KEYWORDS, DEFAULT_IMAGE_MODEL),
        ),
    ),
    ClassificationRule(
        name="remove_background",
        domain="image",
        matches=lambda v: bool(v.image_urls) and (
            v.has(r"\b(?:remove|delete|erase|strip|cut\s+out|get\s+rid\s+of)\b.*\b(?:background|bg)\b")
            or v.has(r"\btransparent\s+background\b|\bno\s+background\b")
        ),
        select=lambda v: RemoveBackgroundArgs(image_url=v.image_url),
    ),
    ClassificationRule(
        name="upscale_image",
        domain="image",
        matches=lambda v: bool(v.image_urls) and v.has(
            r"\bupscal\w*|\b(?:higher|increase|improve)\s+(?:the\s+)?resolution\b|\benlarge\b|\bsuper[- ]resolution\b"
        ),
        select=lambda v: UpscaleImageArgs(
            image_url=v.image_url,
            upscale_factor=_upscale_factor(v),
        ),
    ),
    ClassificationRule(
        name="generate_mask",
        domain="image",
        matches=lambda v: bool(v.image_urls) and v.has(r"\bmask\b|\bsegment\w*\b"),
        select=lambda v: GenerateMaskArgs(image_url=v.image_url),
    ),
    ClassificationRule(
        name="generate_image",
        domain="image",
        matches=lambda v: (
            v.has(r"\b(?:generate|create|make|design|produce|render)\b.*" + _IMAGE_NOUN)
            or v.has(r"^\s*(?:please\s+|can you\s+|could you\s+)?(?:draw|paint|sketch|illustrate)\b")
        ),
        select=lambda v: GenerateImageArgs(
            prompt=extract_prompt(v.text, DEFAULT_IMAGE_PROMPT),
            model=select_model(v.lower, IMAGE_MODEL_KEYWORDS, DEFAULT_IMAGE_MODEL),
        ),
    ),
]

PROMPT_RULES: List[ClassificationRule] = [
    ClassificationRule(
        name="enhance_prompt",
        domain="prompt",
        matches=lambda v: v.has(r"\b(?:enhance|improve|expand|refine|rewrite|better)\b.*\bprompt\b"),
        select=lambda v: EnhancePromptArgs(prompt=_prompt_to_enhance(v.text)),
    ),
]


def _prompt_to_enhance(text: str) -> str:
    quoted = re.search(r'["“]([^"”]{3,})["”]', text)
    if quoted:
        return quoted.group(1).strip()
    if ":" in text:
        tail = text.split(":", 1)[1].strip()
        if tail:
            return tail
    return extract_prompt(text, text.strip())


DEFAULT_RULES: List[ClassificationRule] = [*MEDIA_RULES, *VIDEO_RULES, *IMAGE_RULES, *PROMPT_RULES]


class IntentClassifier:
    """Ordered, first-match-wins classifier over a rule table."""

    def __init__(self, rules: Optional[Sequence[ClassificationRule]] = None):
        self.rules: Tuple[ClassificationRule, ...] = tuple(rules if rules is not None else DEFAULT_RULES)

    def classify(self, message: str, media: Sequence[MediaRef] = ()) -> ToolSelection:
        """
        Classify a raw user message.

        Args:
            message: The user's message text
            media: Media previously uploaded to the conversation

        Returns:
            A dispatchable ToolSelection, or ``ToolSelection.none()`` for plain chat
        """
        view = MessageView.from_message(message, media)

        for rule in self.rules:
            if not rule.matches(view):
                continue
            try:
                args = rule.select(view)
            except ValidationError as e:
                logger.warning("Rule matched but produced invalid arguments", rule=rule.name, errors=e.error_count())
                continue

            logger.info("Message classified", rule=rule.name, domain=rule.domain, tool=args.tool)
            return ToolSelection.for_args(args, rule=rule.name)

        logger.debug("No classification rule matched")
        return ToolSelection.none()


# ============================================================================
# Media reference injection
# ============================================================================

@dataclass(frozen=True)
class MediaInjection:
    """Result of resolving implicit media references for a selection."""
    selection: ToolSelection
    injected: Tuple[MediaRef, ...] = ()
    unresolved: bool = False
    pending: Tuple[MediaRef, ...] = ()

    def describe(self) -> Optional[str]:
        """Informational chunk text for the client, if any."""
        if self.injected:
            names = ", ".join(f"{m.name or m.media_id} ({m.media_id})" for m in self.injected)
            noun = "video" if len(self.injected) == 1 else "videos"
            return f"Using your uploaded {noun}: {names}\n\n"
        if self.unresolved:
            if self.pending:
                return (
                    "Your uploaded video is still being processed. "
                    "Please try again once processing has finished."
                )
            return (
                "I couldn't find a processed video in this conversation. "
                "Upload a video first, or mention its video ID."
            )
        return None


def resolve_media_references(selection: ToolSelection, media: Sequence[MediaRef]) -> MediaInjection:
    """
    Inject ids of the conversation's ready videos into media-bound tools that
    did not name one explicitly.

    ``chatWithVideos`` receives every ready video, single-video tools the most
    recent one. Returns the selection unchanged for other tools.
    """
    args = selection.args
    if not selection.should_dispatch or args is None or args.media_binding is None or args.media_ids():
        return MediaInjection(selection=selection)

    videos = [m for m in media if m.kind == MediaKind.VIDEO]
    videos.sort(key=lambda m: m.created_at.timestamp() if m.created_at else 0.0, reverse=True)
    ready = [m for m in videos if m.is_ready]
    pending = tuple(m for m in videos if m.state == MediaState.PENDING)

    if not ready:
        logger.info("No ready media to inject", tool=args.tool, pending=len(pending))
        return MediaInjection(selection=selection, unresolved=True, pending=pending)

    chosen = ready if args.media_binding == "many" else ready[:1]
    injected_args = args.with_media_ids([m.media_id for m in chosen])

    logger.info("Injected media references", tool=args.tool, media_ids=[m.media_id for m in chosen])
    return MediaInjection(selection=selection.with_args(injected_args), injected=tuple(chosen))
