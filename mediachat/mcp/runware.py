"""
Runware provider - image and video generation tools.

All calls go to the single task endpoint (``POST /v1`` with a JSON array of
tasks). Video inference is asynchronous: the task is submitted with
``deliveryMethod=async`` and polled with ``getResponse`` until it finishes or
the polling budget is spent.
"""

import asyncio
import uuid
from typing import Any, Dict, List, Optional

import httpx
import structlog

from ..core.config import Settings
from ..core.exceptions import ToolInvocationError, ToolTimeoutError
from ..domain.tool_selection import (
    CaptionImageArgs,
    EnhancePromptArgs,
    GenerateImageArgs,
    GenerateMaskArgs,
    GenerateVideoArgs,
    InpaintImageArgs,
    RemoveBackgroundArgs,
    ToolBackend,
    TransformImageArgs,
    UpscaleImageArgs,
)
from .base import ToolHandler, ToolProvider
from .protocol import ToolCategory, ToolSpec
from .runware_models import get_model_dimensions

logger = structlog.get_logger(__name__)

_IMAGE_OUTPUT = {"outputType": "URL", "outputFormat": "PNG"}


class RunwareProvider(ToolProvider):
    """Tool provider backed by the Runware task API."""

    backend = ToolBackend.RUNWARE

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        super().__init__(client=client, timeout=settings.runware_timeout)
        self.api_key = settings.runware_api_key
        self.base_url = settings.runware_base_url
        self.poll_interval = settings.runware_poll_interval
        self.poll_max_attempts = settings.runware_poll_max_attempts

    def list_tools(self) -> List[ToolSpec]:
        return [
            ToolSpec.from_args_model(GenerateImageArgs, "Generate an image from a text description", ToolCategory.IMAGE_GENERATION),
            ToolSpec.from_args_model(CaptionImageArgs, "Describe the contents of an image", ToolCategory.IMAGE_EDITING),
            ToolSpec.from_args_model(TransformImageArgs, "Transform an existing image guided by a prompt", ToolCategory.IMAGE_EDITING),
            ToolSpec.from_args_model(InpaintImageArgs, "Repaint a masked region of an image", ToolCategory.IMAGE_EDITING),
            ToolSpec.from_args_model(RemoveBackgroundArgs, "Remove background from an image", ToolCategory.IMAGE_EDITING),
            ToolSpec.from_args_model(UpscaleImageArgs, "Upscale an image to higher resolution", ToolCategory.IMAGE_EDITING),
            ToolSpec.from_args_model(GenerateMaskArgs, "Detect the main subject and return a mask image", ToolCategory.IMAGE_EDITING),
            ToolSpec.from_args_model(GenerateVideoArgs, "Generate a video from text or animate an image", ToolCategory.VIDEO_GENERATION),
            ToolSpec.from_args_model(EnhancePromptArgs, "Expand a short prompt into a detailed one", ToolCategory.PROMPT),
        ]

    def _handlers(self) -> Dict[str, ToolHandler]:
        return {
            "generateImageFromText": self.generate_image,
            "captionImage": self.caption_image,
            "transformImage": self.transform_image,
            "inpaintImage": self.inpaint_image,
            "removeBackground": self.remove_background,
            "upscaleImage": self.upscale_image,
            "generateMask": self.generate_mask,
            "generateVideo": self.generate_video,
            "enhancePrompt": self.enhance_prompt,
        }

    # ========================================================================
    # Transport
    # ========================================================================

    async def _run_tasks(self, tool: str, tasks: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """POST a task batch and return the ``data`` array."""
        response = await self.client.post(
            self.base_url,
            json=tasks,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self.api_key}",
            },
        )
        self._raise_for_status(tool, "Runware", response)

        body = response.json()
        errors = body.get("errors") or []
        if errors:
            message = errors[0].get("message") or errors[0].get("code") or "unknown error"
            raise ToolInvocationError(tool, f"Runware error: {message}")

        return body.get("data") or []

    async def _run_single(self, tool: str, task_type: str, params: Dict[str, Any]) -> Dict[str, Any]:
        task = {"taskType": task_type, "taskUUID": str(uuid.uuid4()), **params}
        data = await self._run_tasks(tool, [task])
        if not data:
            raise ToolInvocationError(tool, "Runware returned no results")
        return data[0]

    @staticmethod
    def _image_url(tool: str, item: Dict[str, Any]) -> str:
        url = item.get("imageURL")
        if not url:
            raise ToolInvocationError(tool, "No image generated")
        return url

    # ========================================================================
    # Image tools
    # ========================================================================

    async def generate_image(self, args: GenerateImageArgs) -> str:
        item = await self._run_single(args.tool, "imageInference", {
            "positivePrompt": args.prompt,
            "model": args.model,
            "numberResults": 1,
            "width": args.width,
            "height": args.height,
            "steps": 20,
            **_IMAGE_OUTPUT,
        })
        return self._image_url(args.tool, item)

    async def caption_image(self, args: CaptionImageArgs) -> str:
        item = await self._run_single(args.tool, "imageCaption", {"inputImage": args.image_url})
        text = item.get("text")
        if not text:
            raise ToolInvocationError(args.tool, "No caption generated")
        return text

    async def transform_image(self, args: TransformImageArgs) -> str:
        item = await self._run_single(args.tool, "imageInference", {
            "positivePrompt": args.prompt,
            "model": args.model,
            "seedImage": args.image_url,
            "strength": args.strength,
            "numberResults": 1,
            "width": 1024,
            "height": 1024,
            **_IMAGE_OUTPUT,
        })
        return self._image_url(args.tool, item)

    async def inpaint_image(self, args: InpaintImageArgs) -> str:
        mask_url = args.mask_url
        if not mask_url:
            mask_url = await self.generate_mask(GenerateMaskArgs(image_url=args.image_url))

        item = await self._run_single(args.tool, "imageInference", {
            "positivePrompt": args.prompt,
            "model": args.model,
            "seedImage": args.image_url,
            "maskImage": mask_url,
            "numberResults": 1,
            "width": 1024,
            "height": 1024,
            **_IMAGE_OUTPUT,
        })
        return self._image_url(args.tool, item)

    async def remove_background(self, args: RemoveBackgroundArgs) -> str:
        item = await self._run_single(args.tool, "imageBackgroundRemoval", {
            "inputImage": args.image_url,
            **_IMAGE_OUTPUT,
        })
        return self._image_url(args.tool, item)

    async def upscale_image(self, args: UpscaleImageArgs) -> str:
        item = await self._run_single(args.tool, "imageUpscale", {
            "inputImage": args.image_url,
            "upscaleFactor": args.upscale_factor,
            **_IMAGE_OUTPUT,
        })
        return self._image_url(args.tool, item)

    async def generate_mask(self, args: GenerateMaskArgs) -> str:
        item = await self._run_single(args.tool, "imageMasking", {
            "inputImage": args.image_url,
            "model": args.model,
            **_IMAGE_OUTPUT,
        })
        url = item.get("maskImageURL") or item.get("imageURL")
        if not url:
            raise ToolInvocationError(args.tool, "No mask generated")
        return url

    async def enhance_prompt(self, args: EnhancePromptArgs) -> str:
        item = await self._run_single(args.tool, "promptEnhance", {
            "prompt": args.prompt,
            "promptMaxLength": args.max_length,
            "promptVersions": 1,
        })
        text = item.get("text")
        if not text:
            raise ToolInvocationError(args.tool, "No enhanced prompt returned")
        return text

    # ========================================================================
    # Video
    # ========================================================================

    async def generate_video(self, args: GenerateVideoArgs) -> str:
        dims = get_model_dimensions(args.model)
        if dims is None:
            raise ToolInvocationError(args.tool, f"Model '{args.model}' not found in supported video models")
        width, height = dims

        task_uuid = str(uuid.uuid4())
        task: Dict[str, Any] = {
            "taskType": "videoInference",
            "taskUUID": task_uuid,
            "positivePrompt": args.prompt,
            "model": args.model,
            "duration": args.duration,
            "width": width,
            "height": height,
            "deliveryMethod": "async",
            "numberResults": 1,
        }
        if args.image_url:
            task["frameImages"] = [{"inputImage": args.image_url}]

        await self._run_tasks(args.tool, [task])
        logger.info("Video task submitted", task_uuid=task_uuid, model=args.model)

        return await self._poll_video(args.tool, task_uuid)

    async def _poll_video(self, tool: str, task_uuid: str) -> str:
        """Poll ``getResponse`` until the video is ready or the budget runs out."""
        for attempt in range(1, self.poll_max_attempts + 1):
            await asyncio.sleep(self.poll_interval)

            data = await self._run_tasks(tool, [{"taskType": "getResponse", "taskUUID": task_uuid}])
            for item in data:
                if item.get("taskUUID") not in (None, task_uuid):
                    continue
                status = (item.get("status") or "").lower()
                if status == "success" or item.get("videoURL"):
                    video_url = item.get("videoURL")
                    if not video_url:
                        raise ToolInvocationError(tool, "Video task finished without a URL")
                    logger.info("Video task completed", task_uuid=task_uuid, polls=attempt)
                    return video_url
                if status in ("error", "failed"):
                    raise ToolInvocationError(tool, f"Video generation failed: {item.get('message', status)}")

            logger.debug("Video task still processing", task_uuid=task_uuid, poll=attempt)

        raise ToolTimeoutError(
            tool,
            f"Video generation timed out after {self.poll_max_attempts} polls",
        )
