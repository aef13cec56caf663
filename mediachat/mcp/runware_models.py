"""
Runware video model catalog.

Video inference only accepts the native output resolution of each model, so
requests always carry the dimensions listed here.
"""

from typing import Dict, Optional, Tuple

_HD = (1280, 720)
_FULL_HD = (1920, 1080)

MODEL_DIMENSIONS: Dict[str, Tuple[int, int]] = {
    # KlingAI
    "klingai:1@2": _HD,
    "klingai:1@1": _HD,
    "klingai:2@2": _FULL_HD,
    "klingai:2@1": _HD,
    "klingai:3@1": _HD,
    "klingai:3@2": _FULL_HD,
    "klingai:4@3": _HD,
    "klingai:5@1": _HD,
    "klingai:5@2": _FULL_HD,
    "klingai:5@3": _FULL_HD,
    # Veo
    "google:2@0": _HD,
    "google:3@0": _HD,
    "google:3@1": _HD,
    # Seedance
    "bytedance:2@1": (864, 480),
    "bytedance:1@1": (864, 480),
    # MiniMax
    "minimax:1@1": (1366, 768),
    "minimax:2@1": (1366, 768),
    "minimax:2@3": (1366, 768),
    "minimax:3@1": (1366, 768),
    # PixVerse
    "pixverse:1@1": (640, 360),
    "pixverse:1@2": (640, 360),
    "pixverse:1@3": (640, 360),
    # Vidu
    "vidu:1@0": _FULL_HD,
    "vidu:1@1": _FULL_HD,
    "vidu:1@5": _FULL_HD,
    "vidu:2@0": _FULL_HD,
    # Wan
    "runware:200@1": (853, 480),
    "runware:200@2": (853, 480),
}


def get_model_dimensions(model_id: str) -> Optional[Tuple[int, int]]:
    """(width, height) supported by ``model_id``, or None for unknown models."""
    return MODEL_DIMENSIONS.get(model_id)
