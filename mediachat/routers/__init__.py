"""
API routers package.
"""

from . import chat
from . import health
from . import media
from . import tools

__all__ = ["chat", "health", "media", "tools"]
