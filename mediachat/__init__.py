"""MediaChat API - media-aware chat service."""

__version__ = "0.1.0"
