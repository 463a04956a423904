"""Adapter modules for external integrations."""

from .tiktok import TikTokLiveSource, resolve_unique_id

__all__ = [
    "TikTokLiveSource",
    "resolve_unique_id",
]
