"""AI matching collaborators."""

from typing import Optional

from ..config import Settings, get_settings
from .base import MatchingServiceError, MatchProvider
from .gemini import GeminiMatchClient
from .heuristic import HeuristicMatchProvider


def build_match_provider(settings: Optional[Settings] = None) -> MatchProvider:
    """Gemini when an API key is configured, the offline heuristic otherwise."""
    settings = settings or get_settings()
    if settings.ai_enabled:
        return GeminiMatchClient(api_key=settings.ai_api_key)
    return HeuristicMatchProvider()


__all__ = [
    "GeminiMatchClient",
    "HeuristicMatchProvider",
    "MatchingServiceError",
    "MatchProvider",
    "build_match_provider",
]
