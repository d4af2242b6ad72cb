"""Provider access - the AI SDK gateway and progress notifications."""

from taskforge.providers.gateway import ProviderGateway, classify_provider_error
from taskforge.providers.progress import ProgressEvent, track_progress

__all__ = [
    "ProgressEvent",
    "ProviderGateway",
    "classify_provider_error",
    "track_progress",
]
