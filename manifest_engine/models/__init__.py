"""Data models for manifests, renditions, and fetch results."""

from .manifest_models import (
    AudioTrack,
    ClosedCaption,
    FetchResult,
    ManifestDescriptor,
    ManifestFormat,
    ParseMode,
    ParseStatus,
    SubtitleTrack,
    TrackMetadata,
    VideoTrack,
)

__all__ = [
    "AudioTrack",
    "ClosedCaption",
    "FetchResult",
    "ManifestDescriptor",
    "ManifestFormat",
    "ParseMode",
    "ParseStatus",
    "SubtitleTrack",
    "TrackMetadata",
    "VideoTrack",
]
