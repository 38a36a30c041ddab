"""Pydantic models that describe parsed manifests and their renditions."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ManifestFormat(str, Enum):
    HLS = "hls"
    DASH = "dash"


class ParseStatus(str, Enum):
    SUCCESS = "success"
    PROCESSING = "processing"
    FETCH_FAILED = "fetch-failed"
    INVALID_FORMAT = "invalid-format"
    NOT_A_KNOWN_FORMAT = "not-a-known-format"
    PARSE_ERROR = "parse-error"


class ParseMode(str, Enum):
    LIGHT = "light"
    FULL = "full"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class _Record(BaseModel):
    """Base for records that travel to the UI as camelCase documents."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TrackMetadata(_Record):
    """Metadata measured on one rendition and shared by its siblings.

    The block is always assigned as a whole, so a track either carries every
    field or none of them.
    """

    duration: Optional[int] = None
    is_live: bool = False
    segment_count: Optional[int] = None
    is_encrypted: bool = False
    encryption_method: Optional[str] = None
    version: Optional[int] = None


class VideoTrack(_Record):
    """A single video rendition of a master manifest."""

    url: str
    normalized_url: str
    master_url: Optional[str] = None
    bandwidth: Optional[int] = None
    average_bandwidth: Optional[int] = None
    codecs: Optional[str] = None
    resolution: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    standardized_resolution: Optional[str] = None
    fps: Optional[int] = None
    video_container: Optional[str] = None
    audio_container: Optional[str] = None
    audio_group_id: Optional[str] = None
    video_group_id: Optional[str] = None
    subtitle_group_id: Optional[str] = None
    cc_group_id: Optional[str] = None
    is_used_for_embedded_audio: bool = False
    metadata: Optional[TrackMetadata] = None
    estimated_file_size_bytes: Optional[int] = None
    directly_fetched: bool = False
    # DASH only
    representation_id: Optional[str] = None
    adaptation_set_id: Optional[str] = None
    mime_type: Optional[str] = None
    initialization_url: Optional[str] = None
    media_template: Optional[str] = None

    @property
    def effective_bandwidth(self) -> int:
        return self.average_bandwidth or self.bandwidth or 0


class AudioTrack(_Record):
    """Alternate audio rendition, either standalone or muxed into a video."""

    group_id: Optional[str] = None
    name: Optional[str] = None
    language: Optional[str] = None
    url: Optional[str] = None
    normalized_url: Optional[str] = None
    default: bool = False
    autoselect: bool = False
    characteristics: Optional[str] = None
    channels: Optional[str] = None
    assoc_language: Optional[str] = None
    audio_container: Optional[str] = None
    is_embedded: bool = False
    metadata: Optional[TrackMetadata] = None
    directly_fetched: bool = False
    # DASH only
    bandwidth: Optional[int] = None
    codecs: Optional[str] = None
    sampling_rate: Optional[int] = None
    representation_id: Optional[str] = None


class SubtitleTrack(_Record):
    group_id: Optional[str] = None
    name: Optional[str] = None
    language: Optional[str] = None
    url: Optional[str] = None
    normalized_url: Optional[str] = None
    default: bool = False
    autoselect: bool = False
    forced: bool = False
    characteristics: Optional[str] = None
    subtitle_container: Optional[str] = None
    is_embedded: bool = False
    metadata: Optional[TrackMetadata] = None
    directly_fetched: bool = False


class ClosedCaption(_Record):
    """In-stream captions; always carried inside a video stream."""

    group_id: Optional[str] = None
    name: Optional[str] = None
    language: Optional[str] = None
    instream_id: Optional[str] = None
    default: bool = False
    autoselect: bool = False
    characteristics: Optional[str] = None


class ManifestDescriptor(_Record):
    """Root result of parsing one manifest URL."""

    url: str
    normalized_url: str
    format: Optional[ManifestFormat] = None
    mode: ParseMode = ParseMode.FULL
    status: ParseStatus = ParseStatus.SUCCESS
    error: Optional[str] = None
    is_master: bool = False
    is_variant: bool = False
    validated_at: Optional[datetime] = None
    parsed_at: Optional[datetime] = None
    duration: Optional[int] = None
    segment_count: Optional[int] = None
    is_live: bool = False
    is_encrypted: bool = False
    encryption_method: Optional[str] = None
    version: Optional[int] = None
    confidence: Optional[float] = None
    no_duration: bool = False
    has_media_groups: bool = False
    video_tracks: List[VideoTrack] = Field(default_factory=list)
    audio_tracks: List[AudioTrack] = Field(default_factory=list)
    subtitle_tracks: List[SubtitleTrack] = Field(default_factory=list)
    closed_captions: List[ClosedCaption] = Field(default_factory=list)

    @classmethod
    def failed(
        cls,
        url: str,
        normalized_url: str,
        status: ParseStatus,
        error: Optional[str] = None,
        manifest_format: Optional[ManifestFormat] = None,
        mode: ParseMode = ParseMode.FULL,
    ) -> "ManifestDescriptor":
        """Builds an empty, well-typed result carrying a non-success status."""

        return cls(
            url=url,
            normalized_url=normalized_url,
            format=manifest_format,
            mode=mode,
            status=status,
            error=error,
            validated_at=utc_now(),
        )

    @classmethod
    def processing(cls, url: str, normalized_url: str, mode: ParseMode = ParseMode.FULL) -> "ManifestDescriptor":
        return cls(url=url, normalized_url=normalized_url, mode=mode, status=ParseStatus.PROCESSING)

    @property
    def ok(self) -> bool:
        return self.status == ParseStatus.SUCCESS

    def media_urls(self) -> Set[str]:
        """Normalized URLs of every rendition listed by this manifest."""

        urls: Set[str] = {track.normalized_url for track in self.video_tracks}
        for track in [*self.audio_tracks, *self.subtitle_tracks]:
            if track.normalized_url:
                urls.add(track.normalized_url)
        return urls

    def to_document(self) -> Dict[str, Any]:
        """JSON-compatible camelCase document for the UI/download layer."""

        return self.model_dump(mode="json", by_alias=True)


class FetchResult(BaseModel):
    """Outcome of one fetch through the network adapter."""

    success: bool
    status: int = 0
    content: Optional[str] = None
    retry_count: int = 0
    error: Optional[str] = None
