"""Turns parsed manifest records into typed rendition lists."""

from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, Field

from ..models import AudioTrack, ClosedCaption, SubtitleTrack, TrackMetadata, VideoTrack
from ..utils.url_utils import get_base_directory, normalize_url, resolve_url, standardize_resolution
from .attributes import parse_frame_rate, parse_resolution, round_half_up, to_int
from .dash_parser import DashAdaptationSet, DashManifest, DashRepresentation, channel_count
from .hls_parser import HlsPlaylist, MediaDeclaration, StreamDeclaration

# (pattern, container) pairs; the first match wins.
VIDEO_CONTAINER_RULES = (
    (re.compile(r"vp8|vp08|vp9|vp09"), "webm"),
    (re.compile(r"avc1|hvc1|hev1|av01"), "mp4"),
)
AUDIO_CONTAINER_RULES = (
    (re.compile(r"mp3|mpa"), "mp3"),
    (re.compile(r"opus|vorbis"), "webm"),
    (re.compile(r"mp4a|aac|ac-3|ec-3"), "m4a"),
)
HLS_DEFAULT_CONTAINERS = ("mp4", "m4a")

_VIDEO_CODEC = re.compile(r"avc[13]|hvc1|hev1|av01|vp0?[89]|dvh[1e]|dva[1v]")
_AUDIO_CODEC = re.compile(r"mp4a|aac|ac-3|ec-3|mp3|mpa|opus|vorbis|flac|alac")
_TEXT_CODEC = re.compile(r"stpp|wvtt|ttml")

SUBTITLE_CONTAINERS = {
    "text/vtt": "vtt",
    "application/ttml+xml": "ttml",
    "application/ttaf+xml": "ttml",
    "text/ttml": "ttml",
}
HLS_SUBTITLE_CONTAINER = "vtt"


class Renditions(BaseModel):
    """Rendition lists extracted from one master manifest."""

    video_tracks: List[VideoTrack] = Field(default_factory=list)
    audio_tracks: List[AudioTrack] = Field(default_factory=list)
    subtitle_tracks: List[SubtitleTrack] = Field(default_factory=list)
    closed_captions: List[ClosedCaption] = Field(default_factory=list)
    has_media_groups: bool = False

    @property
    def all_tracks(self) -> List:
        return [*self.video_tracks, *self.audio_tracks, *self.subtitle_tracks]


def infer_containers(codecs: Optional[str], hls: bool = True) -> Tuple[Optional[str], Optional[str]]:
    """Maps a CODECS string to (video container, audio container)."""

    if not codecs:
        return HLS_DEFAULT_CONTAINERS if hls else (None, None)

    codecs = codecs.lower()
    video = next((container for pattern, container in VIDEO_CONTAINER_RULES if pattern.search(codecs)), None)
    audio = next((container for pattern, container in AUDIO_CONTAINER_RULES if pattern.search(codecs)), None)
    return video, audio


def is_audio_only(codecs: Optional[str]) -> bool:
    if not codecs:
        return False
    codecs = codecs.lower()
    return bool(_AUDIO_CODEC.search(codecs)) and not _VIDEO_CODEC.search(codecs)


def sort_and_dedupe(tracks: Iterable[VideoTrack]) -> List[VideoTrack]:
    """Highest effective bandwidth first; later duplicates of a URL are dropped."""

    seen = set()
    unique: List[VideoTrack] = []
    for track in sorted(tracks, key=lambda item: item.effective_bandwidth, reverse=True):
        if track.normalized_url in seen:
            logging.debug("Dropping duplicate rendition %s", track.url)
            continue
        seen.add(track.normalized_url)
        unique.append(track)
    return unique


def _group(value: Optional[str]) -> Optional[str]:
    if not value or value.upper() == "NONE":
        return None
    return value


def _video_from_stream(stream: StreamDeclaration, base: str, master_url: str) -> VideoTrack:
    url = resolve_url(base, stream.uri)
    width, height = parse_resolution(stream.attributes.get("RESOLUTION"))
    video_container, audio_container = infer_containers(stream.codecs)
    return VideoTrack(
        url=url,
        normalized_url=normalize_url(url),
        master_url=master_url,
        bandwidth=stream.bandwidth,
        average_bandwidth=stream.average_bandwidth,
        codecs=stream.codecs,
        resolution=f"{width}x{height}" if width and height else None,
        width=width,
        height=height,
        standardized_resolution=standardize_resolution(height),
        fps=parse_frame_rate(stream.attributes.get("FRAME-RATE")),
        video_container=video_container,
        audio_container=audio_container,
        audio_group_id=_group(stream.attributes.get("AUDIO")),
        video_group_id=_group(stream.attributes.get("VIDEO")),
        subtitle_group_id=_group(stream.attributes.get("SUBTITLES")),
        cc_group_id=_group(stream.attributes.get("CLOSED-CAPTIONS")),
    )


def _audio_from_stream(stream: StreamDeclaration, base: str) -> AudioTrack:
    url = resolve_url(base, stream.uri)
    return AudioTrack(
        group_id=_group(stream.attributes.get("AUDIO")),
        url=url,
        normalized_url=normalize_url(url),
        audio_container=infer_containers(stream.codecs)[1],
        bandwidth=stream.bandwidth,
        codecs=stream.codecs,
    )


def _audio_from_media(media: MediaDeclaration, base: str, video_tracks: List[VideoTrack]) -> Optional[AudioTrack]:
    audio = AudioTrack(
        group_id=media.group_id,
        name=media.name,
        language=media.language,
        default=media.default,
        autoselect=media.autoselect,
        characteristics=media.characteristics,
        channels=f"{media.channels} ch" if media.channels else None,
        assoc_language=media.assoc_language,
        audio_container=HLS_DEFAULT_CONTAINERS[1],
    )
    if media.uri:
        audio.url = resolve_url(base, media.uri)
        audio.normalized_url = normalize_url(audio.url)
        return audio

    carrier = next((video for video in video_tracks if media.group_id and video.audio_group_id == media.group_id), None)
    if carrier is None:
        logging.debug("Dropping audio group %s: no URI and no video rendition carries it", media.group_id)
        return None

    carrier.is_used_for_embedded_audio = True
    audio.url = carrier.url
    audio.normalized_url = carrier.normalized_url
    audio.audio_container = carrier.audio_container or HLS_DEFAULT_CONTAINERS[1]
    audio.is_embedded = True
    return audio


def extract_hls(playlist: HlsPlaylist, manifest_url: str) -> Renditions:
    """Builds renditions from a master playlist fetched from ``manifest_url``."""

    base = get_base_directory(manifest_url)
    renditions = Renditions()

    videos: List[VideoTrack] = []
    for stream in playlist.streams:
        if is_audio_only(stream.codecs):
            renditions.audio_tracks.append(_audio_from_stream(stream, base))
        else:
            videos.append(_video_from_stream(stream, base, manifest_url))

    # Muxed audio links to the first carrier in document order, before sorting.
    for media in playlist.media:
        if media.type == "AUDIO":
            audio = _audio_from_media(media, base, videos)
            if audio is not None:
                renditions.audio_tracks.append(audio)
                renditions.has_media_groups = True
        elif media.type == "SUBTITLES":
            if not media.uri:
                logging.debug("Dropping subtitle group %s without URI", media.group_id)
                continue
            url = resolve_url(base, media.uri)
            renditions.subtitle_tracks.append(
                SubtitleTrack(
                    group_id=media.group_id,
                    name=media.name,
                    language=media.language,
                    url=url,
                    normalized_url=normalize_url(url),
                    default=media.default,
                    autoselect=media.autoselect,
                    forced=media.forced,
                    characteristics=media.characteristics,
                    subtitle_container=HLS_SUBTITLE_CONTAINER,
                )
            )
            renditions.has_media_groups = True
        elif media.type == "CLOSED-CAPTIONS":
            renditions.closed_captions.append(
                ClosedCaption(
                    group_id=media.group_id,
                    name=media.name,
                    language=media.language,
                    instream_id=media.instream_id,
                    default=media.default,
                    autoselect=media.autoselect,
                    characteristics=media.characteristics,
                )
            )
            renditions.has_media_groups = True

    renditions.video_tracks = sort_and_dedupe(videos)
    return renditions


def _first(*values: Optional[str]) -> Optional[str]:
    return next((value for value in values if value), None)


def _content_kind(adaptation: DashAdaptationSet, representation: DashRepresentation) -> Optional[str]:
    """Returns ``video``, ``audio``, ``text``, or None for unsupported sets."""

    mime = (_first(representation.get("mimeType"), adaptation.get("mimeType")) or "").lower()
    content_type = (_first(representation.get("contentType"), adaptation.get("contentType")) or "").lower()
    codecs = (_first(representation.get("codecs"), adaptation.get("codecs")) or "").lower()

    for candidate in (content_type, mime):
        if candidate.startswith("video"):
            return "video"
        if candidate.startswith("audio"):
            return "audio"
        if candidate.startswith("text") or "ttml" in candidate or "vtt" in candidate:
            return "text"
    if mime == "application/mp4" and _TEXT_CODEC.search(codecs):
        return "text"

    role = (adaptation.role or "").lower()
    if role in ("subtitle", "caption", "forced-subtitle"):
        return "text"

    if _VIDEO_CODEC.search(codecs):
        return "video"
    if _AUDIO_CODEC.search(codecs):
        return "audio"
    if _TEXT_CODEC.search(codecs):
        return "text"
    return None


def _substitute(template: Optional[str], rep_id: str, bandwidth: Optional[int]) -> Optional[str]:
    if not template:
        return None
    template = template.replace("$RepresentationID$", rep_id)
    if bandwidth is not None:
        template = template.replace("$Bandwidth$", str(bandwidth))
    return template


def _subtitle_container(mime: Optional[str], codecs: Optional[str]) -> str:
    mime = (mime or "").lower()
    if mime in SUBTITLE_CONTAINERS:
        return SUBTITLE_CONTAINERS[mime]
    if codecs and "wvtt" in codecs.lower():
        return "vtt"
    return "ttml"


def _dash_location(
    manifest_url: str, adaptation: DashAdaptationSet, representation: DashRepresentation, as_id: str, rep_id: str
) -> Tuple[str, str, str]:
    """Returns (url, normalized url, base used for templates) for a representation."""

    base = manifest_url
    for segment in adaptation.base_urls:
        base = resolve_url(base, segment)

    if representation.base_url:
        url = resolve_url(base, representation.base_url)
        return url, normalize_url(url), url

    fragment = f"adaptationSet={as_id}&representation={rep_id}"
    return f"{manifest_url}#{fragment}", f"{normalize_url(manifest_url)}#{fragment}", base


def extract_dash(manifest: DashManifest, manifest_url: str) -> Renditions:
    """Builds renditions from every video/audio/text representation of an MPD."""

    renditions = Renditions()
    videos: List[VideoTrack] = []

    for as_index, adaptation in enumerate(manifest.adaptation_sets):
        as_id = adaptation.get("id") or str(as_index)
        for rep_index, representation in enumerate(adaptation.representations):
            kind = _content_kind(adaptation, representation)
            if kind is None:
                logging.debug("Skipping representation %s of adaptation set %s: unknown content", rep_index, as_id)
                continue

            rep_id = representation.get("id") or str(rep_index)
            url, normalized, base = _dash_location(manifest_url, adaptation, representation, as_id, rep_id)
            mime = _first(representation.get("mimeType"), adaptation.get("mimeType"))
            codecs = _first(representation.get("codecs"), adaptation.get("codecs"))
            bandwidth = to_int(representation.get("bandwidth"))
            language = _first(representation.get("lang"), adaptation.get("lang"))
            label = _first(representation.get("label"), adaptation.get("label"))

            if kind == "video":
                template: Dict[str, str] = {**adaptation.segment_template, **representation.segment_template}
                initialization = _substitute(template.get("initialization"), rep_id, bandwidth)
                media = _substitute(template.get("media"), rep_id, bandwidth)
                width = to_int(_first(representation.get("width"), adaptation.get("width")))
                height = to_int(_first(representation.get("height"), adaptation.get("height")))
                video_container, audio_container = infer_containers(codecs, hls=False)
                videos.append(
                    VideoTrack(
                        url=url,
                        normalized_url=normalized,
                        master_url=manifest_url,
                        bandwidth=bandwidth,
                        codecs=codecs,
                        resolution=f"{width}x{height}" if width and height else None,
                        width=width,
                        height=height,
                        standardized_resolution=standardize_resolution(height),
                        fps=parse_frame_rate(_first(representation.get("frameRate"), adaptation.get("frameRate"))),
                        video_container=video_container,
                        audio_container=audio_container,
                        representation_id=representation.get("id"),
                        adaptation_set_id=adaptation.get("id"),
                        mime_type=mime,
                        initialization_url=resolve_url(base, initialization) if initialization else None,
                        media_template=resolve_url(base, media) if media else None,
                    )
                )
            elif kind == "audio":
                channels = channel_count(adaptation, representation)
                renditions.audio_tracks.append(
                    AudioTrack(
                        group_id=adaptation.get("id"),
                        name=label,
                        language=language,
                        url=url,
                        normalized_url=normalized,
                        default=(adaptation.role or "").lower() == "main",
                        channels=str(channels) if channels is not None else None,
                        audio_container=infer_containers(codecs, hls=False)[1],
                        bandwidth=bandwidth,
                        codecs=codecs,
                        sampling_rate=to_int(
                            _first(representation.get("audioSamplingRate"), adaptation.get("audioSamplingRate"))
                        ),
                        representation_id=representation.get("id"),
                    )
                )
            else:
                role = (adaptation.role or "").lower()
                renditions.subtitle_tracks.append(
                    SubtitleTrack(
                        group_id=adaptation.get("id"),
                        name=label,
                        language=language,
                        url=url,
                        normalized_url=normalized,
                        forced=role == "forced-subtitle",
                        subtitle_container=_subtitle_container(mime, codecs),
                    )
                )

    renditions.video_tracks = sort_and_dedupe(videos)
    renditions.has_media_groups = bool(renditions.audio_tracks or renditions.subtitle_tracks)
    apply_dash_metadata(renditions, manifest)
    return renditions


def apply_dash_metadata(renditions: Renditions, manifest: DashManifest) -> None:
    """Copies the manifest-level block onto every rendition in one assignment each."""

    metadata = TrackMetadata(
        duration=manifest.duration,
        is_live=manifest.is_live,
        is_encrypted=manifest.is_encrypted,
        encryption_method=manifest.encryption_method,
    )
    for track in renditions.all_tracks:
        track.metadata = metadata.model_copy()
    for video in renditions.video_tracks:
        video.estimated_file_size_bytes = estimate_size(video, metadata.duration)


def estimate_size(track: VideoTrack, duration: Optional[int]) -> Optional[int]:
    if duration is None or not track.effective_bandwidth:
        return None
    return round_half_up(track.effective_bandwidth / 8 * duration)
