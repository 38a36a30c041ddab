"""Line grammar for HLS playlists (both master and media playlists)."""

from __future__ import annotations

import re
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .attributes import ManifestParseError, parse_attribute_list, round_half_up, split_tag, to_float, to_int, yes

_LINE_SPLIT = re.compile(r"\r?\n")


class StreamDeclaration(BaseModel):
    """``#EXT-X-STREAM-INF`` attributes plus the URI line that follows."""

    attributes: Dict[str, str]
    uri: str

    @property
    def bandwidth(self) -> Optional[int]:
        return to_int(self.attributes.get("BANDWIDTH"))

    @property
    def average_bandwidth(self) -> Optional[int]:
        return to_int(self.attributes.get("AVERAGE-BANDWIDTH"))

    @property
    def codecs(self) -> Optional[str]:
        return self.attributes.get("CODECS") or None


class MediaDeclaration(BaseModel):
    """One ``#EXT-X-MEDIA`` alternate rendition."""

    type: str
    group_id: Optional[str] = None
    name: Optional[str] = None
    language: Optional[str] = None
    uri: Optional[str] = None
    default: bool = False
    autoselect: bool = False
    forced: bool = False
    characteristics: Optional[str] = None
    channels: Optional[str] = None
    assoc_language: Optional[str] = None
    instream_id: Optional[str] = None

    @classmethod
    def from_attributes(cls, attributes: Dict[str, str]) -> "MediaDeclaration":
        return cls(
            type=attributes.get("TYPE", "").upper(),
            group_id=attributes.get("GROUP-ID") or None,
            name=attributes.get("NAME") or None,
            language=attributes.get("LANGUAGE") or None,
            uri=attributes.get("URI") or None,
            default=yes(attributes.get("DEFAULT")),
            autoselect=yes(attributes.get("AUTOSELECT")),
            forced=yes(attributes.get("FORCED")),
            characteristics=attributes.get("CHARACTERISTICS") or None,
            channels=attributes.get("CHANNELS") or None,
            assoc_language=attributes.get("ASSOC-LANGUAGE") or None,
            instream_id=attributes.get("INSTREAM-ID") or None,
        )


class KeyDeclaration(BaseModel):
    method: Optional[str] = None
    uri: Optional[str] = None


class HlsPlaylist(BaseModel):
    """Typed records extracted from one playlist, with no URL resolution."""

    version: Optional[int] = 1
    streams: List[StreamDeclaration] = Field(default_factory=list)
    media: List[MediaDeclaration] = Field(default_factory=list)
    keys: List[KeyDeclaration] = Field(default_factory=list)
    segment_durations: List[float] = Field(default_factory=list)
    has_endlist: bool = False
    target_duration: Optional[int] = None
    media_sequence: Optional[int] = None

    @property
    def is_live(self) -> bool:
        return not self.has_endlist

    @property
    def is_encrypted(self) -> bool:
        """True when the first key tag names a method other than ``NONE``."""

        if not self.keys:
            return False
        method = self.keys[0].method
        return not (method and method.upper() == "NONE")

    @property
    def encryption_method(self) -> Optional[str]:
        return self.keys[0].method if self.is_encrypted else None


class VariantSummary(BaseModel):
    """Duration, live status, and encryption measured from a media playlist."""

    duration: Optional[int] = None
    is_live: bool = True
    segment_count: Optional[int] = None
    is_encrypted: bool = False
    encryption_method: Optional[str] = None
    version: Optional[int] = 1


def split_lines(content: str) -> List[str]:
    return [line.strip() for line in _LINE_SPLIT.split(content)]


def parse_hls(content: str) -> HlsPlaylist:
    """Tokenizes playlist text into stream, media, key, and segment records."""

    if "#EXTM3U" not in content:
        raise ManifestParseError("Missing #EXTM3U header")
    lines = split_lines(content)

    playlist = HlsPlaylist()
    version_seen = False
    pending_stream: Optional[Dict[str, str]] = None

    for line in lines:
        if not line:
            continue

        if not line.startswith("#"):
            if pending_stream is not None:
                playlist.streams.append(StreamDeclaration(attributes=pending_stream, uri=line))
                pending_stream = None
            continue

        tag, rest = split_tag(line)
        if tag == "#EXT-X-STREAM-INF":
            pending_stream = parse_attribute_list(rest)
        elif tag == "#EXT-X-MEDIA":
            playlist.media.append(MediaDeclaration.from_attributes(parse_attribute_list(rest)))
        elif tag == "#EXT-X-KEY":
            attributes = parse_attribute_list(rest)
            method = attributes.get("METHOD")
            playlist.keys.append(KeyDeclaration(method=method.replace('"', "") if method else None, uri=attributes.get("URI")))
        elif tag == "#EXT-X-VERSION" and not version_seen:
            version_seen = True
            playlist.version = to_int(rest)
        elif tag == "#EXTINF":
            duration = to_float(rest.split(",", 1)[0])
            if duration is not None:
                playlist.segment_durations.append(duration)
        elif tag == "#EXT-X-ENDLIST":
            playlist.has_endlist = True
        elif tag == "#EXT-X-TARGETDURATION":
            playlist.target_duration = to_int(rest)
        elif tag == "#EXT-X-MEDIA-SEQUENCE":
            playlist.media_sequence = to_int(rest)

    return playlist


def summarize_variant(content: str) -> VariantSummary:
    """Computes the metadata block a media playlist contributes to its master."""

    playlist = parse_hls(content)
    segment_count = len(playlist.segment_durations)
    duration: Optional[int] = None
    if not playlist.is_live and segment_count:
        duration = round_half_up(sum(playlist.segment_durations))

    return VariantSummary(
        duration=duration,
        is_live=playlist.is_live,
        segment_count=None if playlist.is_live else segment_count,
        is_encrypted=playlist.is_encrypted,
        encryption_method=playlist.encryption_method,
        version=playlist.version,
    )
