"""Master/variant classification for HLS and DASH content."""

from __future__ import annotations

import re
from typing import Optional

from pydantic import BaseModel

from ..models import ManifestFormat, ParseStatus
from ..utils.url_utils import guess_format_from_url
from .dash_parser import DashManifest

HLS_SIGNATURE = "#EXTM3U"
DASH_NAMESPACE = 'xmlns="urn:mpeg:dash:schema:mpd'

# (tag, weight) pairs for the light-mode heuristic
_HLS_WEIGHTS = (
    ("#EXT-X-STREAM-INF", 0.5),
    ("#EXTINF", -0.5),
    ("#EXT-X-TARGETDURATION", -0.4),
    ("#EXT-X-MEDIA-SEQUENCE", -0.3),
    ("#EXT-X-VERSION", 0.1),
)
_SEGMENT_EXTENSION = re.compile(r"\.(?:ts|aac|mp4)(?:[?#\s]|$)", re.IGNORECASE | re.MULTILINE)
_SEGMENT_PENALTY = -0.3


class Classification(BaseModel):
    format: ManifestFormat
    is_master: bool = False
    is_variant: bool = False
    confidence: Optional[float] = None


def hls_confidence(content: str) -> float:
    """Scores how much a (possibly truncated) playlist looks like a master."""

    score = 0.0
    for tag, weight in _HLS_WEIGHTS:
        if tag in content:
            score += weight
    if _SEGMENT_EXTENSION.search(content):
        score += _SEGMENT_PENALTY
    return round(score, 2)


def classify_hls_light(content: str) -> Classification:
    confidence = hls_confidence(content)
    is_master = confidence > 0
    return Classification(format=ManifestFormat.HLS, is_master=is_master, is_variant=not is_master, confidence=confidence)


def classify_hls_strict(content: str) -> Classification:
    """Tag-presence rules used whenever the full playlist is available.

    A playlist carrying both ``#EXT-X-STREAM-INF`` and ``#EXTINF`` is malformed;
    it is still reported as a master.
    """

    is_master = "#EXT-X-STREAM-INF" in content
    is_variant = not is_master and "#EXTINF" in content
    return Classification(
        format=ManifestFormat.HLS,
        is_master=is_master,
        is_variant=is_variant,
        confidence=hls_confidence(content),
    )


def classify_dash(manifest: DashManifest) -> Classification:
    """An MPD with no representations is neither master nor variant."""

    is_master = any(adaptation.representations for adaptation in manifest.adaptation_sets)
    return Classification(format=ManifestFormat.DASH, is_master=is_master)


def classify_dash_light(content: str) -> Classification:
    """Prefix-only check for light mode, where the MPD is usually truncated."""

    is_master = "<Representation" in content
    return Classification(format=ManifestFormat.DASH, is_master=is_master, is_variant=not is_master)


def detect_format(content: str) -> Optional[ManifestFormat]:
    """Signature sniffing; the DASH check runs first since XML may embed text."""

    if "<MPD" in content and (DASH_NAMESPACE in content or "</MPD>" in content):
        return ManifestFormat.DASH
    if HLS_SIGNATURE in content:
        return ManifestFormat.HLS
    return None


def unrecognized_status(url: str) -> ParseStatus:
    """Content matched no signature: blame the content if the URL promised one."""

    if guess_format_from_url(url):
        return ParseStatus.INVALID_FORMAT
    return ParseStatus.NOT_A_KNOWN_FORMAT
