"""URL helpers for resolving renditions and building dedup keys."""

from __future__ import annotations

from typing import Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlparse, urlunparse

VOLATILE_PARAMS = {
    "_t",
    "_r",
    "_",
    "cache",
    "cachebuster",
    "time",
    "timestamp",
    "random",
    "expires",
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
    "fbclid",
    "gclid",
    "msclkid",
}

STREAMING_PARAMS = {"seq", "segment", "session", "cmsid", "start", "end", "quality", "itag"}

CANONICAL_MANIFEST_MARKERS = ("/manifest", "/playlist", "/master.m3u8", "/index.m3u8", "manifest.mpd")

RESOLUTION_BUCKETS = (4320, 2160, 1440, 1080, 720, 480, 360, 240, 144)


def _is_http(url: str) -> bool:
    return urlparse(url).scheme.lower() in {"http", "https"}


def _is_manifest_url(url: str) -> bool:
    return ".m3u8" in url or ".mpd" in url


def normalize_url(url: str) -> str:
    """Strips volatile query parameters so equivalent URLs compare equal.

    Non-HTTP URLs (``blob:``, ``data:``) are returned unchanged.
    """

    if not url or not _is_http(url):
        return url

    parsed = urlparse(url)
    path = parsed.path
    if path.endswith("/") and path != "/":
        path = path.rstrip("/") or "/"

    if _is_manifest_url(url) and any(marker in url for marker in CANONICAL_MANIFEST_MARKERS):
        return urlunparse((parsed.scheme, parsed.netloc, path, "", "", ""))

    dropped = set(VOLATILE_PARAMS)
    if _is_manifest_url(url):
        dropped |= STREAMING_PARAMS
    query = [(key, value) for key, value in parse_qsl(parsed.query, keep_blank_values=True) if key not in dropped]
    return urlunparse((parsed.scheme, parsed.netloc, path, "", urlencode(query), ""))


def get_base_directory(url: str) -> str:
    """Returns the URL with its last path segment removed, ending in ``/``."""

    parsed = urlparse(url)
    directory = parsed.path.rsplit("/", 1)[0]
    return f"{parsed.scheme}://{parsed.netloc}{directory}/"


def resolve_url(base: str, relative: str) -> str:
    """Resolves ``relative`` against ``base``; absolute URLs pass through."""

    relative = relative.strip()
    if urlparse(relative).scheme:
        return relative
    return urljoin(base, relative)


def standardize_resolution(height: Optional[int]) -> Optional[str]:
    """Buckets a pixel height into a common label such as ``1080p``."""

    if not height:
        return None
    for bucket in RESOLUTION_BUCKETS:
        if height >= bucket:
            return f"{bucket}p"
    return f"{height}p"


def guess_format_from_url(url: str) -> Optional[str]:
    path = urlparse(url).path.lower()
    if path.endswith(".m3u8") or path.endswith(".m3u"):
        return "hls"
    if path.endswith(".mpd"):
        return "dash"
    return None
