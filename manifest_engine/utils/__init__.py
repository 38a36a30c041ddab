"""Utility helpers for HTTP, URLs, and caching."""

from .cache_store import CacheStore
from .http_client import HttpClient, ManifestFetcher
from .url_utils import get_base_directory, normalize_url, resolve_url, standardize_resolution

__all__ = [
    "CacheStore",
    "HttpClient",
    "ManifestFetcher",
    "get_base_directory",
    "normalize_url",
    "resolve_url",
    "standardize_resolution",
]
