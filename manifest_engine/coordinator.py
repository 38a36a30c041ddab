"""Top-level entry point tying fetching, parsing, probing, and caching together."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Set, Union

from .config import EngineSettings
from .models import (
    FetchResult,
    ManifestDescriptor,
    ManifestFormat,
    ParseMode,
    ParseStatus,
    TrackMetadata,
    VideoTrack,
)
from .models.manifest_models import utc_now
from .parser.attributes import ManifestParseError
from .parser.classifier import (
    Classification,
    classify_dash,
    classify_dash_light,
    classify_hls_light,
    classify_hls_strict,
    detect_format,
    unrecognized_status,
)
from .parser.dash_parser import parse_dash
from .parser.extractor import Renditions, estimate_size, extract_dash, extract_hls
from .parser.hls_parser import parse_hls, summarize_variant
from .parser.prober import MetadataProber
from .utils.cache_store import CacheStore
from .utils.http_client import ManifestFetcher
from .utils.url_utils import normalize_url


class ManifestCoordinator:
    """Parses manifests on request and remembers masters and their variants.

    Requests for a URL that is already being parsed return a ``processing``
    result instead of fetching again. Raw content is cached for a short TTL;
    parsed masters are cached until :meth:`clear_caches`.
    """

    def __init__(
        self,
        fetcher: ManifestFetcher,
        settings: Optional[EngineSettings] = None,
        content_cache: Optional[CacheStore[str]] = None,
        master_cache: Optional[CacheStore[ManifestDescriptor]] = None,
    ) -> None:
        self.fetcher = fetcher
        self.settings = settings or EngineSettings()
        self.content_cache = content_cache if content_cache is not None else CacheStore(self.settings.content_cache_ttl)
        self.master_cache = master_cache if master_cache is not None else CacheStore()
        self.prober = MetadataProber(fetcher, self.settings)
        self._in_flight: Set[str] = set()

    async def parse_manifest(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        mode: Union[ParseMode, str] = ParseMode.FULL,
    ) -> ManifestDescriptor:
        """Parses ``url`` and returns a descriptor; never raises."""

        try:
            mode = ParseMode(mode)
            normalized = normalize_url(url)
        except ValueError as exc:
            logging.error("Rejected parse request for %s: %s", url, exc)
            return ManifestDescriptor.failed(url, url, ParseStatus.PARSE_ERROR, str(exc))

        if normalized in self._in_flight:
            logging.debug("Parse of %s already in progress", normalized)
            return ManifestDescriptor.processing(url, normalized, mode)

        self._in_flight.add(normalized)
        try:
            self.content_cache.evict_expired()
            if mode == ParseMode.LIGHT:
                descriptor = await self._parse_light(url, normalized, headers)
            else:
                descriptor = await self._parse_full(url, normalized, headers)
        except Exception as exc:
            logging.error("Unexpected error while parsing %s: %s", url, exc)
            descriptor = ManifestDescriptor.failed(url, normalized, ParseStatus.PARSE_ERROR, str(exc), mode=mode)
        finally:
            self._in_flight.discard(normalized)

        if not descriptor.ok:
            self._forget(normalized)
            logging.info("Parse of %s finished with %s", url, descriptor.status.value)
        return descriptor

    async def _fetch_content(self, url: str, normalized: str, headers: Optional[Dict[str, str]]) -> FetchResult:
        cached = self.content_cache.get(normalized)
        if cached is not None:
            logging.debug("Using cached content for %s", normalized)
            return FetchResult(success=True, status=200, content=cached)
        return await self.fetcher.fetch(
            url,
            headers=headers,
            timeout_ms=self.settings.fetch_timeout_ms,
            max_retries=self.settings.fetch_max_retries,
        )

    async def _parse_full(self, url: str, normalized: str, headers: Optional[Dict[str, str]]) -> ManifestDescriptor:
        cached_master = self.master_cache.get(normalized)
        if cached_master is not None:
            logging.debug("Serving %s from master cache", normalized)
            return cached_master.model_copy(deep=True)

        result = await self._fetch_content(url, normalized, headers)
        if not result.success or result.content is None:
            return self._fetch_failed(url, normalized, result, ParseMode.FULL)

        content = result.content
        manifest_format = detect_format(content)
        if manifest_format is None:
            return ManifestDescriptor.failed(
                url, normalized, unrecognized_status(url), "Content is neither HLS nor DASH"
            )

        try:
            if manifest_format == ManifestFormat.HLS:
                descriptor = await self._build_hls(url, normalized, content, headers)
            else:
                descriptor = self._build_dash(url, normalized, content)
        except ManifestParseError as exc:
            return ManifestDescriptor.failed(
                url, normalized, ParseStatus.INVALID_FORMAT, str(exc), manifest_format=manifest_format
            )

        if descriptor.ok:
            self.content_cache.put(normalized, content)
            if descriptor.is_master:
                self.master_cache.put(normalized, descriptor.model_copy(deep=True))
                logging.info(
                    "Cached %s master %s with %s video renditions",
                    manifest_format.value,
                    normalized,
                    len(descriptor.video_tracks),
                )
        return descriptor

    def _new_descriptor(
        self, url: str, normalized: str, classification: Classification, mode: ParseMode
    ) -> Optional[ManifestDescriptor]:
        if not (classification.is_master or classification.is_variant):
            return None
        return ManifestDescriptor(
            url=url,
            normalized_url=normalized,
            format=classification.format,
            mode=mode,
            status=ParseStatus.SUCCESS,
            is_master=classification.is_master,
            is_variant=classification.is_variant,
            confidence=classification.confidence,
            validated_at=utc_now(),
        )

    @staticmethod
    def _unclassified(url: str, normalized: str, manifest_format: ManifestFormat, mode: ParseMode) -> ManifestDescriptor:
        return ManifestDescriptor.failed(
            url,
            normalized,
            ParseStatus.INVALID_FORMAT,
            "Manifest is neither a master nor a media playlist",
            manifest_format=manifest_format,
            mode=mode,
        )

    async def _build_hls(
        self, url: str, normalized: str, content: str, headers: Optional[Dict[str, str]]
    ) -> ManifestDescriptor:
        playlist = parse_hls(content)
        descriptor = self._new_descriptor(url, normalized, classify_hls_strict(content), ParseMode.FULL)
        if descriptor is None:
            return self._unclassified(url, normalized, ManifestFormat.HLS, ParseMode.FULL)

        if descriptor.is_master:
            descriptor.version = playlist.version
            self._apply_renditions(descriptor, extract_hls(playlist, url))
            await self.prober.probe(descriptor, headers)
        else:
            summary = summarize_variant(content)
            metadata = TrackMetadata(**summary.model_dump())
            descriptor.version = summary.version
            descriptor.duration = summary.duration
            descriptor.is_live = summary.is_live
            descriptor.segment_count = summary.segment_count
            descriptor.is_encrypted = summary.is_encrypted
            descriptor.encryption_method = summary.encryption_method
            descriptor.no_duration = summary.duration is None and not summary.is_live
            descriptor.video_tracks = [self._variant_track(url, normalized, metadata)]

        descriptor.parsed_at = utc_now()
        return descriptor

    def _variant_track(self, url: str, normalized: str, metadata: TrackMetadata) -> VideoTrack:
        """The single rendition of a media playlist, enriched from its master when known."""

        master = self._find_master(normalized)
        known = None
        if master is not None:
            known = next((track for track in master.video_tracks if track.normalized_url == normalized), None)

        if known is not None:
            track = known.model_copy(deep=True)
            track.url = url
        else:
            track = VideoTrack(url=url, normalized_url=normalized, master_url=master.url if master else None)
        track.metadata = metadata
        track.directly_fetched = True
        track.estimated_file_size_bytes = estimate_size(track, metadata.duration)
        return track

    def _build_dash(self, url: str, normalized: str, content: str) -> ManifestDescriptor:
        manifest = parse_dash(content)
        descriptor = self._new_descriptor(url, normalized, classify_dash(manifest), ParseMode.FULL)
        if descriptor is None:
            return self._unclassified(url, normalized, ManifestFormat.DASH, ParseMode.FULL)

        self._apply_renditions(descriptor, extract_dash(manifest, url))
        descriptor.duration = manifest.duration
        descriptor.is_live = manifest.is_live
        descriptor.is_encrypted = manifest.is_encrypted
        descriptor.encryption_method = manifest.encryption_method
        descriptor.no_duration = manifest.duration is None and not manifest.is_live
        descriptor.parsed_at = utc_now()
        return descriptor

    @staticmethod
    def _apply_renditions(descriptor: ManifestDescriptor, renditions: Renditions) -> None:
        descriptor.video_tracks = renditions.video_tracks
        descriptor.audio_tracks = renditions.audio_tracks
        descriptor.subtitle_tracks = renditions.subtitle_tracks
        descriptor.closed_captions = renditions.closed_captions
        descriptor.has_media_groups = renditions.has_media_groups

    async def _parse_light(self, url: str, normalized: str, headers: Optional[Dict[str, str]]) -> ManifestDescriptor:
        """Classification only: no renditions, no probing, nothing cached."""

        content = self.content_cache.get(normalized)
        complete = content is not None
        if content is None:
            range_headers = {**(headers or {}), "Range": f"bytes=0-{self.settings.light_range_bytes - 1}"}
            result = await self.fetcher.fetch(
                url,
                headers=range_headers,
                timeout_ms=self.settings.light_timeout_ms,
                max_retries=0,
            )
            if not result.success or result.content is None:
                return self._fetch_failed(url, normalized, result, ParseMode.LIGHT)
            content = result.content

        manifest_format = detect_format(content)
        if manifest_format is None:
            return ManifestDescriptor.failed(
                url, normalized, unrecognized_status(url), "Content is neither HLS nor DASH", mode=ParseMode.LIGHT
            )

        try:
            if manifest_format == ManifestFormat.HLS:
                classification = classify_hls_strict(content) if complete else classify_hls_light(content)
            elif complete:
                classification = classify_dash(parse_dash(content))
            else:
                classification = classify_dash_light(content)
        except ManifestParseError as exc:
            return ManifestDescriptor.failed(
                url, normalized, ParseStatus.INVALID_FORMAT, str(exc), manifest_format=manifest_format, mode=ParseMode.LIGHT
            )

        descriptor = self._new_descriptor(url, normalized, classification, ParseMode.LIGHT)
        if descriptor is None:
            return self._unclassified(url, normalized, manifest_format, ParseMode.LIGHT)
        return descriptor

    @staticmethod
    def _fetch_failed(url: str, normalized: str, result: FetchResult, mode: ParseMode) -> ManifestDescriptor:
        error = result.error or f"HTTP {result.status}"
        logging.warning("Could not fetch %s: %s", url, error)
        return ManifestDescriptor.failed(url, normalized, ParseStatus.FETCH_FAILED, error, mode=mode)

    def _forget(self, normalized: str) -> None:
        self.content_cache.delete(normalized)
        self.master_cache.delete(normalized)

    def _find_master(self, normalized: str) -> Optional[ManifestDescriptor]:
        for master in self.master_cache.values():
            if normalized in master.media_urls():
                return master
        return None

    def is_known_variant(self, url: str) -> bool:
        return self._find_master(normalize_url(url)) is not None

    def get_master_for_variant(self, url: str) -> Optional[ManifestDescriptor]:
        master = self._find_master(normalize_url(url))
        return master.model_copy(deep=True) if master is not None else None

    def is_known_master(self, url: str) -> bool:
        return normalize_url(url) in self.master_cache

    def get_best_quality(self, url: str) -> List[VideoTrack]:
        """Video renditions, best first, for a master URL or any of its variants."""

        normalized = normalize_url(url)
        master = self.master_cache.get(normalized) or self._find_master(normalized)
        if master is None:
            return []
        return [track.model_copy(deep=True) for track in master.video_tracks]

    def get_all_masters(self) -> List[ManifestDescriptor]:
        return [master.model_copy(deep=True) for master in self.master_cache.values()]

    def clear_caches(self) -> None:
        logging.info("Clearing %s cached masters and %s cached manifests", len(self.master_cache), len(self.content_cache))
        self.master_cache.clear()
        self.content_cache.clear()
