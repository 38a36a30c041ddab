"""Fetches a few renditions of a master playlist to learn duration and encryption."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Union

from ..config import EngineSettings
from ..models import AudioTrack, ManifestDescriptor, SubtitleTrack, TrackMetadata, VideoTrack
from ..utils.http_client import ManifestFetcher
from .classifier import HLS_SIGNATURE
from .extractor import estimate_size
from .hls_parser import VariantSummary, summarize_variant

Track = Union[VideoTrack, AudioTrack, SubtitleTrack]


class MetadataProber:
    """Probes renditions one at a time and shares the first useful answer.

    Candidates are tried video first, then audio, then subtitles, with at
    most ``max_probe_candidates`` fetches in total. Muxed audio keeps its
    place even though its URL repeats a video rendition. A live result or a known
    duration ends the loop early.
    """

    def __init__(self, fetcher: ManifestFetcher, settings: Optional[EngineSettings] = None) -> None:
        self.fetcher = fetcher
        self.settings = settings or EngineSettings()

    def candidates(self, descriptor: ManifestDescriptor) -> List[Track]:
        tracks: List[Track] = list(descriptor.video_tracks)
        tracks.extend(audio for audio in descriptor.audio_tracks if audio.url)
        tracks.extend(subtitle for subtitle in descriptor.subtitle_tracks if subtitle.url)
        return tracks[: self.settings.max_probe_candidates]

    async def probe(self, descriptor: ManifestDescriptor, headers: Optional[Dict[str, str]] = None) -> Optional[VariantSummary]:
        """Fills the descriptor's metadata in place and returns the summary used."""

        summary: Optional[VariantSummary] = None
        probed: Optional[Track] = None

        for index, track in enumerate(self.candidates(descriptor), start=1):
            logging.debug("Probing candidate %s: %s", index, track.url)
            try:
                result = await self.fetcher.fetch(
                    track.url,
                    headers=headers,
                    timeout_ms=self.settings.probe_timeout_ms,
                    max_retries=self.settings.probe_max_retries,
                )
            except Exception as exc:
                logging.warning("Probe of %s raised: %s", track.url, exc)
                continue

            if not result.success or not result.content:
                logging.warning("Probe of %s failed (status %s)", track.url, result.status)
                continue
            if HLS_SIGNATURE not in result.content:
                logging.warning("Probe of %s returned something other than a playlist", track.url)
                continue

            summary, probed = summarize_variant(result.content), track
            if summary.is_live or summary.duration is not None:
                break

        if summary is None or probed is None:
            logging.info("No rendition of %s yielded metadata", descriptor.url)
            descriptor.duration = None
            descriptor.no_duration = True
            return None

        self.propagate(descriptor, summary, probed)
        return summary

    def propagate(self, descriptor: ManifestDescriptor, summary: VariantSummary, probed: Track) -> None:
        metadata = TrackMetadata(**summary.model_dump())
        for track in [*descriptor.video_tracks, *descriptor.audio_tracks, *descriptor.subtitle_tracks]:
            track.metadata = metadata.model_copy()
            track.directly_fetched = track is probed
        for video in descriptor.video_tracks:
            video.estimated_file_size_bytes = estimate_size(video, metadata.duration)

        descriptor.duration = summary.duration
        descriptor.is_live = summary.is_live
        descriptor.segment_count = summary.segment_count
        descriptor.is_encrypted = summary.is_encrypted
        descriptor.encryption_method = summary.encryption_method
        descriptor.no_duration = summary.duration is None and not summary.is_live
        logging.debug(
            "Propagated metadata from %s: duration=%s live=%s encrypted=%s",
            probed.url,
            summary.duration,
            summary.is_live,
            summary.is_encrypted,
        )
