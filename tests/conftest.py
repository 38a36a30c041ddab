"""Shared fixtures: a scripted fetcher and sample manifests."""

import asyncio
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

import pytest

from manifest_engine.config import EngineSettings
from manifest_engine.coordinator import ManifestCoordinator
from manifest_engine.models import FetchResult

MASTER_URL = "https://cdn.example.com/show/master.m3u8"


@dataclass
class FetchCall:
    url: str
    headers: Optional[Dict[str, str]]
    timeout_ms: Optional[int]
    max_retries: Optional[int]


class FakeFetcher:
    """Returns canned results per exact URL and records every call.

    Unknown URLs answer with a 404 failure. Setting ``gate`` to an
    ``asyncio.Event`` holds every fetch until the event is set.
    """

    def __init__(self) -> None:
        self.responses: Dict[str, Union[FetchResult, Exception]] = {}
        self.calls: List[FetchCall] = []
        self.gate: Optional[asyncio.Event] = None

    def add(self, url: str, content: Optional[str] = None, status: int = 200) -> None:
        self.responses[url] = FetchResult(success=status < 400, status=status, content=content if status < 400 else None)

    def fail(self, url: str, status: int = 0, error: Optional[str] = "connection reset") -> None:
        self.responses[url] = FetchResult(success=False, status=status, error=error)

    def raise_for(self, url: str, exc: Exception) -> None:
        self.responses[url] = exc

    async def fetch(self, url, headers=None, timeout_ms=None, max_retries=None) -> FetchResult:
        self.calls.append(FetchCall(url, headers, timeout_ms, max_retries))
        if self.gate is not None:
            await self.gate.wait()
        response = self.responses.get(url)
        if response is None:
            return FetchResult(success=False, status=404)
        if isinstance(response, Exception):
            raise response
        return response

    def urls(self) -> List[str]:
        return [call.url for call in self.calls]

    def count(self, url: str) -> int:
        return self.urls().count(url)


@pytest.fixture
def fetcher():
    """Fresh scripted fetcher for each test."""
    return FakeFetcher()


@pytest.fixture
def settings():
    """Default settings with retry pauses disabled."""
    return EngineSettings(retry_delay_ms=0)


@pytest.fixture
def coordinator(fetcher, settings):
    """Coordinator wired to the scripted fetcher."""
    return ManifestCoordinator(fetcher, settings)


@pytest.fixture
def master_playlist():
    """Master playlist with two renditions and one subtitle group."""
    return (
        "#EXTM3U\n"
        "#EXT-X-VERSION:3\n"
        '#EXT-X-MEDIA:TYPE=SUBTITLES,GROUP-ID="subs",NAME="English",LANGUAGE="en",URI="subs/en.m3u8"\n'
        '#EXT-X-STREAM-INF:BANDWIDTH=500000,RESOLUTION=640x360,CODECS="avc1.4d401e,mp4a.40.2",SUBTITLES="subs"\n'
        "low/index.m3u8\n"
        '#EXT-X-STREAM-INF:BANDWIDTH=2000000,RESOLUTION=1280x720,CODECS="avc1.4d401f,mp4a.40.2",SUBTITLES="subs"\n'
        "high/index.m3u8\n"
    )


@pytest.fixture
def vod_playlist():
    """Finished media playlist: three 4 second segments."""
    return (
        "#EXTM3U\n"
        "#EXT-X-VERSION:3\n"
        "#EXT-X-TARGETDURATION:4\n"
        "#EXT-X-MEDIA-SEQUENCE:0\n"
        "#EXTINF:4.0,\n"
        "seg0.ts\n"
        "#EXTINF:4.0,\n"
        "seg1.ts\n"
        "#EXTINF:4.0,\n"
        "seg2.ts\n"
        "#EXT-X-ENDLIST\n"
    )


@pytest.fixture
def live_playlist():
    """Sliding-window media playlist without an end tag."""
    return (
        "#EXTM3U\n"
        "#EXT-X-VERSION:3\n"
        "#EXT-X-TARGETDURATION:6\n"
        "#EXT-X-MEDIA-SEQUENCE:1042\n"
        "#EXTINF:6.0,\n"
        "seg1042.ts\n"
        "#EXTINF:6.0,\n"
        "seg1043.ts\n"
    )


@pytest.fixture
def dash_manifest():
    """Static MPD with two video, one audio, and one subtitle representation."""
    return """<?xml version="1.0" encoding="UTF-8"?>
<MPD xmlns="urn:mpeg:dash:schema:mpd:2011" type="static" mediaPresentationDuration="PT1M30.5S" minBufferTime="PT2S">
  <BaseURL>https://cdn.example.com/vod/</BaseURL>
  <Period id="p0">
    <AdaptationSet id="1" mimeType="video/mp4" segmentAlignment="true">
      <ContentProtection schemeIdUri="urn:mpeg:dash:mp4protection:2011" value="cenc"/>
      <ContentProtection schemeIdUri="urn:uuid:EDEF8BA9-79D6-4ACE-A3C8-27DCD51D21ED"/>
      <SegmentTemplate initialization="$RepresentationID$/init.mp4" media="$RepresentationID$/seg-$Number$.m4s" startNumber="1"/>
      <Representation id="v720" bandwidth="3000000" width="1280" height="720" codecs="avc1.64001f" frameRate="30000/1001"/>
      <Representation id="v1080" bandwidth="6000000" width="1920" height="1080" codecs="avc1.640028" frameRate="30"/>
    </AdaptationSet>
    <AdaptationSet id="2" mimeType="audio/mp4" lang="en">
      <Role schemeIdUri="urn:mpeg:dash:role:2011" value="main"/>
      <Representation id="a1" bandwidth="128000" codecs="mp4a.40.2" audioSamplingRate="48000">
        <AudioChannelConfiguration schemeIdUri="urn:mpeg:dash:23003:3:audio_channel_configuration:2011" value="2"/>
      </Representation>
    </AdaptationSet>
    <AdaptationSet id="3" mimeType="text/vtt" lang="de">
      <Role schemeIdUri="urn:mpeg:dash:role:2011" value="subtitle"/>
      <Representation id="s1" bandwidth="256">
        <BaseURL>subs/de.vtt</BaseURL>
      </Representation>
    </AdaptationSet>
  </Period>
</MPD>
"""
