"""Unit tests for master/variant classification and format sniffing."""

import pytest

from manifest_engine.models import ManifestFormat, ParseStatus
from manifest_engine.parser.classifier import (
    classify_dash,
    classify_dash_light,
    classify_hls_light,
    classify_hls_strict,
    detect_format,
    hls_confidence,
    unrecognized_status,
)
from manifest_engine.parser.dash_parser import parse_dash

MASTER = "#EXTM3U\n#EXT-X-VERSION:3\n#EXT-X-STREAM-INF:BANDWIDTH=1000\nlow.m3u8\n"
MEDIA = "#EXTM3U\n#EXT-X-TARGETDURATION:4\n#EXT-X-MEDIA-SEQUENCE:0\n#EXTINF:4.0,\nseg0.ts\n#EXT-X-ENDLIST\n"
AMBIGUOUS = "#EXTM3U\n#EXT-X-STREAM-INF:BANDWIDTH=1000\nlow.m3u8\n#EXTINF:4.0,\nseg0.ts\n"


def test_confidence_for_master():
    """Test the heuristic score of a typical master playlist."""
    assert hls_confidence(MASTER) == pytest.approx(0.6)
    assert classify_hls_light(MASTER).is_master is True


def test_confidence_for_media_playlist():
    """Test the heuristic score of a media playlist with .ts segments."""
    assert hls_confidence(MEDIA) == pytest.approx(-1.5)

    light = classify_hls_light(MEDIA)
    assert light.is_master is False
    assert light.is_variant is True


@pytest.mark.parametrize(
    "content",
    [
        MASTER,
        "#EXTM3U\n#EXT-X-STREAM-INF:BANDWIDTH=1,CODECS=\"avc1\"\na.m3u8\n#EXT-X-STREAM-INF:BANDWIDTH=2\nb.m3u8\n",
        "#EXTM3U\n#EXT-X-INDEPENDENT-SEGMENTS\n#EXT-X-STREAM-INF:BANDWIDTH=1\nhttps://x.example.com/v.m3u8\n",
    ],
)
def test_strict_master(content):
    """Test that STREAM-INF without EXTINF is always a master."""
    result = classify_hls_strict(content)
    assert result.is_master is True
    assert result.is_variant is False


@pytest.mark.parametrize(
    "content",
    [
        MEDIA,
        "#EXTM3U\n#EXTINF:10,\nhttps://x.example.com/s.aac\n",
        "#EXTM3U\n#EXT-X-VERSION:7\n#EXTINF:2.002,title\npart.m4s\n",
    ],
)
def test_strict_variant(content):
    """Test that EXTINF without STREAM-INF is always a variant."""
    result = classify_hls_strict(content)
    assert result.is_master is False
    assert result.is_variant is True


def test_ambiguous_playlist_is_degenerate():
    """Test that STREAM-INF plus EXTINF makes the two classifiers disagree.

    The heuristic scores it as a variant while the strict rule, which is
    authoritative once the full text is available, reports a master.
    """
    assert classify_hls_light(AMBIGUOUS).is_master is False
    strict = classify_hls_strict(AMBIGUOUS)
    assert strict.is_master is True
    assert strict.is_variant is False


def test_playlist_with_neither_tag():
    """Test that a bare header is neither master nor variant."""
    result = classify_hls_strict("#EXTM3U\n#EXT-X-VERSION:3\n")
    assert result.is_master is False
    assert result.is_variant is False


def test_classify_dash(dash_manifest):
    """Test that representations under an adaptation set make a master."""
    assert classify_dash(parse_dash(dash_manifest)).is_master is True

    empty = classify_dash(parse_dash('<MPD xmlns="urn:mpeg:dash:schema:mpd:2011"><Period/></MPD>'))
    assert empty.is_master is False
    assert empty.is_variant is False


def test_classify_dash_light_on_truncated_prefix(dash_manifest):
    """Test the prefix check used before the full MPD is available."""
    prefix = dash_manifest[: dash_manifest.index("<Representation") + 30]
    assert classify_dash_light(prefix).is_master is True
    assert classify_dash_light(dash_manifest[:200]).is_master is False


def test_detect_format():
    """Test signature sniffing for both formats."""
    assert detect_format('<?xml version="1.0"?><MPD xmlns="urn:mpeg:dash:schema:mpd:2011">') == ManifestFormat.DASH
    assert detect_format("<MPD></MPD>") == ManifestFormat.DASH
    assert detect_format("<MPD type='static'>") is None
    assert detect_format(MASTER) == ManifestFormat.HLS
    assert detect_format("<html>not a manifest</html>") is None


def test_unrecognized_status_depends_on_url():
    """Test invalid-format for manifest URLs and not-a-known-format otherwise."""
    assert unrecognized_status("https://cdn.example.com/a/master.m3u8") == ParseStatus.INVALID_FORMAT
    assert unrecognized_status("https://cdn.example.com/a/manifest.mpd?t=1") == ParseStatus.INVALID_FORMAT
    assert unrecognized_status("https://cdn.example.com/watch?v=1") == ParseStatus.NOT_A_KNOWN_FORMAT
