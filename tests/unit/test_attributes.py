"""Unit tests for the attribute-list tokenizer and numeric helpers."""

import pytest

from manifest_engine.parser.attributes import (
    parse_attribute_list,
    parse_frame_rate,
    parse_resolution,
    round_half_up,
    split_tag,
    to_float,
    to_int,
)


def test_parse_attribute_list_keeps_commas_inside_quotes():
    """Test that quoted CODECS values are not split on their commas."""
    attributes = parse_attribute_list('BANDWIDTH=1280000,RESOLUTION=1280x720,CODECS="avc1.4d401f,mp4a.40.2"')

    assert attributes == {
        "BANDWIDTH": "1280000",
        "RESOLUTION": "1280x720",
        "CODECS": "avc1.4d401f,mp4a.40.2",
    }


def test_parse_attribute_list_skips_keys_without_value():
    """Test that fragments without '=' are ignored."""
    assert parse_attribute_list("FOO,BAR=1") == {"BAR": "1"}


def test_parse_attribute_list_unterminated_quote_runs_to_end():
    """Test that an unterminated quote swallows the rest of the line."""
    assert parse_attribute_list('NAME="English, US') == {"NAME": "English, US"}


def test_parse_attribute_list_empty_and_trailing_values():
    """Test empty values and characters after a closing quote."""
    assert parse_attribute_list('A=,B=2') == {"A": "", "B": "2"}
    assert parse_attribute_list('URI="a.m3u8"junk,B=1') == {"URI": "a.m3u8", "B": "1"}


def test_parse_attribute_list_trims_whitespace():
    """Test that keys and unquoted values are trimmed."""
    assert parse_attribute_list(" A = 1 , B=2") == {"A": "1", "B": "2"}


def test_split_tag():
    """Test splitting a tag line into name and payload."""
    assert split_tag("#EXT-X-KEY:METHOD=AES-128") == ("#EXT-X-KEY", "METHOD=AES-128")
    assert split_tag("#EXT-X-ENDLIST") == ("#EXT-X-ENDLIST", "")


@pytest.mark.parametrize(
    "value, expected",
    [("12", 12), ("12abc", 12), (" 7", 7), ("abc", None), ("", None), (None, None)],
)
def test_to_int(value, expected):
    """Test that integers parse leniently and garbage becomes None."""
    assert to_int(value) == expected


def test_to_float():
    """Test float parsing including EXTINF-style trailing commas."""
    assert to_float("4.004,") == pytest.approx(4.004)
    assert to_float(".5") == pytest.approx(0.5)
    assert to_float("nan") is None
    assert to_float("1e400") is None
    assert to_float(None) is None


def test_parse_frame_rate():
    """Test that plain and rational frame rates round to whole frames."""
    assert parse_frame_rate("30000/1001") == 30
    assert parse_frame_rate("24000/1001") == 24
    assert parse_frame_rate("29.970") == 30
    assert parse_frame_rate("12.5") == 13
    assert parse_frame_rate("25") == 25
    assert parse_frame_rate("1/0") is None
    assert parse_frame_rate(None) is None


def test_parse_resolution():
    """Test WIDTHxHEIGHT parsing."""
    assert parse_resolution("1920x1080") == (1920, 1080)
    assert parse_resolution("bogus") == (None, None)
    assert parse_resolution(None) == (None, None)


def test_round_half_up():
    """Test that .5 always rounds up, unlike banker's rounding."""
    assert round_half_up(2.5) == 3
    assert round_half_up(11.5) == 12
    assert round_half_up(11.49) == 11
