"""Attribute-list tokenizer and tolerant numeric helpers shared by the parsers."""

from __future__ import annotations

import math
import re
from typing import Dict, Optional, Tuple

_INT_PREFIX = re.compile(r"\s*[+-]?\d+")
_FLOAT_PREFIX = re.compile(r"\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

# Tokenizer states
_KEY = 0
_VALUE_START = 1
_QUOTED = 2
_UNQUOTED = 3
_AFTER_QUOTE = 4


class ManifestParseError(ValueError):
    """Raised when text does not follow the expected manifest grammar."""


def parse_attribute_list(text: str) -> Dict[str, str]:
    """Splits ``KEY=value,KEY="quoted, value"`` into a dict.

    Commas inside double quotes never separate attributes. Fragments without
    ``=`` are skipped and an unterminated quote runs to the end of the text.
    """

    attributes: Dict[str, str] = {}
    state = _KEY
    key_chars = []
    value_chars = []

    def commit() -> None:
        key = "".join(key_chars).strip()
        if key:
            attributes[key] = "".join(value_chars).strip()
        key_chars.clear()
        value_chars.clear()

    for char in text:
        if state == _KEY:
            if char == "=":
                state = _VALUE_START
            elif char == ",":
                key_chars.clear()
            else:
                key_chars.append(char)
        elif state == _VALUE_START:
            if char == '"':
                state = _QUOTED
            elif char == ",":
                commit()
                state = _KEY
            else:
                value_chars.append(char)
                state = _UNQUOTED
        elif state == _QUOTED:
            if char == '"':
                state = _AFTER_QUOTE
            else:
                value_chars.append(char)
        elif state == _UNQUOTED:
            if char == ",":
                commit()
                state = _KEY
            else:
                value_chars.append(char)
        elif state == _AFTER_QUOTE:
            if char == ",":
                commit()
                state = _KEY

    if state != _KEY:
        commit()
    return attributes


def split_tag(line: str) -> Tuple[str, str]:
    """``#EXT-X-KEY:METHOD=AES-128`` -> (``#EXT-X-KEY``, ``METHOD=AES-128``)."""

    tag, _, rest = line.partition(":")
    return tag, rest


def to_int(value: Optional[str]) -> Optional[int]:
    """Leading-integer parse; anything unparseable is treated as absent."""

    if value is None:
        return None
    match = _INT_PREFIX.match(str(value))
    return int(match.group()) if match else None


def to_float(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    match = _FLOAT_PREFIX.match(str(value))
    if not match:
        return None
    number = float(match.group())
    return number if math.isfinite(number) else None


def parse_frame_rate(value: Optional[str]) -> Optional[int]:
    """Whole frames per second from plain numbers or DASH ``N/D`` rationals such as ``30000/1001``."""

    if not value:
        return None
    if "/" in value:
        numerator, _, denominator = value.partition("/")
        num = to_float(numerator)
        den = to_float(denominator)
        if num is None or not den:
            return None
        return round_half_up(num / den)
    rate = to_float(value)
    return round_half_up(rate) if rate is not None else None


def parse_resolution(value: Optional[str]) -> Tuple[Optional[int], Optional[int]]:
    if not value or "x" not in value.lower():
        return None, None
    width, _, height = value.lower().partition("x")
    return to_int(width), to_int(height)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def yes(value: Optional[str]) -> bool:
    return (value or "").upper() == "YES"
