"""Element/attribute extraction for DASH MPD documents."""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .attributes import ManifestParseError, round_half_up, to_float, to_int

_ISO_DURATION = re.compile(
    r"^P(?:(?P<years>[\d.]+)Y)?(?:(?P<months>[\d.]+)M)?(?:(?P<days>[\d.]+)D)?"
    r"(?:T(?:(?P<hours>[\d.]+)H)?(?:(?P<minutes>[\d.]+)M)?(?:(?P<seconds>[\d.]+)S)?)?$"
)
_DURATION_UNITS = {
    "years": 31_536_000,
    "months": 2_592_000,
    "days": 86_400,
    "hours": 3_600,
    "minutes": 60,
    "seconds": 1,
}

# Regex fallback grammar, used only when the document is not well-formed XML.
_COMMENT = re.compile(r"<!--[\s\S]*?-->")
_ATTRIBUTE = re.compile(r"([\w:.-]+)\s*=\s*\"([^\"]*)\"")
_MPD_TAG = re.compile(r"<(?:\w+:)?MPD\b([^>]*)>")
_PERIOD_TAG = re.compile(r"<(?:\w+:)?Period\b")
_ADAPTATION_SET = re.compile(r"<(?:\w+:)?AdaptationSet\b([^>]*)>([\s\S]*?)</(?:\w+:)?AdaptationSet>")
_REPRESENTATION = re.compile(r"<(?:\w+:)?Representation\b([^>]*?)(?:/>|>([\s\S]*?)</(?:\w+:)?Representation>)")
_BASE_URL = re.compile(r"<(?:\w+:)?BaseURL\b[^>]*>([^<]*)</(?:\w+:)?BaseURL>")
_SEGMENT_TEMPLATE = re.compile(r"<(?:\w+:)?SegmentTemplate\b([^>]*?)/?>")
_ROLE = re.compile(r"<(?:\w+:)?Role\b([^>]*?)/?>")
_CHANNEL_CONFIG = re.compile(r"<(?:\w+:)?AudioChannelConfiguration\b([^>]*?)/?>")
_CONTENT_PROTECTION = re.compile(r"<(?:\w+:)?ContentProtection\b([^>]*?)/?>")

# ContentProtection schemeIdUri fragments, checked in order.
PROTECTION_SCHEMES = (
    ("urn:mpeg:dash:mp4protection:2011", "cenc"),
    ("edef8ba9-79d6-4ace-a3c8-27dcd51d21ed", "widevine"),
    ("9a04f079-9840-4286-ab92-e65be0885f95", "playready"),
    ("f239e769-efa3-4850-9c16-a903c6932efb", "clearkey"),
    ("94ce86fb-07ff-4f43-adb8-93d2fa968ca2", "fairplay"),
    ("5e629af5-38da-4063-8977-97ffbd9902d4", "marlin"),
    ("1077efecc0b24d02ace33c1e52e2fb4b", "verimatrix"),
    ("6a99532d-869f-40ea-a75b-8ebe2e279df6", "oma-drm"),
)


class DashRepresentation(BaseModel):
    attributes: Dict[str, str]
    base_url: Optional[str] = None
    segment_template: Dict[str, str] = Field(default_factory=dict)
    audio_channels: Optional[str] = None

    def get(self, name: str) -> Optional[str]:
        return self.attributes.get(name) or None


class DashAdaptationSet(BaseModel):
    attributes: Dict[str, str]
    base_urls: List[str] = Field(default_factory=list)
    segment_template: Dict[str, str] = Field(default_factory=dict)
    role: Optional[str] = None
    audio_channels: Optional[str] = None
    representations: List[DashRepresentation] = Field(default_factory=list)

    def get(self, name: str) -> Optional[str]:
        return self.attributes.get(name) or None


class DashManifest(BaseModel):
    """Best-effort view of an MPD: no schema validation is attempted."""

    attributes: Dict[str, str] = Field(default_factory=dict)
    adaptation_sets: List[DashAdaptationSet] = Field(default_factory=list)
    protection_schemes: List[str] = Field(default_factory=list)
    used_fallback: bool = False

    @property
    def is_live(self) -> bool:
        return (self.attributes.get("type") or "").lower() == "dynamic"

    @property
    def duration(self) -> Optional[int]:
        if self.is_live:
            return None
        return parse_iso_duration(self.attributes.get("mediaPresentationDuration"))

    @property
    def is_encrypted(self) -> bool:
        return bool(self.protection_schemes)

    @property
    def encryption_method(self) -> Optional[str]:
        for fragment, name in PROTECTION_SCHEMES:
            if any(fragment in scheme for scheme in self.protection_schemes):
                return name
        return None


def parse_iso_duration(value: Optional[str]) -> Optional[int]:
    """``PT1H22M3.546S`` -> 4924. Years and months are approximated."""

    if not value:
        return None
    match = _ISO_DURATION.match(value.strip())
    if not match or not any(match.groupdict().values()):
        return None
    total = 0.0
    for unit, seconds in _DURATION_UNITS.items():
        amount = to_float(match.group(unit))
        if amount:
            total += amount * seconds
    return round_half_up(total)


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1].rsplit(":", 1)[-1]


def _local_attributes(element: ET.Element) -> Dict[str, str]:
    return {_local(key): value for key, value in element.attrib.items()}


def _children(element: ET.Element, name: str) -> List[ET.Element]:
    return [child for child in element if _local(child.tag) == name]


def _first_text(element: ET.Element, name: str) -> Optional[str]:
    for child in _children(element, name):
        if child.text and child.text.strip():
            return child.text.strip()
    return None


def _first_attributes(element: ET.Element, name: str) -> Dict[str, str]:
    matches = _children(element, name)
    return _local_attributes(matches[0]) if matches else {}


def parse_dash(content: str) -> DashManifest:
    """Parses MPD text, falling back to regex extraction for broken XML."""

    try:
        root = ET.fromstring(content.strip())
    except ET.ParseError as exc:
        logging.debug("MPD is not well-formed XML (%s); using regex extraction", exc)
        return _parse_dash_regex(content)

    if _local(root.tag) != "MPD":
        raise ManifestParseError(f"Unexpected root element {_local(root.tag)}")
    return _parse_dash_tree(root)


def _parse_dash_tree(root: ET.Element) -> DashManifest:
    manifest = DashManifest(attributes=_local_attributes(root))
    mpd_base = _first_text(root, "BaseURL")
    periods = _children(root, "Period") or [root]

    for period in periods:
        period_base = _first_text(period, "BaseURL")
        for adaptation in _children(period, "AdaptationSet"):
            role = _first_attributes(adaptation, "Role").get("value")
            adaptation_set = DashAdaptationSet(
                attributes=_local_attributes(adaptation),
                base_urls=[base for base in (mpd_base, period_base, _first_text(adaptation, "BaseURL")) if base],
                segment_template=_first_attributes(adaptation, "SegmentTemplate"),
                role=role,
                audio_channels=_first_attributes(adaptation, "AudioChannelConfiguration").get("value"),
            )
            for rep in _children(adaptation, "Representation"):
                adaptation_set.representations.append(
                    DashRepresentation(
                        attributes=_local_attributes(rep),
                        base_url=_first_text(rep, "BaseURL"),
                        segment_template=_first_attributes(rep, "SegmentTemplate"),
                        audio_channels=_first_attributes(rep, "AudioChannelConfiguration").get("value"),
                    )
                )
            manifest.adaptation_sets.append(adaptation_set)

    for element in root.iter():
        if _local(element.tag) == "ContentProtection":
            manifest.protection_schemes.append((element.get("schemeIdUri") or "").lower())
    return manifest


def _tag_attributes(text: str) -> Dict[str, str]:
    return {_local(key): value for key, value in _ATTRIBUTE.findall(text or "")}


def _first_match_attributes(pattern: re.Pattern, text: str) -> Dict[str, str]:
    match = pattern.search(text or "")
    return _tag_attributes(match.group(1)) if match else {}


def _parse_dash_regex(content: str) -> DashManifest:
    content = _COMMENT.sub("", content)
    mpd_match = _MPD_TAG.search(content)
    if not mpd_match:
        raise ManifestParseError("No <MPD> element found")

    manifest = DashManifest(attributes=_tag_attributes(mpd_match.group(1)), used_fallback=True)

    header_end = len(content)
    for marker in (_PERIOD_TAG.search(content), _ADAPTATION_SET.search(content)):
        if marker:
            header_end = min(header_end, marker.start())
    mpd_base_match = _BASE_URL.search(content, mpd_match.end(), header_end)
    mpd_base = mpd_base_match.group(1).strip() if mpd_base_match else None

    for adaptation_match in _ADAPTATION_SET.finditer(content):
        inner = adaptation_match.group(2)
        # Adaptation-level children live outside the representation blocks.
        outer = _REPRESENTATION.sub("", inner)
        base_match = _BASE_URL.search(outer)
        adaptation_set = DashAdaptationSet(
            attributes=_tag_attributes(adaptation_match.group(1)),
            base_urls=[base for base in (mpd_base, base_match.group(1).strip() if base_match else None) if base],
            segment_template=_first_match_attributes(_SEGMENT_TEMPLATE, outer),
            role=_first_match_attributes(_ROLE, outer).get("value"),
            audio_channels=_first_match_attributes(_CHANNEL_CONFIG, outer).get("value"),
        )
        for rep_match in _REPRESENTATION.finditer(inner):
            rep_inner = rep_match.group(2) or ""
            rep_base = _BASE_URL.search(rep_inner)
            adaptation_set.representations.append(
                DashRepresentation(
                    attributes=_tag_attributes(rep_match.group(1)),
                    base_url=rep_base.group(1).strip() if rep_base else None,
                    segment_template=_first_match_attributes(_SEGMENT_TEMPLATE, rep_inner),
                    audio_channels=_first_match_attributes(_CHANNEL_CONFIG, rep_inner).get("value"),
                )
            )
        manifest.adaptation_sets.append(adaptation_set)

    for protection in _CONTENT_PROTECTION.finditer(content):
        manifest.protection_schemes.append((_tag_attributes(protection.group(1)).get("schemeIdUri") or "").lower())
    return manifest


def representation_count(manifest: DashManifest) -> int:
    return sum(len(adaptation.representations) for adaptation in manifest.adaptation_sets)


def channel_count(adaptation: DashAdaptationSet, representation: DashRepresentation) -> Optional[int]:
    """Audio channels from attributes first, then ``AudioChannelConfiguration``."""

    for value in (
        representation.get("audioChannels"),
        representation.get("channels"),
        adaptation.get("audioChannels"),
        adaptation.get("channels"),
        representation.audio_channels,
        adaptation.audio_channels,
    ):
        channels = to_int(value)
        if channels is not None:
            return channels
    return None
