"""Grammar, classification, extraction, and probing for HLS and DASH manifests."""

from .attributes import ManifestParseError, parse_attribute_list
from .classifier import Classification, classify_dash, classify_hls_light, classify_hls_strict, detect_format
from .dash_parser import DashManifest, parse_dash
from .extractor import Renditions, extract_dash, extract_hls, infer_containers
from .hls_parser import HlsPlaylist, VariantSummary, parse_hls, summarize_variant
from .prober import MetadataProber

__all__ = [
    "Classification",
    "DashManifest",
    "HlsPlaylist",
    "ManifestParseError",
    "MetadataProber",
    "Renditions",
    "VariantSummary",
    "classify_dash",
    "classify_hls_light",
    "classify_hls_strict",
    "detect_format",
    "extract_dash",
    "extract_hls",
    "infer_containers",
    "parse_attribute_list",
    "parse_dash",
    "parse_hls",
    "summarize_variant",
]
