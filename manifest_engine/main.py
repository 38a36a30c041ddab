from __future__ import annotations

import argparse
import asyncio
import json
import logging

from dotenv import load_dotenv

from .config import EngineSettings, _env_bool, _env_int, _env_str, load_settings
from .coordinator import ManifestCoordinator
from .models import ManifestDescriptor, ParseMode
from .utils.http_client import HttpClient

load_dotenv()


def _header_arg(value: str) -> tuple[str, str]:
    name, sep, header_value = value.partition(":")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"Expected 'Name: value', got {value!r}")
    return name.strip(), header_value.strip()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Inspect an HLS or DASH manifest and print its renditions as JSON.")
    parser.add_argument("url", nargs="?", default=_env_str("URL"), help="Manifest URL (.m3u8 or .mpd)")
    parser.add_argument(
        "--mode",
        choices=[mode.value for mode in ParseMode],
        default=_env_str("MODE") or ParseMode.FULL.value,
        help="'light' only classifies the manifest; 'full' extracts and probes renditions",
    )
    parser.add_argument(
        "--header",
        dest="headers",
        action="append",
        type=_header_arg,
        default=[],
        help="Extra request header as 'Name: value' (repeatable)",
    )
    parser.add_argument("--timeout-ms", type=int, default=_env_int("TIMEOUT_MS"), help="Per-request timeout for the manifest fetch")
    parser.add_argument("--retries", type=int, default=_env_int("RETRIES"), help="Retries for the manifest fetch")
    parser.add_argument("--verbose", action="store_true", default=_env_bool("VERBOSE"), help="Enable debug logging")
    return parser.parse_args(argv)


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )


def build_settings(args: argparse.Namespace) -> EngineSettings:
    settings = load_settings()
    overrides = {}
    if args.timeout_ms is not None:
        overrides["fetch_timeout_ms"] = args.timeout_ms
    if args.retries is not None:
        overrides["fetch_max_retries"] = args.retries
    return settings.model_copy(update=overrides)


def print_descriptor(descriptor: ManifestDescriptor) -> None:
    print(json.dumps(descriptor.to_document(), indent=2, ensure_ascii=False))


async def run(args: argparse.Namespace) -> ManifestDescriptor:
    settings = build_settings(args)
    async with HttpClient(settings) as http_client:
        coordinator = ManifestCoordinator(http_client, settings)
        return await coordinator.parse_manifest(args.url, headers=dict(args.headers) or None, mode=args.mode)


def main() -> int:
    args = parse_args()
    configure_logging(args.verbose)
    if not args.url:
        logging.error("A manifest URL is required (argument or MANIFEST_ENGINE_URL)")
        return 2

    descriptor = asyncio.run(run(args))
    print_descriptor(descriptor)
    if not descriptor.ok:
        logging.error("Manifest %s: %s", descriptor.status.value, descriptor.error or "no details")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
