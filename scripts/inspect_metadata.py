#!/usr/bin/env python3
"""
Metadata Inspector
==================

Prints what the ingestion pipeline would read from an image file:
content hash, structured EXIF fields and, with ``--raw``, every tag.

Usage:
    python -m scripts.inspect_metadata photo.jpg [--raw] [--geocode]
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from app.core.config import get_settings
from app.services.geocoder import build_geocoder, format_coordinates
from app.services.hashing import content_hash
from app.services.metadata import ImageMetadata, describe, extract_metadata

# ANSI colors for pretty output
GREEN = "\033[92m"
YELLOW = "\033[93m"
RESET = "\033[0m"


def print_step(message):
    print(f"\n{GREEN}==> {message}{RESET}")


def print_warn(message):
    print(f"{YELLOW}WARNING: {message}{RESET}")


async def resolve_location(metadata: ImageMetadata) -> str:
    geocoder = build_geocoder(get_settings())
    try:
        place = await geocoder.resolve_place(metadata.gps_lat, metadata.gps_lon)
    finally:
        await geocoder.aclose()
    return place or format_coordinates(metadata.gps_lat, metadata.gps_lon)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Inspect image metadata as the ingestion pipeline sees it.")
    parser.add_argument("path", type=Path, help="Image file to inspect")
    parser.add_argument("--raw", action="store_true", help="Print every extracted tag")
    parser.add_argument("--geocode", action="store_true", help="Resolve GPS coordinates to a place name")
    args = parser.parse_args(argv)

    if not args.path.is_file():
        parser.error(f"{args.path} is not a file")

    data = args.path.read_bytes()
    metadata = extract_metadata(data)

    print_step(f"{args.path.name} ({len(data)} bytes)")
    print(f"  sha256: {content_hash(data)}")

    print_step("Fields")
    for name, value in describe(metadata):
        if value is not None:
            print(f"  {name:<18} {value}")
    if not metadata.raw:
        print_warn("No embedded metadata found")

    if metadata.has_gps:
        location = format_coordinates(metadata.gps_lat, metadata.gps_lon)
        if args.geocode:
            location = asyncio.run(resolve_location(metadata))
        print(f"  {'location_name':<18} {location}")

    if args.raw:
        print_step("Raw tags")
        print(json.dumps(metadata.raw, ensure_ascii=False, indent=2, sort_keys=True))

    return 0


if __name__ == "__main__":
    sys.exit(main())
