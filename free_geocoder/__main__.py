"""CLI entrypoint for free_geocoder."""

from __future__ import annotations

import argparse
import json

from free_geocoder.logging_config import setup_logging


def main() -> None:
    setup_logging()

    parser = argparse.ArgumentParser(prog="free-geocoder")
    sub = parser.add_subparsers(dest="command", required=True)

    geocode_parser = sub.add_parser("geocode")
    geocode_parser.add_argument("location")
    geocode_parser.add_argument("--list", action="store_true", help="print every match, best first")

    scan_parser = sub.add_parser("scan")
    scan_parser.add_argument("text")

    args = parser.parse_args()

    if args.command == "geocode":
        _geocode(args.location, args.list)
    elif args.command == "scan":
        _scan(args.text)


def _geocode(location: str, list_all: bool) -> None:
    from free_geocoder.geocode import Geocoder

    geocoder = Geocoder.from_settings()
    out = geocoder.geocode(location, list=list_all)
    if out is None:
        print("null")
    elif list_all:
        print(json.dumps([r.model_dump() for r in out], ensure_ascii=True, indent=2))
    else:
        print(json.dumps(out.model_dump(), ensure_ascii=True, indent=2))


def _scan(text: str) -> None:
    from free_geocoder.geocode import Geocoder

    geocoder = Geocoder.from_settings()
    out = geocoder.scan(text)
    print(json.dumps([r.model_dump() for r in out], ensure_ascii=True, indent=2))


if __name__ == "__main__":
    main()
