"""
Logging for the geocoder CLI.
JSON lines in production, plain text otherwise; both go to stderr because
stdout carries the geocoding results.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

import json_log_formatter

from free_geocoder.config import Settings, get_settings

# Address parsers log per-token chatter at DEBUG
QUIET_LOGGERS = ("usaddress", "postal")


class GeocoderJSONFormatter(json_log_formatter.JSONFormatter):
    """Adds the emitting logger and level to every JSON record."""

    def json_record(self, message: str, extra: dict, record: logging.LogRecord) -> dict:
        extra = super().json_record(message, extra, record)
        extra["logger"] = record.name
        extra["level"] = record.levelname
        return extra


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Configure logging based on environment."""
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.env == "production":
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(GeocoderJSONFormatter())

        root = logging.getLogger()
        root.setLevel(level)
        root.handlers = [handler]
    else:
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            handlers=[logging.StreamHandler(sys.stderr)],
        )

    # Parser noise stays out even when the geocoder itself runs at DEBUG
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
