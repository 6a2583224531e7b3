"""Seed file loader — bulk-create healthchecks from YAML.

    healthchecks:
      - name: google
        endpoint: https://google.com
        interval: 5
      - endpoint: https://example.com/healthcheck
        enabled: false
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from photon_gun.models import Healthcheck
from photon_gun.registry.service import (
    InvalidArgumentError,
    RegistryService,
    validate_endpoint,
    validate_interval,
)

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 5


@dataclass
class SeedEntry:
    endpoint: str
    interval: int = DEFAULT_INTERVAL
    name: str | None = None
    enabled: bool = True


def load_seed_file(path: Path) -> list[SeedEntry]:
    """Parse a seed file. Raises InvalidArgumentError on malformed content."""
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise InvalidArgumentError(f"could not parse {path}: {e}") from e

    if not isinstance(raw, dict):
        raise InvalidArgumentError(f"{path}: expected a mapping with a 'healthchecks' list")

    entries = [_parse_entry(e) for e in raw.get("healthchecks") or []]

    # Names are optional, but the ones given must be unique
    seen: set[str] = set()
    duplicates = []
    for entry in entries:
        if not entry.name:
            continue
        if entry.name in seen:
            logger.error("duplicate healthcheck name: %s", entry.name)
            duplicates.append(entry.name)
        seen.add(entry.name)
    if duplicates:
        raise InvalidArgumentError(f"duplicate healthcheck names: {', '.join(duplicates)}")

    return entries


def _parse_entry(raw: Any) -> SeedEntry:
    if not isinstance(raw, dict) or "endpoint" not in raw:
        raise InvalidArgumentError(f"seed entry needs an 'endpoint': {raw!r}")
    enabled = raw.get("enabled", True)
    # A quoted "false" is a non-empty string and would read as true
    if not isinstance(enabled, bool):
        raise InvalidArgumentError(f"'enabled' must be true or false, got {enabled!r}")
    return SeedEntry(
        endpoint=raw["endpoint"],
        interval=raw.get("interval", DEFAULT_INTERVAL),
        name=raw.get("name"),
        enabled=enabled,
    )


def apply_seed(service: RegistryService, entries: list[SeedEntry]) -> list[Healthcheck]:
    """Create every entry through the service.

    All entries are validated up front so a bad entry creates nothing.
    """
    for entry in entries:
        validate_endpoint(entry.endpoint)
        validate_interval(entry.interval)

    created = []
    for entry in entries:
        created.append(
            service.create(
                endpoint=entry.endpoint,
                interval=entry.interval,
                name=entry.name,
                enabled=entry.enabled,
            )
        )
    logger.info("Seeded %d healthchecks", len(created))
    return created
