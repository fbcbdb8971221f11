"""
Configuration loader (``dairy_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into typed
``dairy_config.schema`` dataclasses.  Runtime callers go through
``dairy_config.get_active_config()``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required fields.
* Numbers are read as ``Decimal`` via ``str`` so YAML floats like 4.1
  stay exact.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from dairy_config.schema import (
    DatabaseSettings,
    LedgerConfig,
    LedgerSettings,
    RateCardDef,
    RateRuleDef,
    RateSeriesDef,
)
from dairy_kernel.db.types import to_decimal


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValueError(f"Cannot parse decimal from {value!r}")
    return to_decimal(value)


def _optional_decimal(data: dict[str, Any], key: str) -> Decimal | None:
    value = data.get(key)
    return None if value is None else parse_decimal(value)


def parse_rule(data: dict[str, Any]) -> RateRuleDef:
    """Parse one explicit rule; ``milk_type`` and ``price_per_litre`` are required."""
    return RateRuleDef(
        milk_type=str(data["milk_type"]).upper(),
        price_per_litre=parse_decimal(data["price_per_litre"]),
        fat_min=_optional_decimal(data, "fat_min"),
        fat_max=_optional_decimal(data, "fat_max"),
        snf_min=_optional_decimal(data, "snf_min"),
        snf_max=_optional_decimal(data, "snf_max"),
        label=data.get("label"),
    )


def parse_series(data: dict[str, Any]) -> RateSeriesDef:
    return RateSeriesDef(
        milk_type=str(data["milk_type"]).upper(),
        fat_from=parse_decimal(data["fat_from"]),
        fat_to=parse_decimal(data["fat_to"]),
        step=parse_decimal(data["step"]),
        base_rate=parse_decimal(data["base_rate"]),
        per_fat=parse_decimal(data["per_fat"]),
        snf_min=_optional_decimal(data, "snf_min"),
        snf_max=_optional_decimal(data, "snf_max"),
    )


def parse_rate_card(data: dict[str, Any]) -> RateCardDef:
    return RateCardDef(
        name=data.get("name", "default"),
        rules=tuple(parse_rule(r) for r in data.get("rules", []) or []),
        series=tuple(parse_series(s) for s in data.get("series", []) or []),
    )


def parse_settings(data: dict[str, Any]) -> LedgerSettings:
    defaults = LedgerSettings()
    return LedgerSettings(
        currency=data.get("currency", defaults.currency),
        log_level=str(data.get("log_level", defaults.log_level)).upper(),
    )


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    defaults = DatabaseSettings()
    return DatabaseSettings(
        url=data.get("url", defaults.url),
        echo=bool(data.get("echo", defaults.echo)),
        pool_size=int(data.get("pool_size", defaults.pool_size)),
    )


def parse_config(data: dict[str, Any]) -> LedgerConfig:
    """
    Parse a whole configuration document.

    Raises:
        KeyError: if ``config_id`` is missing.
    """
    return LedgerConfig(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        settings=parse_settings(data.get("settings", {}) or {}),
        database=parse_database(data.get("database", {}) or {}),
        rate_card=parse_rate_card(data.get("rate_card", {}) or {}),
        checksum=compute_checksum(data),
    )


def load_config_file(path: Path) -> LedgerConfig:
    return parse_config(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
