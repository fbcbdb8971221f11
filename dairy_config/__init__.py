"""
dairy_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration
    files or environment variables directly.

Architecture position:
    Configuration sits above ``dairy_kernel`` and below ``dairy_services``
    and the scripts.  The kernel MUST NEVER import from ``dairy_config``
    at runtime; RateCardService accepts plain rule definitions.

Failure modes:
    - ``FileNotFoundError`` -- the chosen configuration file is missing.
    - ``KeyError`` / ``ValueError`` -- schema violations.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``DAIRY_CONFIG_TRACE`` log entry with the config id, version,
    checksum and rate rule count.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dairy_config.loader import load_config_file
from dairy_config.schema import LedgerConfig

_logger = logging.getLogger("dairy_ledger.config")

CONFIG_ENV_VAR = "DAIRY_LEDGER_CONFIG"

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | str | None = None) -> LedgerConfig:
    """The ONLY public configuration entrypoint.

    Resolution order: ``config_path``, then the ``DAIRY_LEDGER_CONFIG``
    environment variable, then the packaged ``sets/default.yaml``.

    Raises:
        FileNotFoundError: If the resolved file does not exist.
        KeyError: If a required key is missing.
        ValueError: If a value cannot be parsed.
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    path = Path(config_path or env_path or _DEFAULT_CONFIG_PATH)
    if not path.is_file():
        raise FileNotFoundError(f"Ledger configuration not found: {path}")

    config = load_config_file(path)

    _logger.info(
        "DAIRY_CONFIG_TRACE",
        extra={
            "trace_type": "DAIRY_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source": str(path),
            "rate_rule_count": len(config.rate_card.all_rules()),
        },
    )
    return config


__all__ = ["CONFIG_ENV_VAR", "LedgerConfig", "get_active_config"]
