#!/usr/bin/env python3
"""
Seed the rate card from the active ledger configuration.

Creates the tables if needed, expands the configured rate card (explicit
rules and fat-band series) and stores every rule that is not already
active.  With --replace, the active rules of the configured milk types are
deactivated first.

Usage:
    python3 scripts/seed_rate_cards.py [--config path.yaml] [--db-url URL] [--replace]
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed rate rules from configuration.")
    parser.add_argument(
        "--config", type=str, default=None,
        help="Configuration YAML (default: DAIRY_LEDGER_CONFIG or packaged default)",
    )
    parser.add_argument(
        "--db-url", type=str, default=None,
        help="Database URL (default: the configured database.url)",
    )
    parser.add_argument(
        "--replace", action="store_true",
        help="Deactivate existing active rules of the configured milk types first",
    )
    args = parser.parse_args()

    # Suppress library logging
    logging.disable(logging.CRITICAL)

    from dairy_config import get_active_config
    from dairy_kernel.db.engine import create_tables, init_engine_from_url, session_scope
    from dairy_kernel.db.immutability import register_immutability_listeners
    from dairy_kernel.services.rate_card_service import RateCardService

    try:
        config = get_active_config(args.config)
    except (FileNotFoundError, KeyError, ValueError) as exc:
        print(f"  ERROR: Cannot load configuration: {exc}", file=sys.stderr)
        return 1

    db_url = args.db_url or config.database.url
    try:
        init_engine_from_url(db_url, echo=config.database.echo)
        create_tables()
    except Exception as exc:
        print(f"  ERROR: Cannot connect to database: {exc}", file=sys.stderr)
        return 1
    register_immutability_listeners()

    definitions = config.rate_card.all_rules()
    with session_scope() as session:
        created = RateCardService(session).load_rate_card(definitions, replace=args.replace)

    print(f"  Rate card '{config.rate_card.name}' ({config.config_id} v{config.version})")
    print(f"  {len(definitions)} rules configured, {len(created)} created")
    return 0


if __name__ == "__main__":
    sys.exit(main())
