#!/usr/bin/env python3
"""
Print a customer's passbook for a window.

Usage:
    python3 scripts/view_passbook.py CUSTOMER_ID [--window all|current|YYYY-MM|FROM:TO]
    python3 scripts/view_passbook.py CUSTOMER_ID --monthly
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def banner(title: str) -> None:
    print()
    print("=" * 78)
    print(f"  {title}")
    print("=" * 78)


def print_statement(statement) -> None:
    banner(
        f"{statement.customer_id}  {statement.window_from.isoformat()} .. "
        f"{statement.window_to.isoformat()}"
    )
    print(f"  {'Opening balance':<52}{statement.opening_balance:>24}")
    print(f"  {'Date':<11}{'Description':<35}{'Debit':>10}{'Credit':>10}{'Balance':>10}")
    for line in statement.lines:
        flag = " *" if line.needs_review else ""
        print(
            f"  {line.line_date.isoformat():<11}{(line.description + flag)[:34]:<35}"
            f"{line.debit or '':>10}{line.credit or '':>10}{line.running_balance:>10}"
        )
    totals = statement.totals
    print(f"  {'Milk':<20}{totals.milk_litres:>10} L {totals.milk_value:>12}")
    print(f"  {'Payments':<33}{totals.payments:>12}")
    print(f"  {'Advance adjustments':<33}{totals.advance_draws:>12}")
    print(f"  {'Closing balance':<52}{statement.closing_balance:>24}")
    if totals.review_count:
        print(f"  * {totals.review_count} unpriced entries need review")


def main() -> int:
    parser = argparse.ArgumentParser(description="Show a customer's passbook.")
    parser.add_argument("customer_id", type=str, help="Customer identifier")
    parser.add_argument(
        "--window", type=str, default="current",
        help="all, current, YYYY-MM or YYYY-MM-DD:YYYY-MM-DD (default: current)",
    )
    parser.add_argument(
        "--monthly", action="store_true",
        help="Print one statement per month from the first record to today",
    )
    parser.add_argument("--config", type=str, default=None, help="Configuration YAML")
    parser.add_argument("--db-url", type=str, default=None, help="Database URL")
    args = parser.parse_args()

    logging.disable(logging.CRITICAL)

    from dairy_config import get_active_config
    from dairy_kernel.db.engine import get_session, init_engine_from_url
    from dairy_kernel.domain.clock import SystemClock
    from dairy_kernel.exceptions import DairyLedgerError
    from dairy_services.statement_service import StatementService

    try:
        config = get_active_config(args.config)
        init_engine_from_url(args.db_url or config.database.url)
    except Exception as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1

    session = get_session()
    try:
        service = StatementService(session, clock=SystemClock())
        if args.monthly:
            statements = service.monthly_statements(args.customer_id)
        else:
            statements = [service.statement_for(args.customer_id, args.window)]
        if not statements:
            print(f"  No records for customer {args.customer_id}")
        for statement in statements:
            print_statement(statement)
        return 0
    except DairyLedgerError as exc:
        print(f"  ERROR [{exc.code}]: {exc}", file=sys.stderr)
        return 1
    finally:
        session.close()


if __name__ == "__main__":
    sys.exit(main())
