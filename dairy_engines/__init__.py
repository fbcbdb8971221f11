"""
Module: dairy_engines
Responsibility:
    Canonical import surface for the pure settlement engines.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import dairy_kernel.domain, dairy_kernel.db.types,
    dairy_kernel.exceptions and dairy_kernel.logging_config only.
    MUST NOT import dairy_services or touch a Session.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      Dates are passed in by the caller.
    - Decimal-only arithmetic.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from dairy_engines import RateResolver, LedgerCompiler, PeriodWindow
    from dairy_engines import plan_drawdown
"""

from dairy_engines.advance_drawdown import (
    DrawdownPlan,
    PlannedDraw,
    apply_drawdown,
    available_balance,
    plan_drawdown,
    usable_advances,
)
from dairy_engines.ledger_compiler import (
    LedgerCompiler,
    LedgerLine,
    LedgerStatement,
    LineKind,
    StatementTotals,
)
from dairy_engines.period_window import LEDGER_EPOCH, PeriodWindow, verify_chain
from dairy_engines.rate_resolver import RateResolution, RateResolver, matching_rules
from dairy_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "DrawdownPlan",
    "LEDGER_EPOCH",
    "LedgerCompiler",
    "LedgerLine",
    "LedgerStatement",
    "LineKind",
    "PeriodWindow",
    "PlannedDraw",
    "RateResolution",
    "RateResolver",
    "StatementTotals",
    "apply_drawdown",
    "available_balance",
    "compute_input_fingerprint",
    "matching_rules",
    "plan_drawdown",
    "traced_engine",
    "usable_advances",
    "verify_chain",
]
