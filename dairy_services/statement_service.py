"""
dairy_services.statement_service -- passbook statements for customers.

Responsibility:
    Turns a reporting request into a window (PeriodWindow), compiles the
    passbook for it (PassbookSelector + LedgerCompiler), and produces
    month-by-month statements that are checked to chain.

Architecture position:
    Services -- read-side orchestration over engines + kernel selectors.
    The only component here that knows what "today" is, via its Clock.

Invariants enforced:
    - Monthly statements are compiled from one load of the customer's
      records and verified with verify_chain before they are returned.

Failure modes:
    - InvalidWindowError for a bad selector or a future month.
    - WindowReconciliationError if consecutive months do not chain.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy.orm import Session

from dairy_engines.ledger_compiler import LedgerStatement
from dairy_engines.period_window import LEDGER_EPOCH, PeriodWindow, verify_chain
from dairy_kernel.domain.clock import Clock, SystemClock
from dairy_kernel.logging_config import get_logger
from dairy_kernel.selectors.passbook_selector import PassbookSelector

logger = get_logger("services.statement")


class StatementService:
    """Read-only; never flushes."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        passbook: PassbookSelector | None = None,
    ):
        self._clock = clock or SystemClock()
        self._passbook = passbook or PassbookSelector(session)

    def today(self) -> date:
        return self._clock.today()

    def statement(self, customer_id: str, window: PeriodWindow) -> LedgerStatement:
        return self._passbook.compile(customer_id, window.start, window.end)

    def statement_for(self, customer_id: str, selector: str) -> LedgerStatement:
        """Statement for ``"all"``, ``"current"``, ``"YYYY-MM"`` or a date range."""
        window = PeriodWindow.from_selector(selector, self.today())
        logger.info(
            "statement_requested",
            extra={
                "customer_id": customer_id,
                "selector": selector,
                "window_from": window.start,
                "window_to": window.end,
            },
        )
        return self.statement(customer_id, window)

    def monthly_statements(
        self,
        customer_id: str,
        window: PeriodWindow | None = None,
    ) -> list[LedgerStatement]:
        """
        One statement per calendar month of ``window``.

        Defaults to every month from the customer's first record up to
        today.  An all-time window is narrowed the same way.
        """
        if window is None or window.start == LEDGER_EPOCH:
            end = window.end if window is not None else self.today()
            first = self._passbook.first_activity_date(customer_id)
            if first is None or first > end:
                return []
            window = PeriodWindow.between(first.replace(day=1), end)

        records = self._passbook.load(customer_id, window.end)
        statements = [
            self._passbook.compile_records(records, month.start, month.end)
            for month in window.months()
        ]
        verify_chain(statements)

        logger.info(
            "monthly_statements_compiled",
            extra={
                "customer_id": customer_id,
                "months": len(statements),
                "window_from": window.start,
                "window_to": window.end,
            },
        )
        return statements
