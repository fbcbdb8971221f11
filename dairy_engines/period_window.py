"""
Module: dairy_engines.period_window
Responsibility:
    Turn a reporting request (all time, a calendar month, an explicit date
    range) into an inclusive [start, end] window, and check that a series
    of compiled statements chains without gaps.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  "Today" is always a
    parameter; StatementService supplies it from its Clock.

Invariants enforced:
    - A constructed window always has start <= end.
    - Month windows never extend past today.
    - split_at(mid) yields two contiguous windows covering the original.

Failure modes:
    - InvalidWindowError when end precedes start, for a month that has not
      started yet, or for an unrecognised selector string.
    - WindowReconciliationError from verify_chain().
"""

from __future__ import annotations

import calendar
import re
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from typing import TYPE_CHECKING

from dairy_kernel.exceptions import InvalidWindowError, WindowReconciliationError

if TYPE_CHECKING:
    from dairy_engines.ledger_compiler import LedgerStatement

# Start of all-time windows.  Every record date is on or after it.
LEDGER_EPOCH = date.min

_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")
_RANGE_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})\s*:\s*(\d{4}-\d{2}-\d{2})$")

_ONE_DAY = timedelta(days=1)


def _month_end(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


@dataclass(frozen=True)
class PeriodWindow:
    """An inclusive date range with a display label."""

    start: date
    end: date
    label: str = ""

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise InvalidWindowError(self.start, self.end)

    # -- constructors ------------------------------------------------------

    @classmethod
    def all_time(cls, today: date) -> PeriodWindow:
        return cls(LEDGER_EPOCH, today, "All time")

    @classmethod
    def for_month(cls, year: int, month: int, today: date) -> PeriodWindow:
        """Calendar month, clipped to today."""
        if not 1 <= month <= 12:
            raise InvalidWindowError(f"{year}-{month:02d}", f"{year}-{month:02d}", "no such month")
        start = date(year, month, 1)
        end = min(_month_end(year, month), today)
        if end < start:
            raise InvalidWindowError(start, end, "month has not started")
        return cls(start, end, start.strftime("%B %Y"))

    @classmethod
    def between(cls, start: date, end: date, label: str | None = None) -> PeriodWindow:
        return cls(start, end, label or f"{start.isoformat()} to {end.isoformat()}")

    @classmethod
    def from_selector(cls, text: str, today: date) -> PeriodWindow:
        """
        Parse ``"all"``, ``"current"``, ``"YYYY-MM"`` or
        ``"YYYY-MM-DD:YYYY-MM-DD"``.
        """
        selector = text.strip().lower()
        if selector == "all":
            return cls.all_time(today)
        if selector == "current":
            return cls.for_month(today.year, today.month, today)

        month = _MONTH_RE.match(selector)
        if month:
            return cls.for_month(int(month.group(1)), int(month.group(2)), today)

        bounds = _RANGE_RE.match(selector)
        if bounds:
            try:
                start = date.fromisoformat(bounds.group(1))
                end = date.fromisoformat(bounds.group(2))
            except ValueError as exc:
                raise InvalidWindowError(bounds.group(1), bounds.group(2), str(exc)) from exc
            return cls.between(start, end)

        raise InvalidWindowError(text, text, "unrecognised window selector")

    # -- queries -----------------------------------------------------------

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def split_at(self, mid: date) -> tuple[PeriodWindow, PeriodWindow]:
        """``[start, mid]`` and ``[mid + 1, end]``; requires start <= mid < end."""
        if not (self.start <= mid < self.end):
            raise InvalidWindowError(self.start, self.end, f"split point {mid} outside window")
        return (
            PeriodWindow.between(self.start, mid),
            PeriodWindow.between(mid + _ONE_DAY, self.end),
        )

    def months(self) -> Iterator[PeriodWindow]:
        """Month-aligned windows covering this window, clipped at both ends."""
        cursor = self.start
        while cursor <= self.end:
            end = min(_month_end(cursor.year, cursor.month), self.end)
            yield PeriodWindow(cursor, end, cursor.strftime("%B %Y"))
            if end == date.max:
                break
            cursor = end + _ONE_DAY


def verify_chain(statements: Sequence[LedgerStatement]) -> None:
    """
    Check that consecutive statements reconcile.

    Each statement must start the day after the previous one ends, belong
    to the same customer, and open at the previous closing balance.

    Raises:
        WindowReconciliationError: at the first statement that breaks the chain.
    """
    for position in range(1, len(statements)):
        previous, current = statements[position - 1], statements[position]
        if current.customer_id != previous.customer_id:
            raise WindowReconciliationError(
                position, previous.customer_id, current.customer_id, "customer changed"
            )
        if previous.window_to == date.max:
            raise WindowReconciliationError(
                position, "no later date", current.window_from, "windows are not contiguous"
            )
        expected_start = previous.window_to + _ONE_DAY
        if current.window_from != expected_start:
            raise WindowReconciliationError(
                position, expected_start, current.window_from, "windows are not contiguous"
            )
        if current.opening_balance != previous.closing_balance:
            raise WindowReconciliationError(
                position,
                previous.closing_balance,
                current.opening_balance,
                "opening balance differs from previous closing",
            )
