"""
Module: dairy_engines.ledger_compiler
Responsibility:
    Merge milk collection entries, external payments and advance
    utilizations into one time-ordered passbook with a running balance,
    for an arbitrary date window.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    PassbookSelector loads the records; StatementService chooses windows.

Invariants enforced:
    - Sign convention: milk is a debit (the dairy owes the customer);
      payments and advance utilizations are credits.  Compensating
      records carry the negated debit or credit of what they reverse.
    - Opening balance is the fold of every record dated before the
      window, seeded at zero.  Nothing is stored; balances are derived.
    - Ordering is (date, kind priority, record_id) with MILK before
      PAYMENT before ADVANCE_UTILIZATION.  Record ids are unique per kind,
      so the order is total and independent of input order.
    - running_balance[i] = running_balance[i-1] + debit[i] - credit[i].
    - Chaining: compiling [a, m] then [m+1, b] gives the same lines and
      closing balance as compiling [a, b].

Failure modes:
    - None for well-formed records.  An empty window (including
      ``window_to < window_from``) yields zero lines with
      opening == closing.

Usage:
    statement = LedgerCompiler().compile(
        customer_id="C1",
        window_from=date(2024, 3, 1),
        window_to=date(2024, 3, 31),
        entries=entries,
        payments=payments,
        utilizations=utilizations,
    )
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from dairy_engines.tracer import traced_engine
from dairy_kernel.db.types import ZERO
from dairy_kernel.domain.records import (
    AdvanceDraw,
    AdvanceUtilization,
    CollectionEntry,
    ExternalPayment,
    Payment,
)
from dairy_kernel.logging_config import get_logger

logger = get_logger("engines.ledger_compiler")


class LineKind(str, Enum):
    """Kind of passbook line.  Declaration order is the same-day order."""

    MILK = "milk"
    PAYMENT = "payment"
    ADVANCE_UTILIZATION = "advance_utilization"

    @property
    def priority(self) -> int:
        return _KIND_PRIORITY[self]


_KIND_PRIORITY = {
    LineKind.MILK: 0,
    LineKind.PAYMENT: 1,
    LineKind.ADVANCE_UTILIZATION: 2,
}


@dataclass(frozen=True)
class LedgerLine:
    """One passbook line."""

    line_date: date
    kind: LineKind
    record_id: int
    debit: Decimal
    credit: Decimal
    running_balance: Decimal
    description: str
    needs_review: bool = False

    @property
    def net(self) -> Decimal:
        return self.debit - self.credit


@dataclass(frozen=True)
class StatementTotals:
    """Window totals for the passbook footer."""

    milk_value: Decimal
    milk_litres: Decimal
    payments: Decimal
    advance_draws: Decimal
    total_debit: Decimal
    total_credit: Decimal
    closing_balance: Decimal
    review_count: int
    line_count: int


@dataclass(frozen=True)
class LedgerStatement:
    """A compiled passbook for one customer and one window."""

    customer_id: str
    window_from: date
    window_to: date
    opening_balance: Decimal
    lines: tuple[LedgerLine, ...]
    closing_balance: Decimal
    totals: StatementTotals

    @property
    def is_empty(self) -> bool:
        return not self.lines


@dataclass(frozen=True)
class _Posting:
    line_date: date
    kind: LineKind
    record_id: int
    debit: Decimal
    credit: Decimal
    description: str
    needs_review: bool = False
    litres: Decimal = ZERO

    @property
    def sort_key(self) -> tuple[date, int, int]:
        return (self.line_date, self.kind.priority, self.record_id)


def _number(value: Decimal) -> str:
    return f"{value.normalize():f}"


def _entry_posting(entry: CollectionEntry) -> _Posting:
    litres = -entry.quantity_litres if entry.is_reversal else entry.quantity_litres
    if entry.is_reversal:
        description = f"Reversal of entry #{entry.reverses_entry_id}"
    else:
        description = (
            f"{entry.shift.label} {entry.milk_type.value} "
            f"{_number(entry.quantity_litres)} L @ {_number(entry.price_per_litre)}"
        )
        if entry.needs_review:
            description += " (unpriced)"
    return _Posting(
        line_date=entry.entry_date,
        kind=LineKind.MILK,
        record_id=entry.record_id,
        debit=entry.ledger_debit,
        credit=ZERO,
        description=description,
        needs_review=entry.needs_review,
        litres=litres,
    )


def _payment_posting(payment: ExternalPayment) -> _Posting:
    if payment.is_reversal:
        description = f"Reversal of payment #{payment.reverses_payment_id}"
    else:
        description = f"Payment ({payment.mode.value})"
        if payment.reference:
            description += f" ref {payment.reference}"
    return _Posting(
        line_date=payment.payment_date,
        kind=LineKind.PAYMENT,
        record_id=payment.record_id,
        debit=ZERO,
        credit=payment.ledger_credit,
        description=description,
    )


def _utilization_posting(utilization: AdvanceUtilization) -> _Posting:
    return _Posting(
        line_date=utilization.utilization_date,
        kind=LineKind.ADVANCE_UTILIZATION,
        record_id=utilization.record_id,
        debit=ZERO,
        credit=utilization.amount,
        description=f"Adjusted against advance #{utilization.advance_id}",
    )


def collect_postings(
    customer_id: str,
    entries: Iterable[CollectionEntry],
    payments: Iterable[Payment],
    utilizations: Iterable[AdvanceUtilization],
) -> list[_Posting]:
    """
    Turn the customer's records into postings, in passbook order.

    An AdvanceDraw contributes its utilizations; utilizations that also
    appear in ``utilizations`` are counted once (by record_id).
    """
    postings = [
        _entry_posting(entry) for entry in entries if entry.customer_id == customer_id
    ]

    draws: dict[int, AdvanceUtilization] = {}
    for payment in payments:
        if payment.customer_id != customer_id:
            continue
        match payment:
            case ExternalPayment():
                postings.append(_payment_posting(payment))
            case AdvanceDraw():
                for utilization in payment.utilizations:
                    draws[utilization.record_id] = utilization
            case _:
                raise TypeError(f"Unknown payment record: {type(payment).__name__}")

    for utilization in utilizations:
        if utilization.customer_id == customer_id:
            draws[utilization.record_id] = utilization
    postings.extend(_utilization_posting(u) for u in draws.values())

    postings.sort(key=lambda p: p.sort_key)
    return postings


class LedgerCompiler:
    """
    Compile passbook statements.

    Contract:
        Pure; no clock, no storage.  Records of other customers are ignored.
    Non-goals:
        - Does not decide window bounds (PeriodWindow does).
        - Does not render the passbook.
    """

    @traced_engine(
        "ledger_compiler",
        "1.0",
        fingerprint_fields=("customer_id", "window_from", "window_to"),
    )
    def compile(
        self,
        customer_id: str,
        window_from: date,
        window_to: date,
        entries: Iterable[CollectionEntry] = (),
        payments: Iterable[Payment] = (),
        utilizations: Iterable[AdvanceUtilization] = (),
    ) -> LedgerStatement:
        postings = collect_postings(customer_id, entries, payments, utilizations)

        opening = ZERO
        balance = ZERO
        lines: list[LedgerLine] = []
        litres = ZERO
        for posting in postings:
            if posting.line_date < window_from:
                opening += posting.debit - posting.credit
                continue
            if posting.line_date > window_to:
                break
            if not lines:
                balance = opening
            balance += posting.debit - posting.credit
            if posting.kind is LineKind.MILK:
                litres += posting.litres
            lines.append(
                LedgerLine(
                    line_date=posting.line_date,
                    kind=posting.kind,
                    record_id=posting.record_id,
                    debit=posting.debit,
                    credit=posting.credit,
                    running_balance=balance,
                    description=posting.description,
                    needs_review=posting.needs_review,
                )
            )

        closing = lines[-1].running_balance if lines else opening
        totals = _totals(lines, litres, closing)

        logger.info(
            "ledger_compiled",
            extra={
                "customer_id": customer_id,
                "window_from": window_from,
                "window_to": window_to,
                "line_count": len(lines),
                "opening_balance": str(opening),
                "closing_balance": str(closing),
                "review_count": totals.review_count,
            },
        )

        return LedgerStatement(
            customer_id=customer_id,
            window_from=window_from,
            window_to=window_to,
            opening_balance=opening,
            lines=tuple(lines),
            closing_balance=closing,
            totals=totals,
        )


def _totals(lines: list[LedgerLine], litres: Decimal, closing: Decimal) -> StatementTotals:
    def total(kind: LineKind, attr: str) -> Decimal:
        return sum((getattr(line, attr) for line in lines if line.kind is kind), ZERO)

    return StatementTotals(
        milk_value=total(LineKind.MILK, "debit"),
        milk_litres=litres,
        payments=total(LineKind.PAYMENT, "credit"),
        advance_draws=total(LineKind.ADVANCE_UTILIZATION, "credit"),
        total_debit=sum((line.debit for line in lines), ZERO),
        total_credit=sum((line.credit for line in lines), ZERO),
        closing_balance=closing,
        review_count=sum(1 for line in lines if line.needs_review),
        line_count=len(lines),
    )
