"""
Module: dairy_engines.advance_drawdown
Responsibility:
    Plan how a settlement amount is drawn from a customer's advances,
    oldest first, without touching storage.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    AdvanceLedger loads and locks the advance rows, asks this engine for a
    plan, then applies the plan to the rows.

Invariants enforced:
    - FIFO: advances are consumed in (issued_date, record_id) order; a
      later advance is touched only once every earlier one is exhausted.
    - Conservation: the planned draws sum to exactly the requested amount,
      and no advance is drawn beyond its remaining balance.
    - All or nothing: a request larger than the available balance is
      rejected; there is no partial draw.
    - Cancelled advances and advances of other customers are ignored.

Failure modes:
    - InvalidAmountError if amount <= 0.
    - InsufficientAdvanceBalanceError if amount exceeds the sum of
      remaining balances.

Usage:
    plan = plan_drawdown(advances=advances, amount=Decimal("120"), customer_id="C1")
    for draw in plan.draws:
        ...
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal

from dairy_engines.tracer import traced_engine
from dairy_kernel.db.types import ZERO
from dairy_kernel.domain.records import Advance
from dairy_kernel.exceptions import InsufficientAdvanceBalanceError, InvalidAmountError
from dairy_kernel.logging_config import get_logger

logger = get_logger("engines.advance_drawdown")


@dataclass(frozen=True)
class PlannedDraw:
    """One slice of a drawdown against one advance."""

    advance_id: int
    amount: Decimal
    remaining_after: Decimal

    @property
    def exhausts(self) -> bool:
        return self.remaining_after == ZERO


@dataclass(frozen=True)
class DrawdownPlan:
    """The FIFO split of a requested amount across advances."""

    customer_id: str
    requested: Decimal
    available_before: Decimal
    draws: tuple[PlannedDraw, ...]

    @property
    def total(self) -> Decimal:
        return sum((d.amount for d in self.draws), ZERO)

    @property
    def available_after(self) -> Decimal:
        return self.available_before - self.total


def usable_advances(advances: Iterable[Advance], customer_id: str) -> list[Advance]:
    """Non-cancelled advances of ``customer_id`` with money left, oldest first."""
    usable = [
        advance
        for advance in advances
        if advance.customer_id == customer_id
        and not advance.is_cancelled
        and advance.remaining > ZERO
    ]
    usable.sort(key=lambda a: a.fifo_key)
    return usable


def available_balance(advances: Iterable[Advance], customer_id: str) -> Decimal:
    """Sum of remaining balances over the customer's non-cancelled advances."""
    return sum((a.remaining for a in usable_advances(advances, customer_id)), ZERO)


@traced_engine("advance_drawdown", "1.0", fingerprint_fields=("customer_id", "amount"))
def plan_drawdown(
    *,
    advances: Sequence[Advance],
    amount: Decimal,
    customer_id: str,
) -> DrawdownPlan:
    """
    Split ``amount`` across the customer's advances, oldest first.

    Raises:
        InvalidAmountError: amount <= 0.
        InsufficientAdvanceBalanceError: amount > available balance.
    """
    if amount <= ZERO:
        raise InvalidAmountError("amount", amount)

    ordered = usable_advances(advances, customer_id)
    available = sum((a.remaining for a in ordered), ZERO)
    if amount > available:
        logger.warning(
            "advance_drawdown_insufficient",
            extra={
                "customer_id": customer_id,
                "requested": str(amount),
                "available": str(available),
            },
        )
        raise InsufficientAdvanceBalanceError(customer_id, amount, available)

    outstanding = amount
    draws: list[PlannedDraw] = []
    for advance in ordered:
        if outstanding <= ZERO:
            break
        take = min(outstanding, advance.remaining)
        outstanding -= take
        draws.append(
            PlannedDraw(
                advance_id=advance.record_id,
                amount=take,
                remaining_after=advance.remaining - take,
            )
        )

    plan = DrawdownPlan(
        customer_id=customer_id,
        requested=amount,
        available_before=available,
        draws=tuple(draws),
    )
    logger.info(
        "advance_drawdown_planned",
        extra={
            "customer_id": customer_id,
            "requested": str(amount),
            "advances_touched": len(draws),
            "available_after": str(plan.available_after),
        },
    )
    return plan


def apply_drawdown(advances: Sequence[Advance], plan: DrawdownPlan) -> tuple[Advance, ...]:
    """Return ``advances`` with the plan's draws applied, order preserved."""
    by_id = {d.advance_id: d for d in plan.draws}
    return tuple(
        advance.draw(by_id[advance.record_id].amount)
        if advance.record_id in by_id
        else advance
        for advance in advances
    )
