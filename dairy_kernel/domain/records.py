"""
Ledger records -- immutable tagged records for rate rules and ledger facts.

Responsibility:
    Defines the frozen dataclasses that flow between the storage
    collaborator, the pure engines and the services: RateRule,
    CollectionEntry, the Payment union (ExternalPayment | AdvanceDraw),
    Advance and AdvanceUtilization.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  No ORM imports.

Invariants enforced:
    - Constructors reject invalid states: empty rate bands, negative prices,
      negative litres, non-positive payment/advance amounts, utilization
      beyond principal, and a status that disagrees with utilization.
    - CollectionEntry.amount == round_money(quantity_litres * price_per_litre).
    - Advance.utilized_amount only grows (``draw``) and CANCELLED is terminal.

Failure modes:
    - InvalidRateRuleError, InvalidQuantityError, InvalidMeasurementError,
      InvalidAmountError on invalid construction input.
    - AdvanceCancelledError / InsufficientAdvanceBalanceError from
      ``Advance.draw``.
    - ValueError on internally inconsistent derived fields (amount,
      status); these indicate a programming error, not bad user input.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Union
from uuid import UUID

from dairy_kernel.db.types import ZERO, round_money
from dairy_kernel.exceptions import (
    AdvanceCancelledError,
    InsufficientAdvanceBalanceError,
    InvalidAmountError,
    InvalidMeasurementError,
    InvalidQuantityError,
    InvalidRateRuleError,
)

UNBOUNDED = Decimal("Infinity")
_HUNDRED = Decimal("100")


class MilkType(str, Enum):
    """Milk type a rate rule and a collection entry are keyed by."""

    COW = "COW"
    BUFFALO = "BUFFALO"
    MIXED = "MIXED"


class Shift(str, Enum):
    """Collection slot. Descriptive only."""

    MORNING = "M"
    EVENING = "E"

    @property
    def label(self) -> str:
        return "Morning" if self is Shift.MORNING else "Evening"


class RateSource(str, Enum):
    """How a collection entry got its price."""

    RATE_CARD = "rate_card"
    MANUAL = "manual"
    UNPRICED = "unpriced"  # No rule matched; priced at zero, flagged for review


class FundingSource(str, Enum):
    """Where the money for a settlement came from."""

    EXTERNAL = "external"
    ADVANCE = "advance"


class PaymentMode(str, Enum):
    CASH = "CASH"
    UPI = "UPI"
    BANK = "BANK"


class AdvanceStatus(str, Enum):
    """Advance lifecycle.

    Contract: ACTIVE -> EXHAUSTED when fully utilized.  ACTIVE or EXHAUSTED
    -> CANCELLED at any time.  CANCELLED is terminal.
    """

    ACTIVE = "active"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"


def _check_percentage(name: str, value: Decimal | None) -> None:
    if value is not None and not (ZERO <= value <= _HUNDRED):
        raise InvalidMeasurementError(name, value)


def _in_band(value: Decimal | None, lower: Decimal | None, upper: Decimal | None) -> bool:
    # A missing measurement only satisfies a dimension with no bounds at all.
    if value is None:
        return lower is None and upper is None
    if lower is not None and value < lower:
        return False
    if upper is not None and value >= upper:
        return False
    return True


def _band_width(lower: Decimal | None, upper: Decimal | None) -> Decimal:
    if lower is None or upper is None:
        return UNBOUNDED
    return upper - lower


# ---------------------------------------------------------------------------
# Rate rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RateRule:
    """
    A banded price rule for one milk type.

    Contract:
        Fat and SNF bands are half-open: ``min <= value < max``; a missing
        bound is unbounded on that side.
    Guarantees:
        - ``min < max`` on every doubly-bounded dimension.
        - ``price_per_litre > 0``.
    Non-goals:
        - Overlap with other rules is allowed here; RateResolver breaks
          ties deterministically.
    """

    rule_id: int
    milk_type: MilkType
    price_per_litre: Decimal
    fat_min: Decimal | None = None
    fat_max: Decimal | None = None
    snf_min: Decimal | None = None
    snf_max: Decimal | None = None
    active: bool = True

    def __post_init__(self) -> None:
        if self.price_per_litre <= ZERO:
            raise InvalidRateRuleError(
                f"price_per_litre must be positive, got {self.price_per_litre}",
                self.rule_id,
            )
        for name, lower, upper in (
            ("fat", self.fat_min, self.fat_max),
            ("snf", self.snf_min, self.snf_max),
        ):
            for bound in (lower, upper):
                if bound is not None and bound < ZERO:
                    raise InvalidRateRuleError(
                        f"{name} bound cannot be negative, got {bound}", self.rule_id
                    )
            if lower is not None and upper is not None and lower >= upper:
                raise InvalidRateRuleError(
                    f"empty {name} band [{lower}, {upper})", self.rule_id
                )

    def covers(self, fat_pct: Decimal | None, snf_pct: Decimal | None) -> bool:
        """True if both measurements fall inside this rule's bands."""
        return _in_band(fat_pct, self.fat_min, self.fat_max) and _in_band(
            snf_pct, self.snf_min, self.snf_max
        )

    @property
    def band_width(self) -> Decimal:
        """Fat width + SNF width; Infinity if any side is unbounded."""
        return _band_width(self.fat_min, self.fat_max) + _band_width(
            self.snf_min, self.snf_max
        )


# ---------------------------------------------------------------------------
# Collection entries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CollectionEntry:
    """
    A priced milk collection.  Immutable once stored.

    Guarantees:
        - ``quantity_litres >= 0``, ``price_per_litre >= 0``.
        - ``amount == round_money(quantity_litres * price_per_litre)``.
        - A compensating entry (``reverses_entry_id`` set) repeats the
          economics of the entry it reverses; its ledger debit is negated.
    """

    record_id: int
    customer_id: str
    entry_date: date
    shift: Shift
    milk_type: MilkType
    quantity_litres: Decimal
    price_per_litre: Decimal
    amount: Decimal
    fat_pct: Decimal | None = None
    snf_pct: Decimal | None = None
    rate_rule_id: int | None = None
    rate_source: RateSource = RateSource.RATE_CARD
    needs_review: bool = False
    reverses_entry_id: int | None = None

    def __post_init__(self) -> None:
        if self.quantity_litres < ZERO:
            raise InvalidQuantityError(self.quantity_litres)
        if self.price_per_litre < ZERO:
            raise InvalidAmountError("price_per_litre", self.price_per_litre)
        _check_percentage("fat_pct", self.fat_pct)
        _check_percentage("snf_pct", self.snf_pct)
        expected = price_amount(self.quantity_litres, self.price_per_litre)
        if self.amount != expected:
            raise ValueError(
                f"Entry {self.record_id} amount {self.amount} != "
                f"{self.quantity_litres} x {self.price_per_litre} = {expected}"
            )

    @property
    def is_reversal(self) -> bool:
        return self.reverses_entry_id is not None

    @property
    def ledger_debit(self) -> Decimal:
        """What this entry adds to the amount the dairy owes."""
        return -self.amount if self.is_reversal else self.amount


def price_amount(quantity_litres: Decimal, price_per_litre: Decimal) -> Decimal:
    """Amount owed for a collection, rounded to settlement precision."""
    return round_money(quantity_litres * price_per_litre)


# ---------------------------------------------------------------------------
# Advances
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Advance:
    """
    A pre-paid sum consumed by later settlements.

    Guarantees:
        - ``principal > 0`` and ``0 <= utilized_amount <= principal``.
        - Unless CANCELLED: EXHAUSTED iff ``utilized_amount == principal``.
        - ``remaining`` is zero once cancelled.
    """

    record_id: int
    customer_id: str
    issued_date: date
    principal: Decimal
    utilized_amount: Decimal = ZERO
    status: AdvanceStatus = AdvanceStatus.ACTIVE
    note: str | None = None

    def __post_init__(self) -> None:
        if self.principal <= ZERO:
            raise InvalidAmountError("principal", self.principal)
        if not (ZERO <= self.utilized_amount <= self.principal):
            raise ValueError(
                f"Advance {self.record_id} utilized {self.utilized_amount} "
                f"outside [0, {self.principal}]"
            )
        if self.status is not AdvanceStatus.CANCELLED:
            exhausted = self.utilized_amount == self.principal
            if exhausted != (self.status is AdvanceStatus.EXHAUSTED):
                raise ValueError(
                    f"Advance {self.record_id} status {self.status.value} "
                    f"disagrees with utilization {self.utilized_amount}/{self.principal}"
                )

    @property
    def is_cancelled(self) -> bool:
        return self.status is AdvanceStatus.CANCELLED

    @property
    def remaining(self) -> Decimal:
        if self.is_cancelled:
            return ZERO
        return self.principal - self.utilized_amount

    @property
    def fifo_key(self) -> tuple[date, int]:
        return (self.issued_date, self.record_id)

    def draw(self, amount: Decimal) -> Advance:
        """Return this advance with ``amount`` more utilized."""
        if self.is_cancelled:
            raise AdvanceCancelledError(self.record_id)
        if amount <= ZERO:
            raise InvalidAmountError("amount", amount)
        if amount > self.remaining:
            raise InsufficientAdvanceBalanceError(
                self.customer_id, amount, self.remaining
            )
        utilized = self.utilized_amount + amount
        status = (
            AdvanceStatus.EXHAUSTED if utilized == self.principal else AdvanceStatus.ACTIVE
        )
        return replace(self, utilized_amount=utilized, status=status)

    def cancel(self) -> Advance:
        """Return this advance cancelled; utilization is kept as-is."""
        return replace(self, status=AdvanceStatus.CANCELLED)


@dataclass(frozen=True)
class AdvanceUtilization:
    """One draw against one advance.  A ledger credit."""

    record_id: int
    advance_id: int
    customer_id: str
    utilization_date: date
    amount: Decimal
    settlement_id: UUID | None = None

    def __post_init__(self) -> None:
        if self.amount <= ZERO:
            raise InvalidAmountError("amount", self.amount)


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExternalPayment:
    """
    Cash (or UPI/bank transfer) settled to the customer.

    A compensating payment (``reverses_payment_id`` set) carries the
    reversed amount; its ledger credit is negated.
    """

    record_id: int
    customer_id: str
    payment_date: date
    amount: Decimal
    mode: PaymentMode = PaymentMode.CASH
    reference: str | None = None
    note: str | None = None
    reverses_payment_id: int | None = None

    def __post_init__(self) -> None:
        if self.amount <= ZERO:
            raise InvalidAmountError("amount", self.amount)

    @property
    def funding_source(self) -> FundingSource:
        return FundingSource.EXTERNAL

    @property
    def is_reversal(self) -> bool:
        return self.reverses_payment_id is not None

    @property
    def ledger_credit(self) -> Decimal:
        return -self.amount if self.is_reversal else self.amount


@dataclass(frozen=True)
class AdvanceDraw:
    """
    A settlement funded by drawing down advances.

    No external money moves; the utilizations are the ledger facts.
    """

    settlement_id: UUID
    customer_id: str
    payment_date: date
    amount: Decimal
    utilizations: tuple[AdvanceUtilization, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.amount <= ZERO:
            raise InvalidAmountError("amount", self.amount)
        drawn = sum((u.amount for u in self.utilizations), ZERO)
        if drawn != self.amount:
            raise ValueError(
                f"Advance draw {self.settlement_id} utilizations total {drawn} "
                f"!= settlement amount {self.amount}"
            )

    @property
    def funding_source(self) -> FundingSource:
        return FundingSource.ADVANCE

    @property
    def advance_ids(self) -> tuple[int, ...]:
        return tuple(u.advance_id for u in self.utilizations)


Payment = Union[ExternalPayment, AdvanceDraw]
