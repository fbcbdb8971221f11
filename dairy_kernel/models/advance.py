"""
Module: dairy_kernel.models.advance
Responsibility: ORM persistence for advances and their utilizations.
Architecture position: Kernel > Models.  May import from db/ and
    domain/records.py only.

Invariants enforced:
    - ``utilized_amount`` only grows and never exceeds ``principal``.
    - ``cancelled`` is terminal.
    - Utilization rows are immutable from creation; they are the ledger
      credits for advance-funded settlements.
    Enforced by AdvanceLedger at write time and by db/immutability.py on
    flush.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from dairy_kernel.db.base import RecordBase, UUIDString
from dairy_kernel.db.types import ZERO, round_money
from dairy_kernel.domain.records import Advance, AdvanceStatus, AdvanceUtilization


class AdvanceModel(RecordBase):
    """
    Persistent storage for one advance.

    Guarantees:
        - (customer_id, issued_date, seq) ordering is the FIFO order used
          for drawdown.
    """

    __tablename__ = "advances"

    __table_args__ = (
        Index("idx_advance_customer_issued", "customer_id", "issued_date", "seq"),
    )

    customer_id: Mapped[str] = mapped_column(String(100), nullable=False)

    issued_date: Mapped[date] = mapped_column(Date, nullable=False)

    principal: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    utilized_amount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=ZERO,
    )

    status: Mapped[AdvanceStatus] = mapped_column(
        String(10),
        nullable=False,
        default=AdvanceStatus.ACTIVE.value,
    )

    note: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<Advance {self.seq} {self.customer_id} "
            f"{self.utilized_amount}/{self.principal} {self.status}>"
        )

    def to_domain(self) -> Advance:
        return Advance(
            record_id=self.seq,
            customer_id=self.customer_id,
            issued_date=self.issued_date,
            principal=round_money(self.principal),
            utilized_amount=round_money(self.utilized_amount),
            status=AdvanceStatus(self.status),
            note=self.note,
        )


class AdvanceUtilizationModel(RecordBase):
    """Persistent storage for one draw against one advance."""

    __tablename__ = "advance_utilizations"

    __table_args__ = (
        Index("idx_utilization_customer_date", "customer_id", "utilization_date"),
        Index("idx_utilization_advance", "advance_id"),
        Index("idx_utilization_settlement", "settlement_id"),
    )

    advance_id: Mapped[int] = mapped_column(
        ForeignKey("advances.seq"),
        nullable=False,
    )

    customer_id: Mapped[str] = mapped_column(String(100), nullable=False)

    utilization_date: Mapped[date] = mapped_column(Date, nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    # Groups the utilizations written by one advance-funded settlement
    settlement_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<AdvanceUtilization {self.seq} advance={self.advance_id} "
            f"{self.utilization_date} {self.amount}>"
        )

    def to_domain(self) -> AdvanceUtilization:
        return AdvanceUtilization(
            record_id=self.seq,
            advance_id=self.advance_id,
            customer_id=self.customer_id,
            utilization_date=self.utilization_date,
            amount=round_money(self.amount),
            settlement_id=self.settlement_id,
        )
