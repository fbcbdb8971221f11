"""
Module: dairy_kernel.models.payment
Responsibility: ORM persistence for externally funded payments (cash, UPI,
    bank transfer) and their compensations.
Architecture position: Kernel > Models.  May import from db/ and
    domain/records.py only.

Invariants enforced:
    - Immutable from creation (db/immutability.py).
    - Only external money is stored here.  Advance-funded settlements are
      recorded solely as AdvanceUtilizationModel rows so the same money is
      never credited twice.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from dairy_kernel.db.base import RecordBase
from dairy_kernel.db.types import round_money
from dairy_kernel.domain.records import ExternalPayment, PaymentMode


class PaymentModel(RecordBase):
    """Persistent storage for one external payment."""

    __tablename__ = "payments"

    __table_args__ = (
        Index("idx_payment_customer_date", "customer_id", "payment_date"),
    )

    customer_id: Mapped[str] = mapped_column(String(100), nullable=False)

    payment_date: Mapped[date] = mapped_column(Date, nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    mode: Mapped[PaymentMode] = mapped_column(
        String(10),
        nullable=False,
        default=PaymentMode.CASH.value,
    )

    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)

    note: Mapped[str | None] = mapped_column(String(500), nullable=True)

    reverses_payment_id: Mapped[int | None] = mapped_column(
        nullable=True,
        unique=True,
    )

    def __repr__(self) -> str:
        return f"<Payment {self.seq} {self.customer_id} {self.payment_date} {self.amount}>"

    def to_domain(self) -> ExternalPayment:
        return ExternalPayment(
            record_id=self.seq,
            customer_id=self.customer_id,
            payment_date=self.payment_date,
            amount=round_money(self.amount),
            mode=PaymentMode(self.mode),
            reference=self.reference,
            note=self.note,
            reverses_payment_id=self.reverses_payment_id,
        )
