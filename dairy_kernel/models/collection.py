"""
Module: dairy_kernel.models.collection
Responsibility: ORM persistence for priced milk collection entries.
Architecture position: Kernel > Models.  May import from db/ and
    domain/records.py only.

Invariants enforced:
    - Immutable from creation (db/immutability.py blocks UPDATE and DELETE).
    - The resolved price is stored with the entry; rate card changes never
      reprice history.
    - At most one compensating entry per original (unique
      ``reverses_entry_id``).

Audit relevance:
    ``rate_rule_id`` and ``rate_source`` record how each price was reached;
    ``needs_review`` marks entries stored at zero because no rule matched.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import Boolean, Date, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from dairy_kernel.db.base import RecordBase
from dairy_kernel.db.types import round_money
from dairy_kernel.domain.records import (
    CollectionEntry,
    MilkType,
    RateSource,
    Shift,
)


class CollectionEntryModel(RecordBase):
    """Persistent storage for one collection (or its compensation)."""

    __tablename__ = "collection_entries"

    __table_args__ = (
        Index("idx_collection_customer_date", "customer_id", "entry_date"),
    )

    customer_id: Mapped[str] = mapped_column(String(100), nullable=False)

    entry_date: Mapped[date] = mapped_column(Date, nullable=False)

    shift: Mapped[Shift] = mapped_column(String(1), nullable=False)

    milk_type: Mapped[MilkType] = mapped_column(String(10), nullable=False)

    quantity_litres: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)

    fat_pct: Mapped[Decimal | None] = mapped_column(Numeric(18, 6), nullable=True)
    snf_pct: Mapped[Decimal | None] = mapped_column(Numeric(18, 6), nullable=True)

    price_per_litre: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    rate_rule_id: Mapped[int | None] = mapped_column(nullable=True)

    rate_source: Mapped[RateSource] = mapped_column(
        String(10),
        nullable=False,
        default=RateSource.RATE_CARD.value,
    )

    needs_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # If this is a compensating entry, the seq of the entry it reverses
    reverses_entry_id: Mapped[int | None] = mapped_column(
        nullable=True,
        unique=True,
    )

    def __repr__(self) -> str:
        return (
            f"<CollectionEntry {self.seq} {self.customer_id} {self.entry_date} "
            f"{self.quantity_litres}L @ {self.price_per_litre}>"
        )

    def to_domain(self) -> CollectionEntry:
        return CollectionEntry(
            record_id=self.seq,
            customer_id=self.customer_id,
            entry_date=self.entry_date,
            shift=Shift(self.shift),
            milk_type=MilkType(self.milk_type),
            quantity_litres=self.quantity_litres,
            price_per_litre=self.price_per_litre,
            amount=round_money(self.amount),
            fat_pct=self.fat_pct,
            snf_pct=self.snf_pct,
            rate_rule_id=self.rate_rule_id,
            rate_source=RateSource(self.rate_source),
            needs_review=self.needs_review,
            reverses_entry_id=self.reverses_entry_id,
        )

    @classmethod
    def from_domain(cls, entry: CollectionEntry) -> CollectionEntryModel:
        return cls(
            seq=entry.record_id,
            customer_id=entry.customer_id,
            entry_date=entry.entry_date,
            shift=entry.shift.value,
            milk_type=entry.milk_type.value,
            quantity_litres=entry.quantity_litres,
            fat_pct=entry.fat_pct,
            snf_pct=entry.snf_pct,
            price_per_litre=entry.price_per_litre,
            amount=entry.amount,
            rate_rule_id=entry.rate_rule_id,
            rate_source=entry.rate_source.value,
            needs_review=entry.needs_review,
            reverses_entry_id=entry.reverses_entry_id,
        )
