"""
Module: dairy_kernel.models.rate_rule
Responsibility: ORM persistence for banded rate rules.
Architecture position: Kernel > Models.  May import from db/base.py,
    db/types.py and domain/records.py.

Invariants enforced:
    - Rate rules are administrative data, not ledger facts.  A revision
      deactivates the old row and inserts a new one so that the
      ``rate_rule_id`` captured on past collection entries keeps pointing
      at the price that was actually applied.
    - Band and price validity is checked by the domain RateRule when a row
      is converted (``to_domain``) and by RateCardService before insert.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import Boolean, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from dairy_kernel.db.base import RecordBase
from dairy_kernel.domain.records import MilkType, RateRule


class RateRuleModel(RecordBase):
    """
    Persistent storage for one rate band.

    Contract:
        ``seq`` is the rule_id seen by RateResolver and recorded on priced
        collection entries.
    """

    __tablename__ = "rate_rules"

    __table_args__ = (
        Index("idx_rate_rule_type_active", "milk_type", "active"),
    )

    milk_type: Mapped[MilkType] = mapped_column(
        String(10),
        nullable=False,
    )

    fat_min: Mapped[Decimal | None] = mapped_column(Numeric(18, 6), nullable=True)
    fat_max: Mapped[Decimal | None] = mapped_column(Numeric(18, 6), nullable=True)
    snf_min: Mapped[Decimal | None] = mapped_column(Numeric(18, 6), nullable=True)
    snf_max: Mapped[Decimal | None] = mapped_column(Numeric(18, 6), nullable=True)

    price_per_litre: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    # Rule that replaced this one, if revised
    superseded_by: Mapped[int | None] = mapped_column(nullable=True)

    label: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<RateRule {self.seq} {self.milk_type} fat[{self.fat_min},{self.fat_max}) "
            f"snf[{self.snf_min},{self.snf_max}) @ {self.price_per_litre}>"
        )

    def to_domain(self) -> RateRule:
        return RateRule(
            rule_id=self.seq,
            milk_type=MilkType(self.milk_type),
            price_per_litre=self.price_per_litre,
            fat_min=self.fat_min,
            fat_max=self.fat_max,
            snf_min=self.snf_min,
            snf_max=self.snf_max,
            active=self.active,
        )
