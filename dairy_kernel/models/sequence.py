"""
Module: dairy_kernel.models.sequence
Responsibility: ORM persistence for named monotonic counters.  One row per
    stored record type; the row is locked while a value is allocated.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from dairy_kernel.db.base import Base

RATE_RULE_SEQUENCE = "rate_rule"
COLLECTION_ENTRY_SEQUENCE = "collection_entry"
PAYMENT_SEQUENCE = "payment"
ADVANCE_SEQUENCE = "advance"
ADVANCE_UTILIZATION_SEQUENCE = "advance_utilization"


def sequence_names() -> tuple[str, ...]:
    """Every counter seeded by create_tables()."""
    return (
        RATE_RULE_SEQUENCE,
        COLLECTION_ENTRY_SEQUENCE,
        PAYMENT_SEQUENCE,
        ADVANCE_SEQUENCE,
        ADVANCE_UTILIZATION_SEQUENCE,
    )


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row represents a named sequence with its current value.
    Row-level locking ensures monotonicity under concurrency.
    """

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    def __repr__(self) -> str:
        return f"<SequenceCounter {self.name}={self.current_value}>"
