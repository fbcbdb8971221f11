"""
Module: dairy_kernel.selectors.passbook_selector
Responsibility: Load a customer's collection entries, external payments and
    advance utilizations and compile them into a passbook statement.
Architecture position: Kernel > Selectors.  Read-only.  Delegates all
    arithmetic to the pure LedgerCompiler.

Invariants enforced:
    - One compile reads all three record types through one session, so
      they come from one snapshot under REPEATABLE READ or SQLite.  Under
      READ COMMITTED a record committed between the three queries may be
      missed; that staleness is accepted.
    - Only records dated on or before the window end are loaded; everything
      before the window start is needed for the opening balance.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from sqlalchemy import func, select

from dairy_engines.ledger_compiler import LedgerCompiler, LedgerStatement
from dairy_kernel.domain.records import AdvanceUtilization, CollectionEntry, ExternalPayment
from dairy_kernel.models.advance import AdvanceUtilizationModel
from dairy_kernel.models.collection import CollectionEntryModel
from dairy_kernel.models.payment import PaymentModel
from dairy_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class CustomerRecords:
    """Every ledger fact of one customer up to a date."""

    customer_id: str
    up_to: date
    entries: tuple[CollectionEntry, ...]
    payments: tuple[ExternalPayment, ...]
    utilizations: tuple[AdvanceUtilization, ...]


class PassbookSelector(BaseSelector[CollectionEntryModel]):
    """Read side of the ledger."""

    def __init__(self, session, compiler: LedgerCompiler | None = None):
        super().__init__(session)
        self._compiler = compiler or LedgerCompiler()

    def load(self, customer_id: str, up_to: date) -> CustomerRecords:
        entries = self.session.execute(
            select(CollectionEntryModel)
            .where(
                CollectionEntryModel.customer_id == customer_id,
                CollectionEntryModel.entry_date <= up_to,
            )
            .order_by(CollectionEntryModel.seq)
        ).scalars()
        payments = self.session.execute(
            select(PaymentModel)
            .where(
                PaymentModel.customer_id == customer_id,
                PaymentModel.payment_date <= up_to,
            )
            .order_by(PaymentModel.seq)
        ).scalars()
        utilizations = self.session.execute(
            select(AdvanceUtilizationModel)
            .where(
                AdvanceUtilizationModel.customer_id == customer_id,
                AdvanceUtilizationModel.utilization_date <= up_to,
            )
            .order_by(AdvanceUtilizationModel.seq)
        ).scalars()
        return CustomerRecords(
            customer_id=customer_id,
            up_to=up_to,
            entries=tuple(row.to_domain() for row in entries),
            payments=tuple(row.to_domain() for row in payments),
            utilizations=tuple(row.to_domain() for row in utilizations),
        )

    def compile(self, customer_id: str, window_from: date, window_to: date) -> LedgerStatement:
        """Passbook for ``[window_from, window_to]`` with its opening balance."""
        records = self.load(customer_id, window_to)
        return self.compile_records(records, window_from, window_to)

    def compile_records(
        self, records: CustomerRecords, window_from: date, window_to: date
    ) -> LedgerStatement:
        return self._compiler.compile(
            customer_id=records.customer_id,
            window_from=window_from,
            window_to=window_to,
            entries=records.entries,
            payments=records.payments,
            utilizations=records.utilizations,
        )

    def first_activity_date(self, customer_id: str) -> date | None:
        """Earliest dated record of the customer, or None."""
        candidates = [
            self.session.execute(
                select(func.min(CollectionEntryModel.entry_date)).where(
                    CollectionEntryModel.customer_id == customer_id
                )
            ).scalar(),
            self.session.execute(
                select(func.min(PaymentModel.payment_date)).where(
                    PaymentModel.customer_id == customer_id
                )
            ).scalar(),
            self.session.execute(
                select(func.min(AdvanceUtilizationModel.utilization_date)).where(
                    AdvanceUtilizationModel.customer_id == customer_id
                )
            ).scalar(),
        ]
        dates = [d for d in candidates if d is not None]
        return min(dates) if dates else None

    def entries_needing_review(self, customer_id: str | None = None) -> list[CollectionEntry]:
        """Unpriced entries that have not been reversed yet."""
        reversed_ids = select(CollectionEntryModel.reverses_entry_id).where(
            CollectionEntryModel.reverses_entry_id.is_not(None)
        )
        query = select(CollectionEntryModel).where(
            CollectionEntryModel.needs_review.is_(True),
            CollectionEntryModel.seq.not_in(reversed_ids),
        )
        if customer_id is not None:
            query = query.where(CollectionEntryModel.customer_id == customer_id)
        rows = self.session.execute(query.order_by(CollectionEntryModel.seq)).scalars()
        return [row.to_domain() for row in rows]

    def customer_ids(self) -> list[str]:
        """Customers with at least one collection entry."""
        return list(
            self.session.execute(
                select(CollectionEntryModel.customer_id)
                .distinct()
                .order_by(CollectionEntryModel.customer_id)
            ).scalars()
        )
