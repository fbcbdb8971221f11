"""
AdvanceLedger -- stored advances and their FIFO drawdown.

Responsibility:
    Issues advances, reports what is left of them, and draws settlements
    against them oldest first.  Each draw writes one AdvanceUtilization
    row per advance touched; those rows are the ledger credits.

Architecture position:
    Kernel > Services -- imperative shell.  The FIFO split itself is the
    pure ``dairy_engines.advance_drawdown.plan_drawdown``; this service
    loads, locks and updates the rows around it.

Invariants enforced:
    - Conservation: sum(principal) - sum(utilized) over non-cancelled
      advances equals available_balance().
    - utilized_amount never exceeds principal and never decreases; status
      flips to EXHAUSTED exactly when it reaches principal.
    - Per-customer serialization: a draw selects all of the customer's
      advance rows FOR UPDATE before planning, so two concurrent draws
      cannot both spend the same balance.
    - All or nothing: an oversized draw changes nothing.

Failure modes:
    - InvalidAmountError: principal or draw amount <= 0 or finer than a paisa.
    - InsufficientAdvanceBalanceError: draw exceeds what is available.
    - AdvanceNotFoundError / AdvanceCancelledError on targeted operations.

Audit relevance:
    advance_issued, advance_utilized and advance_cancelled are logged with
    customer and amounts; utilizations carry the settlement_id that
    groups them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from dairy_engines.advance_drawdown import plan_drawdown
from dairy_kernel.db.types import ZERO, settled_amount
from dairy_kernel.domain.records import Advance, AdvanceStatus, AdvanceUtilization
from dairy_kernel.exceptions import (
    AdvanceCancelledError,
    AdvanceNotFoundError,
    InsufficientAdvanceBalanceError,
)
from dairy_kernel.logging_config import get_logger
from dairy_kernel.models.advance import AdvanceModel, AdvanceUtilizationModel
from dairy_kernel.models.sequence import ADVANCE_SEQUENCE, ADVANCE_UTILIZATION_SEQUENCE
from dairy_kernel.services.base import BaseService
from dairy_kernel.services.sequence_service import SequenceService

logger = get_logger("services.advance_ledger")


@dataclass(frozen=True)
class AdvanceSummary:
    """Per-customer advance position."""

    customer_id: str
    total_principal: Decimal
    total_utilized: Decimal
    available: Decimal
    active_count: int


class AdvanceLedger(BaseService[AdvanceModel]):
    """
    Stored advances for all customers.

    Contract:
        Flush-only; the caller owns the transaction.
    Non-goals:
        - Does not reverse utilizations.  Cancelling an advance only stops
          future draws.
    """

    def __init__(self, session: Session, sequence_service: SequenceService | None = None):
        super().__init__(session)
        self._sequences = sequence_service or SequenceService(session)

    # -- writes ------------------------------------------------------------

    def issue(
        self,
        customer_id: str,
        principal,
        issued_date: date,
        note: str | None = None,
    ) -> int:
        """Record a new advance and return its advance_id."""
        amount = settled_amount("principal", principal)
        advance_id = self._sequences.next_value(ADVANCE_SEQUENCE)
        self.session.add(
            AdvanceModel(
                seq=advance_id,
                customer_id=customer_id,
                issued_date=issued_date,
                principal=amount,
                utilized_amount=ZERO,
                status=AdvanceStatus.ACTIVE.value,
                note=note,
            )
        )
        self.session.flush()
        logger.info(
            "advance_issued",
            extra={
                "customer_id": customer_id,
                "advance_id": advance_id,
                "principal": str(amount),
                "issued_date": issued_date,
            },
        )
        return advance_id

    def utilize(
        self,
        customer_id: str,
        amount,
        utilization_date: date,
        settlement_id: UUID | None = None,
    ) -> list[AdvanceUtilization]:
        """
        Draw ``amount`` from the customer's advances, oldest first.

        Returns one utilization per advance touched, in FIFO order.
        """
        requested = settled_amount("amount", amount)
        rows = self._lock_customer_rows(customer_id)
        plan = plan_drawdown(
            advances=[row.to_domain() for row in rows],
            amount=requested,
            customer_id=customer_id,
        )

        rows_by_id = {row.seq: row for row in rows}
        utilizations = [
            self._apply_draw(rows_by_id[draw.advance_id], draw.amount, utilization_date, settlement_id)
            for draw in plan.draws
        ]
        self.session.flush()

        logger.info(
            "advance_utilized",
            extra={
                "customer_id": customer_id,
                "amount": str(requested),
                "advance_ids": [u.advance_id for u in utilizations],
                "settlement_id": settlement_id,
                "available_after": str(plan.available_after),
            },
        )
        return utilizations

    def utilize_advance(
        self,
        advance_id: int,
        amount,
        utilization_date: date,
        settlement_id: UUID | None = None,
    ) -> AdvanceUtilization:
        """Draw from one specific advance, ignoring FIFO order."""
        requested = settled_amount("amount", amount)
        row = self._lock_row(advance_id)
        advance = row.to_domain()
        if advance.is_cancelled:
            raise AdvanceCancelledError(advance_id)
        if requested > advance.remaining:
            raise InsufficientAdvanceBalanceError(
                advance.customer_id, requested, advance.remaining
            )

        utilization = self._apply_draw(row, requested, utilization_date, settlement_id)
        self.session.flush()
        logger.info(
            "advance_utilized",
            extra={
                "customer_id": advance.customer_id,
                "amount": str(requested),
                "advance_ids": [advance_id],
                "settlement_id": settlement_id,
            },
        )
        return utilization

    def cancel(self, advance_id: int) -> Advance:
        """Cancel an advance.  Already-drawn amounts stay drawn."""
        row = self._lock_row(advance_id)
        advance = row.to_domain()
        if advance.is_cancelled:
            logger.info("advance_cancel_noop", extra={"advance_id": advance_id})
            return advance

        cancelled = advance.cancel()
        row.status = cancelled.status.value
        self.session.flush()
        logger.info(
            "advance_cancelled",
            extra={
                "customer_id": advance.customer_id,
                "advance_id": advance_id,
                "forfeited": str(advance.remaining),
            },
        )
        return cancelled

    def _apply_draw(
        self,
        row: AdvanceModel,
        amount: Decimal,
        utilization_date: date,
        settlement_id: UUID | None,
    ) -> AdvanceUtilization:
        drawn = row.to_domain().draw(amount)
        row.utilized_amount = drawn.utilized_amount
        row.status = drawn.status.value

        record_id = self._sequences.next_value(ADVANCE_UTILIZATION_SEQUENCE)
        utilization = AdvanceUtilization(
            record_id=record_id,
            advance_id=row.seq,
            customer_id=row.customer_id,
            utilization_date=utilization_date,
            amount=amount,
            settlement_id=settlement_id,
        )
        self.session.add(
            AdvanceUtilizationModel(
                seq=record_id,
                advance_id=row.seq,
                customer_id=row.customer_id,
                utilization_date=utilization_date,
                amount=amount,
                settlement_id=settlement_id,
            )
        )
        return utilization

    # -- reads -------------------------------------------------------------

    def get(self, advance_id: int) -> Advance:
        row = self.session.execute(
            select(AdvanceModel).where(AdvanceModel.seq == advance_id)
        ).scalar_one_or_none()
        if row is None:
            raise AdvanceNotFoundError(advance_id)
        return row.to_domain()

    def advances(self, customer_id: str) -> list[Advance]:
        """All of the customer's advances, oldest first."""
        rows = self.session.execute(
            select(AdvanceModel)
            .where(AdvanceModel.customer_id == customer_id)
            .order_by(AdvanceModel.issued_date, AdvanceModel.seq)
        ).scalars()
        return [row.to_domain() for row in rows]

    def available_balance(self, customer_id: str) -> Decimal:
        return sum((a.remaining for a in self.advances(customer_id)), ZERO)

    def summary(self, customer_id: str) -> AdvanceSummary:
        live = [a for a in self.advances(customer_id) if not a.is_cancelled]
        return AdvanceSummary(
            customer_id=customer_id,
            total_principal=sum((a.principal for a in live), ZERO),
            total_utilized=sum((a.utilized_amount for a in live), ZERO),
            available=sum((a.remaining for a in live), ZERO),
            active_count=sum(1 for a in live if a.status is AdvanceStatus.ACTIVE),
        )

    def utilizations(
        self,
        customer_id: str,
        settlement_id: UUID | None = None,
    ) -> list[AdvanceUtilization]:
        query = select(AdvanceUtilizationModel).where(
            AdvanceUtilizationModel.customer_id == customer_id
        )
        if settlement_id is not None:
            query = query.where(AdvanceUtilizationModel.settlement_id == settlement_id)
        rows = self.session.execute(query.order_by(AdvanceUtilizationModel.seq)).scalars()
        return [row.to_domain() for row in rows]

    # -- locking -----------------------------------------------------------

    def _lock_customer_rows(self, customer_id: str) -> list[AdvanceModel]:
        return list(
            self.session.execute(
                select(AdvanceModel)
                .where(AdvanceModel.customer_id == customer_id)
                .order_by(AdvanceModel.issued_date, AdvanceModel.seq)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalars()
        )

    def _lock_row(self, advance_id: int) -> AdvanceModel:
        row = self.session.execute(
            select(AdvanceModel)
            .where(AdvanceModel.seq == advance_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if row is None:
            raise AdvanceNotFoundError(advance_id)
        return row
