"""
dairy_services.settlement_service -- paying customers.

Responsibility:
    Records a settlement either as external money (cash, UPI, bank) or as
    a draw against the customer's advances, and reverses external payments
    by compensation.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Composes AdvanceLedger (kernel) and SequenceService (kernel).

Invariants enforced:
    - Exactly one kind of ledger fact per settlement: a PaymentModel row
      for external money, or AdvanceUtilization rows for an advance draw.
      The same money is never credited twice.
    - An advance draw is all or nothing; see AdvanceLedger.utilize.
    - A payment is reversed at most once; reversals and advance draws
      cannot be reversed.

Failure modes:
    - InvalidAmountError for a non-positive amount or one finer than a paisa.
    - InsufficientAdvanceBalanceError for an oversized advance draw.
    - PaymentNotFoundError, AlreadyReversedError, CorrectionNotAllowedError
      on reversal.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from dairy_kernel.db.types import settled_amount
from dairy_kernel.domain.clock import Clock, SystemClock
from dairy_kernel.domain.records import AdvanceDraw, ExternalPayment, Payment, PaymentMode
from dairy_kernel.exceptions import (
    AlreadyReversedError,
    CorrectionNotAllowedError,
    PaymentNotFoundError,
)
from dairy_kernel.logging_config import LogContext, get_logger
from dairy_kernel.models.advance import AdvanceUtilizationModel
from dairy_kernel.models.payment import PaymentModel
from dairy_kernel.models.sequence import PAYMENT_SEQUENCE
from dairy_kernel.services.advance_ledger import AdvanceLedger
from dairy_kernel.services.sequence_service import SequenceService

logger = get_logger("services.settlement")


@dataclass(frozen=True)
class SettlementRequest:
    """A request to pay a customer."""

    customer_id: str
    payment_date: date
    amount: Decimal
    use_advance: bool = False
    mode: PaymentMode = PaymentMode.CASH
    reference: str | None = None
    note: str | None = None


class SettlementService:
    """
    Records settlements.

    Contract:
        Flush-only; the caller owns the transaction, so an advance draw's
        utilizations and row updates commit together.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        advance_ledger: AdvanceLedger | None = None,
        sequence_service: SequenceService | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequences = sequence_service or SequenceService(session)
        self._advances = advance_ledger or AdvanceLedger(session, self._sequences)

    def settle(self, request: SettlementRequest) -> Payment:
        """Pay ``request.amount`` from cash or from advances."""
        amount = settled_amount("amount", request.amount)

        if request.use_advance:
            return self._draw_from_advances(request, amount)

        record_id = self._sequences.next_value(PAYMENT_SEQUENCE)
        row = PaymentModel(
            seq=record_id,
            customer_id=request.customer_id,
            payment_date=request.payment_date,
            amount=amount,
            mode=PaymentMode(request.mode).value,
            reference=request.reference,
            note=request.note,
        )
        self._session.add(row)
        self._session.flush()

        logger.info(
            "payment_recorded",
            extra={
                "customer_id": request.customer_id,
                "payment_id": record_id,
                "payment_date": request.payment_date,
                "amount": str(amount),
                "mode": row.mode,
            },
        )
        return row.to_domain()

    def _draw_from_advances(self, request: SettlementRequest, amount: Decimal) -> AdvanceDraw:
        settlement_id = uuid4()
        with LogContext.bind(customer_id=request.customer_id, settlement_id=settlement_id):
            utilizations = self._advances.utilize(
                request.customer_id,
                amount,
                request.payment_date,
                settlement_id=settlement_id,
            )
            logger.info(
                "advance_settlement_recorded",
                extra={
                    "amount": str(amount),
                    "utilization_count": len(utilizations),
                },
            )
        return AdvanceDraw(
            settlement_id=settlement_id,
            customer_id=request.customer_id,
            payment_date=request.payment_date,
            amount=amount,
            utilizations=tuple(utilizations),
        )

    def reverse_payment(
        self,
        payment_id: int | UUID,
        reversal_date: date | None = None,
        note: str | None = None,
    ) -> ExternalPayment:
        """
        Compensate an external payment.

        ``payment_id`` may also be the settlement_id of an advance draw,
        which is refused: advance utilizations are not reversible.
        """
        if isinstance(payment_id, UUID):
            drawn = self._session.execute(
                select(AdvanceUtilizationModel.seq)
                .where(AdvanceUtilizationModel.settlement_id == payment_id)
                .limit(1)
            ).scalar_one_or_none()
            if drawn is None:
                raise PaymentNotFoundError(payment_id)
            raise CorrectionNotAllowedError(
                "AdvanceDraw", payment_id, "advance utilizations cannot be reversed"
            )

        row = self._session.execute(
            select(PaymentModel).where(PaymentModel.seq == payment_id)
        ).scalar_one_or_none()
        if row is None:
            raise PaymentNotFoundError(payment_id)
        original = row.to_domain()
        if original.is_reversal:
            raise CorrectionNotAllowedError("Payment", payment_id, "payment is itself a reversal")

        existing = self._session.execute(
            select(PaymentModel.seq).where(PaymentModel.reverses_payment_id == payment_id)
        ).scalar_one_or_none()
        if existing is not None:
            raise AlreadyReversedError("Payment", payment_id, existing)

        record_id = self._sequences.next_value(PAYMENT_SEQUENCE)
        reversal = PaymentModel(
            seq=record_id,
            customer_id=original.customer_id,
            payment_date=reversal_date or self._clock.today(),
            amount=original.amount,
            mode=original.mode.value,
            reference=original.reference,
            note=note,
            reverses_payment_id=payment_id,
        )
        self._session.add(reversal)
        self._session.flush()

        logger.info(
            "payment_reversed",
            extra={
                "customer_id": original.customer_id,
                "payment_id": payment_id,
                "reversal_id": record_id,
                "amount": str(original.amount),
            },
        )
        return reversal.to_domain()
