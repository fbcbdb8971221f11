"""
Tests for SettlementService: cash payments, advance draws and reversals.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from dairy_kernel.domain.records import (
    AdvanceDraw,
    ExternalPayment,
    MilkType,
    PaymentMode,
    Shift,
)
from dairy_kernel.exceptions import (
    AlreadyReversedError,
    CorrectionNotAllowedError,
    InsufficientAdvanceBalanceError,
    InvalidAmountError,
    PaymentNotFoundError,
)
from dairy_services.collection_service import CollectionCandidate
from dairy_services.settlement_service import SettlementRequest


def cash(amount, day=date(2024, 3, 3), **kwargs):
    return SettlementRequest(
        customer_id="C1", payment_date=day, amount=Decimal(amount), **kwargs
    )


def from_advance(amount, day=date(2024, 3, 5)):
    return SettlementRequest(
        customer_id="C1", payment_date=day, amount=Decimal(amount), use_advance=True
    )


class TestExternalPayment:

    def test_cash_payment(self, settlement_service):
        payment = settlement_service.settle(
            cash("150", mode=PaymentMode.UPI, reference="TXN-1")
        )
        assert isinstance(payment, ExternalPayment)
        assert payment.amount == Decimal("150.00")
        assert payment.mode is PaymentMode.UPI
        assert payment.reference == "TXN-1"

    @pytest.mark.parametrize("amount", ["0", "-1"])
    def test_non_positive_rejected(self, settlement_service, amount):
        with pytest.raises(InvalidAmountError):
            settlement_service.settle(cash(amount))

    def test_fractions_of_a_paisa_rejected(self, settlement_service):
        with pytest.raises(InvalidAmountError) as exc_info:
            settlement_service.settle(cash("10.005"))
        assert exc_info.value.reason == "has fractions of a paisa"
        # nothing was allocated or stored
        assert settlement_service.settle(cash("10.00")).record_id == 1

    def test_payment_is_logged(self, settlement_service, captured_logs):
        payment = settlement_service.settle(cash("150"))
        logged = [r for r in captured_logs if r["message"] == "payment_recorded"]
        assert logged[0]["payment_id"] == payment.record_id
        assert logged[0]["mode"] == "CASH"


class TestAdvanceSettlement:

    @pytest.fixture(autouse=True)
    def _advances(self, advance_ledger):
        self.ledger = advance_ledger
        self.a1 = advance_ledger.issue("C1", Decimal("100"), date(2024, 3, 1))
        self.a2 = advance_ledger.issue("C1", Decimal("50"), date(2024, 3, 2))

    def test_draw_uses_fifo(self, settlement_service):
        draw = settlement_service.settle(from_advance("120"))

        assert isinstance(draw, AdvanceDraw)
        assert draw.advance_ids == (self.a1, self.a2)
        assert [u.amount for u in draw.utilizations] == [Decimal("100.00"), Decimal("20.00")]
        assert all(u.settlement_id == draw.settlement_id for u in draw.utilizations)
        assert self.ledger.available_balance("C1") == Decimal("30.00")

    def test_draw_writes_no_payment_row(self, settlement_service, statement_service):
        settlement_service.settle(from_advance("120"))
        statement = statement_service.statement_for("C1", "2024-03")
        assert statement.totals.payments == Decimal("0")
        assert statement.totals.advance_draws == Decimal("120.00")
        assert statement.closing_balance == Decimal("-120.00")

    def test_oversized_draw_rejected(self, settlement_service):
        with pytest.raises(InsufficientAdvanceBalanceError):
            settlement_service.settle(from_advance("200"))
        assert self.ledger.available_balance("C1") == Decimal("150.00")

    def test_advance_draw_cannot_be_reversed(self, settlement_service):
        draw = settlement_service.settle(from_advance("20"))
        with pytest.raises(CorrectionNotAllowedError):
            settlement_service.reverse_payment(draw.settlement_id)


class TestReversePayment:

    def test_reverse_defaults_to_today(self, settlement_service, deterministic_clock):
        original = settlement_service.settle(cash("150"))
        reversal = settlement_service.reverse_payment(original.record_id, note="bounced")

        assert reversal.reverses_payment_id == original.record_id
        assert reversal.payment_date == deterministic_clock.today()
        assert reversal.ledger_credit == Decimal("-150.00")
        assert reversal.note == "bounced"

    def test_reverse_restores_balance(
        self, settlement_service, collection_service, cow_rate_card, statement_service
    ):
        collection_service.record_entry(
            CollectionCandidate(
                customer_id="C1",
                entry_date=date(2024, 3, 1),
                shift=Shift.MORNING,
                milk_type=MilkType.COW,
                quantity_litres=Decimal("10"),
                fat_pct=Decimal("4.1"),
                snf_pct=Decimal("8.5"),
            )
        )
        original = settlement_service.settle(cash("150"))
        settlement_service.reverse_payment(original.record_id, date(2024, 3, 4))

        statement = statement_service.statement_for("C1", "2024-03")
        assert [line.running_balance for line in statement.lines] == [
            Decimal("400.00"),
            Decimal("250.00"),
            Decimal("400.00"),
        ]

    def test_reverse_twice_rejected(self, settlement_service):
        original = settlement_service.settle(cash("150"))
        settlement_service.reverse_payment(original.record_id)
        with pytest.raises(AlreadyReversedError):
            settlement_service.reverse_payment(original.record_id)

    def test_reversal_cannot_be_reversed(self, settlement_service):
        original = settlement_service.settle(cash("150"))
        reversal = settlement_service.reverse_payment(original.record_id)
        with pytest.raises(CorrectionNotAllowedError):
            settlement_service.reverse_payment(reversal.record_id)

    def test_unknown_payment(self, settlement_service):
        with pytest.raises(PaymentNotFoundError):
            settlement_service.reverse_payment(999)
        with pytest.raises(PaymentNotFoundError):
            settlement_service.reverse_payment(uuid4())
