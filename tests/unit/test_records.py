"""
Unit tests for the immutable ledger records.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from dairy_kernel.domain.records import (
    UNBOUNDED,
    Advance,
    AdvanceDraw,
    AdvanceStatus,
    AdvanceUtilization,
    CollectionEntry,
    ExternalPayment,
    FundingSource,
    MilkType,
    RateRule,
    Shift,
    price_amount,
)
from dairy_kernel.exceptions import (
    AdvanceCancelledError,
    InsufficientAdvanceBalanceError,
    InvalidAmountError,
    InvalidMeasurementError,
    InvalidQuantityError,
    InvalidRateRuleError,
)


class TestRateRule:

    def test_empty_fat_band_rejected(self):
        with pytest.raises(InvalidRateRuleError):
            RateRule(1, MilkType.COW, Decimal("40"), fat_min=Decimal("5"), fat_max=Decimal("5"))

    def test_non_positive_price_rejected(self):
        with pytest.raises(InvalidRateRuleError):
            RateRule(1, MilkType.COW, Decimal("0"))

    def test_negative_bound_rejected(self):
        with pytest.raises(InvalidRateRuleError):
            RateRule(1, MilkType.COW, Decimal("40"), snf_min=Decimal("-1"))

    def test_band_width(self):
        rule = RateRule(
            1,
            MilkType.COW,
            Decimal("40"),
            fat_min=Decimal("4"),
            fat_max=Decimal("4.5"),
            snf_min=Decimal("8"),
            snf_max=Decimal("9"),
        )
        assert rule.band_width == Decimal("1.5")
        assert RateRule(2, MilkType.COW, Decimal("40"), fat_min=Decimal("4")).band_width == UNBOUNDED


class TestCollectionEntry:

    def _entry(self, **overrides):
        fields = dict(
            record_id=1,
            customer_id="C1",
            entry_date=date(2024, 3, 1),
            shift=Shift.MORNING,
            milk_type=MilkType.COW,
            quantity_litres=Decimal("10.5"),
            price_per_litre=Decimal("35.63"),
            amount=price_amount(Decimal("10.5"), Decimal("35.63")),
        )
        fields.update(overrides)
        return CollectionEntry(**fields)

    def test_amount_is_rounded_half_up(self):
        # 10.5 x 35.63 = 374.115
        assert self._entry().amount == Decimal("374.12")

    def test_inconsistent_amount_rejected(self):
        with pytest.raises(ValueError):
            self._entry(amount=Decimal("374.11"))

    def test_negative_quantity_rejected(self):
        with pytest.raises(InvalidQuantityError):
            self._entry(quantity_litres=Decimal("-1"), amount=Decimal("-35.63"))

    def test_zero_quantity_allowed(self):
        entry = self._entry(quantity_litres=Decimal("0"), amount=Decimal("0.00"))
        assert entry.ledger_debit == Decimal("0.00")

    def test_fat_out_of_range_rejected(self):
        with pytest.raises(InvalidMeasurementError):
            self._entry(fat_pct=Decimal("101"))

    def test_reversal_debit_is_negated(self):
        entry = self._entry(record_id=2, reverses_entry_id=1)
        assert entry.is_reversal
        assert entry.ledger_debit == Decimal("-374.12")

    def test_shift_label(self):
        assert Shift.MORNING.label == "Morning"
        assert Shift("E").label == "Evening"


class TestAdvance:

    def _advance(self, **overrides):
        fields = dict(
            record_id=1,
            customer_id="C1",
            issued_date=date(2024, 3, 1),
            principal=Decimal("100"),
        )
        fields.update(overrides)
        return Advance(**fields)

    def test_non_positive_principal_rejected(self):
        with pytest.raises(InvalidAmountError):
            self._advance(principal=Decimal("0"))

    def test_status_must_match_utilization(self):
        with pytest.raises(ValueError):
            self._advance(utilized_amount=Decimal("100"))
        with pytest.raises(ValueError):
            self._advance(status=AdvanceStatus.EXHAUSTED)

    def test_draw_to_exhaustion(self):
        drawn = self._advance().draw(Decimal("100"))
        assert drawn.status is AdvanceStatus.EXHAUSTED
        assert drawn.remaining == Decimal("0")

    def test_overdraw_rejected(self):
        with pytest.raises(InsufficientAdvanceBalanceError):
            self._advance().draw(Decimal("100.01"))

    def test_cancelled_has_no_remaining(self):
        cancelled = self._advance(utilized_amount=Decimal("40")).cancel()
        assert cancelled.remaining == Decimal("0")
        assert cancelled.utilized_amount == Decimal("40")
        with pytest.raises(AdvanceCancelledError):
            cancelled.draw(Decimal("1"))


class TestPayments:

    def test_external_payment_requires_positive_amount(self):
        with pytest.raises(InvalidAmountError):
            ExternalPayment(1, "C1", date(2024, 3, 1), Decimal("0"))

    def test_external_payment_funding(self):
        payment = ExternalPayment(1, "C1", date(2024, 3, 1), Decimal("50"))
        assert payment.funding_source is FundingSource.EXTERNAL
        assert payment.ledger_credit == Decimal("50")

    def test_advance_draw_must_balance(self):
        settlement_id = uuid4()
        used = (
            AdvanceUtilization(1, 1, "C1", date(2024, 3, 1), Decimal("30"), settlement_id),
        )
        with pytest.raises(ValueError):
            AdvanceDraw(settlement_id, "C1", date(2024, 3, 1), Decimal("40"), used)

        draw = AdvanceDraw(settlement_id, "C1", date(2024, 3, 1), Decimal("30"), used)
        assert draw.funding_source is FundingSource.ADVANCE
        assert draw.advance_ids == (1,)
