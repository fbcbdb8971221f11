"""
Tests for LedgerCompiler.

Covers:
- Running balance and sign convention
- Opening balance from records before the window
- Same-day ordering (milk, payment, advance utilization)
- Compensating entries
- Empty windows
- Chaining of adjacent windows
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

from dairy_engines.ledger_compiler import LedgerCompiler, LineKind, collect_postings
from dairy_kernel.domain.records import (
    AdvanceDraw,
    AdvanceUtilization,
    CollectionEntry,
    ExternalPayment,
    MilkType,
    PaymentMode,
    RateSource,
    Shift,
    price_amount,
)

C1 = "C1"


def entry(record_id, day, litres="10", price="40", customer=C1, reverses=None, review=False):
    quantity, rate = Decimal(litres), Decimal(price)
    return CollectionEntry(
        record_id=record_id,
        customer_id=customer,
        entry_date=day,
        shift=Shift.MORNING,
        milk_type=MilkType.COW,
        quantity_litres=quantity,
        price_per_litre=rate,
        amount=price_amount(quantity, rate),
        rate_source=RateSource.UNPRICED if review else RateSource.RATE_CARD,
        needs_review=review,
        reverses_entry_id=reverses,
    )


def payment(record_id, day, amount, customer=C1, reverses=None, reference=None):
    return ExternalPayment(
        record_id=record_id,
        customer_id=customer,
        payment_date=day,
        amount=Decimal(amount),
        mode=PaymentMode.CASH,
        reference=reference,
        reverses_payment_id=reverses,
    )


def utilization(record_id, day, amount, advance_id=1, customer=C1):
    return AdvanceUtilization(
        record_id=record_id,
        advance_id=advance_id,
        customer_id=customer,
        utilization_date=day,
        amount=Decimal(amount),
    )


class TestEndToEnd:
    """10 L at 40 on day 1, 150 paid on day 3."""

    def setup_method(self):
        self.compiler = LedgerCompiler()

    def test_running_balance(self):
        statement = self.compiler.compile(
            customer_id=C1,
            window_from=date(2024, 3, 1),
            window_to=date(2024, 3, 3),
            entries=[entry(1, date(2024, 3, 1))],
            payments=[payment(1, date(2024, 3, 3), "150")],
        )

        assert statement.opening_balance == Decimal("0")
        assert [(line.debit, line.credit, line.running_balance) for line in statement.lines] == [
            (Decimal("400.00"), Decimal("0"), Decimal("400.00")),
            (Decimal("0"), Decimal("150"), Decimal("250.00")),
        ]
        assert statement.closing_balance == Decimal("250.00")

    def test_descriptions(self):
        statement = self.compiler.compile(
            customer_id=C1,
            window_from=date(2024, 3, 1),
            window_to=date(2024, 3, 3),
            entries=[entry(1, date(2024, 3, 1))],
            payments=[payment(1, date(2024, 3, 3), "150", reference="R-9")],
        )
        assert statement.lines[0].description == "Morning COW 10 L @ 40"
        assert statement.lines[1].description == "Payment (CASH) ref R-9"

    def test_totals(self):
        statement = self.compiler.compile(
            customer_id=C1,
            window_from=date(2024, 3, 1),
            window_to=date(2024, 3, 5),
            entries=[entry(1, date(2024, 3, 1)), entry(2, date(2024, 3, 2), litres="5")],
            payments=[payment(1, date(2024, 3, 3), "150")],
            utilizations=[utilization(1, date(2024, 3, 4), "50")],
        )
        totals = statement.totals
        assert totals.milk_value == Decimal("600.00")
        assert totals.milk_litres == Decimal("15")
        assert totals.payments == Decimal("150")
        assert totals.advance_draws == Decimal("50")
        assert totals.total_debit - totals.total_credit == statement.closing_balance
        assert totals.line_count == 4


class TestWindowing:

    def setup_method(self):
        self.compiler = LedgerCompiler()
        self.entries = [entry(1, date(2024, 3, 1)), entry(2, date(2024, 3, 10))]
        self.payments = [payment(1, date(2024, 3, 5), "100")]

    def test_opening_balance_folds_prior_records(self):
        statement = self.compiler.compile(
            customer_id=C1,
            window_from=date(2024, 3, 6),
            window_to=date(2024, 3, 31),
            entries=self.entries,
            payments=self.payments,
        )
        assert statement.opening_balance == Decimal("300.00")
        assert len(statement.lines) == 1
        assert statement.closing_balance == Decimal("700.00")

    def test_records_after_window_are_excluded(self):
        statement = self.compiler.compile(
            customer_id=C1,
            window_from=date(2024, 3, 1),
            window_to=date(2024, 3, 5),
            entries=self.entries,
            payments=self.payments,
        )
        assert [line.record_id for line in statement.lines] == [1, 1]
        assert statement.closing_balance == Decimal("300.00")

    def test_empty_window_has_opening_equal_closing(self):
        statement = self.compiler.compile(
            customer_id=C1,
            window_from=date(2024, 3, 6),
            window_to=date(2024, 3, 9),
            entries=self.entries,
            payments=self.payments,
        )
        assert statement.is_empty
        assert statement.opening_balance == statement.closing_balance == Decimal("300.00")

    def test_inverted_window_yields_no_lines(self):
        statement = self.compiler.compile(
            customer_id=C1,
            window_from=date(2024, 3, 31),
            window_to=date(2024, 3, 1),
            entries=self.entries,
        )
        assert statement.is_empty
        assert statement.opening_balance == statement.closing_balance

    def test_other_customers_are_ignored(self):
        statement = self.compiler.compile(
            customer_id=C1,
            window_from=date(2024, 3, 1),
            window_to=date(2024, 3, 31),
            entries=self.entries + [entry(9, date(2024, 3, 2), customer="C2")],
        )
        assert [line.record_id for line in statement.lines] == [1, 2]

    def test_chaining_matches_single_window(self):
        whole = self.compiler.compile(
            customer_id=C1,
            window_from=date(2024, 3, 1),
            window_to=date(2024, 3, 31),
            entries=self.entries,
            payments=self.payments,
        )
        first = self.compiler.compile(
            customer_id=C1,
            window_from=date(2024, 3, 1),
            window_to=date(2024, 3, 5),
            entries=self.entries,
            payments=self.payments,
        )
        second = self.compiler.compile(
            customer_id=C1,
            window_from=date(2024, 3, 6),
            window_to=date(2024, 3, 31),
            entries=self.entries,
            payments=self.payments,
        )
        assert second.opening_balance == first.closing_balance
        assert first.lines + second.lines == whole.lines
        assert second.closing_balance == whole.closing_balance


class TestOrdering:

    def setup_method(self):
        self.compiler = LedgerCompiler()
        self.day = date(2024, 3, 2)

    def test_same_day_kind_priority(self):
        statement = self.compiler.compile(
            customer_id=C1,
            window_from=self.day,
            window_to=self.day,
            entries=[entry(7, self.day)],
            payments=[payment(3, self.day, "50")],
            utilizations=[utilization(1, self.day, "20")],
        )
        assert [line.kind for line in statement.lines] == [
            LineKind.MILK,
            LineKind.PAYMENT,
            LineKind.ADVANCE_UTILIZATION,
        ]

    def test_same_kind_ordered_by_record_id(self):
        statement = self.compiler.compile(
            customer_id=C1,
            window_from=self.day,
            window_to=self.day,
            entries=[entry(5, self.day), entry(2, self.day), entry(9, self.day)],
        )
        assert [line.record_id for line in statement.lines] == [2, 5, 9]

    def test_input_order_does_not_matter(self):
        entries = [entry(1, date(2024, 3, 1)), entry(2, self.day), entry(3, self.day)]
        payments = [payment(1, self.day, "10"), payment(2, date(2024, 3, 1), "20")]
        forward = self.compiler.compile(
            customer_id=C1,
            window_from=date(2024, 3, 1),
            window_to=self.day,
            entries=entries,
            payments=payments,
        )
        backward = self.compiler.compile(
            customer_id=C1,
            window_from=date(2024, 3, 1),
            window_to=self.day,
            entries=list(reversed(entries)),
            payments=list(reversed(payments)),
        )
        assert forward == backward


class TestCompensation:

    def setup_method(self):
        self.compiler = LedgerCompiler()

    def test_reversed_entry_nets_to_zero(self):
        statement = self.compiler.compile(
            customer_id=C1,
            window_from=date(2024, 3, 1),
            window_to=date(2024, 3, 31),
            entries=[entry(1, date(2024, 3, 1)), entry(2, date(2024, 3, 4), reverses=1)],
        )
        assert statement.lines[1].debit == Decimal("-400.00")
        assert statement.lines[1].description == "Reversal of entry #1"
        assert statement.closing_balance == Decimal("0.00")
        assert statement.totals.milk_litres == Decimal("0")

    def test_reversed_payment_restores_balance(self):
        statement = self.compiler.compile(
            customer_id=C1,
            window_from=date(2024, 3, 1),
            window_to=date(2024, 3, 31),
            entries=[entry(1, date(2024, 3, 1))],
            payments=[
                payment(1, date(2024, 3, 2), "150"),
                payment(2, date(2024, 3, 3), "150", reverses=1),
            ],
        )
        assert statement.lines[-1].credit == Decimal("-150")
        assert statement.lines[-1].description == "Reversal of payment #1"
        assert statement.closing_balance == Decimal("400.00")

    def test_unpriced_entry_is_flagged(self):
        statement = self.compiler.compile(
            customer_id=C1,
            window_from=date(2024, 3, 1),
            window_to=date(2024, 3, 31),
            entries=[entry(1, date(2024, 3, 1), price="0", review=True)],
        )
        line = statement.lines[0]
        assert line.needs_review
        assert line.description.endswith("(unpriced)")
        assert statement.totals.review_count == 1


class TestAdvanceDraws:

    def test_advance_draw_contributes_its_utilizations_once(self):
        day = date(2024, 3, 2)
        used = (utilization(1, day, "100", advance_id=1), utilization(2, day, "20", advance_id=2))
        draw = AdvanceDraw(
            settlement_id=uuid4(),
            customer_id=C1,
            payment_date=day,
            amount=Decimal("120"),
            utilizations=used,
        )
        postings = collect_postings(C1, [], [draw], used)
        assert [p.record_id for p in postings] == [1, 2]
        assert sum(p.credit for p in postings) == Decimal("120")

    def test_utilization_description(self):
        statement = LedgerCompiler().compile(
            customer_id=C1,
            window_from=date(2024, 3, 1),
            window_to=date(2024, 3, 31),
            utilizations=[utilization(1, date(2024, 3, 2), "20", advance_id=4)],
        )
        assert statement.lines[0].description == "Adjusted against advance #4"
        assert statement.closing_balance == Decimal("-20")
