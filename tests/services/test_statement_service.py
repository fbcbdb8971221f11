"""
Tests for StatementService and PassbookSelector.
"""

from datetime import date
from decimal import Decimal

import pytest

from dairy_engines.period_window import PeriodWindow
from dairy_kernel.domain.records import MilkType, Shift
from dairy_kernel.exceptions import InvalidWindowError
from dairy_kernel.selectors.passbook_selector import PassbookSelector
from dairy_services.collection_service import CollectionCandidate
from dairy_services.settlement_service import SettlementRequest


def collect(service, day, customer="C1", litres="10", milk=MilkType.COW):
    return service.record_entry(
        CollectionCandidate(
            customer_id=customer,
            entry_date=day,
            shift=Shift.EVENING,
            milk_type=milk,
            quantity_litres=Decimal(litres),
            fat_pct=Decimal("4.1"),
            snf_pct=Decimal("8.5"),
        )
    ).entry


class TestStatements:

    @pytest.fixture(autouse=True)
    def _history(self, collection_service, settlement_service, advance_ledger, cow_rate_card):
        collect(collection_service, date(2024, 1, 20))
        collect(collection_service, date(2024, 2, 3))
        settlement_service.settle(
            SettlementRequest("C1", date(2024, 3, 2), Decimal("500"))
        )
        advance_ledger.issue("C1", Decimal("100"), date(2024, 3, 3))
        settlement_service.settle(
            SettlementRequest("C1", date(2024, 3, 10), Decimal("60"), use_advance=True)
        )
        collect(collection_service, date(2024, 2, 5), customer="C2")

    def test_all_time(self, statement_service):
        statement = statement_service.statement_for("C1", "all")
        assert statement.opening_balance == Decimal("0")
        assert len(statement.lines) == 4
        assert statement.closing_balance == Decimal("240.00")

    def test_month_has_opening_balance(self, statement_service):
        statement = statement_service.statement_for("C1", "2024-03")
        assert statement.opening_balance == Decimal("800.00")
        assert [line.running_balance for line in statement.lines] == [
            Decimal("300.00"),
            Decimal("240.00"),
        ]

    def test_explicit_window(self, statement_service):
        window = PeriodWindow.between(date(2024, 2, 1), date(2024, 2, 29))
        statement = statement_service.statement("C1", window)
        assert statement.opening_balance == Decimal("400.00")
        assert statement.closing_balance == Decimal("800.00")

    def test_future_month_rejected(self, statement_service):
        with pytest.raises(InvalidWindowError):
            statement_service.statement_for("C1", "2024-05")

    def test_monthly_statements_chain(self, statement_service):
        statements = statement_service.monthly_statements("C1")

        assert [(s.window_from, s.window_to) for s in statements] == [
            (date(2024, 1, 1), date(2024, 1, 31)),
            (date(2024, 2, 1), date(2024, 2, 29)),
            (date(2024, 3, 1), date(2024, 3, 31)),
        ]
        assert [s.closing_balance for s in statements] == [
            Decimal("400.00"),
            Decimal("800.00"),
            Decimal("240.00"),
        ]

    def test_monthly_statements_match_all_time(self, statement_service):
        statements = statement_service.monthly_statements(
            "C1", PeriodWindow.all_time(statement_service.today())
        )
        whole = statement_service.statement_for("C1", "all")
        assert statements[-1].closing_balance == whole.closing_balance
        assert sum(len(s.lines) for s in statements) == len(whole.lines)

    def test_monthly_statements_empty_customer(self, statement_service):
        assert statement_service.monthly_statements("NOBODY") == []


class TestPassbookSelector:

    def test_first_activity_date(self, session, collection_service, cow_rate_card):
        collect(collection_service, date(2024, 2, 9))
        collect(collection_service, date(2024, 1, 9))
        passbook = PassbookSelector(session)
        assert passbook.first_activity_date("C1") == date(2024, 1, 9)
        assert passbook.first_activity_date("C9") is None

    def test_entries_needing_review(self, session, collection_service, cow_rate_card):
        unpriced = collect(collection_service, date(2024, 3, 1), milk=MilkType.BUFFALO)
        resolved = collect(collection_service, date(2024, 3, 2), milk=MilkType.BUFFALO)
        collect(collection_service, date(2024, 3, 3))
        collection_service.reprice_entry(resolved.record_id, Decimal("50"), date(2024, 3, 4))

        pending = PassbookSelector(session).entries_needing_review("C1")
        assert [e.record_id for e in pending] == [unpriced.record_id]

    def test_customer_ids(self, session, collection_service, cow_rate_card):
        collect(collection_service, date(2024, 3, 1), customer="C2")
        collect(collection_service, date(2024, 3, 1), customer="C1")
        assert PassbookSelector(session).customer_ids() == ["C1", "C2"]
