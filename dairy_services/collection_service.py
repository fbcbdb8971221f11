"""
dairy_services.collection_service -- write-time pricing of milk collections.

Responsibility:
    Prices a collection candidate against the active rate card, stores it
    as an immutable CollectionEntry, and corrects stored entries with
    compensating entries (reverse, reprice).

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Composes RateCardSelector (kernel), RateResolver (engine) and
    SequenceService (kernel).

Invariants enforced:
    - Price is captured at write time.  A later rate card change never
      reprices history; only an explicit reprice does, and it does so by
      compensation.
    - An unmatched sample is never rejected.  It is stored at price zero,
      ``rate_source=UNPRICED``, ``needs_review=True``.
    - Validation (litres, fat, SNF, manual price) happens before any row
      is written.
    - An entry is reversed at most once, and a reversal is never itself
      reversed.

Failure modes:
    - InvalidQuantityError, InvalidMeasurementError, InvalidAmountError on
      bad input.
    - EntryNotFoundError, AlreadyReversedError, CorrectionNotAllowedError
      on corrections.

Usage:
    service = CollectionService(session, clock=SystemClock())
    priced = service.record_entry(CollectionCandidate(
        customer_id="C1", entry_date=date(2024, 3, 1), shift=Shift.MORNING,
        milk_type=MilkType.COW, quantity_litres=Decimal("10"),
        fat_pct=Decimal("4.1"), snf_pct=Decimal("8.5"),
    ))
    if priced.no_match:
        ...  # surface for review
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from dairy_kernel.db.types import ZERO, to_decimal
from dairy_kernel.domain.clock import Clock, SystemClock
from dairy_kernel.domain.records import (
    CollectionEntry,
    MilkType,
    RateSource,
    Shift,
    price_amount,
)
from dairy_kernel.exceptions import (
    AlreadyReversedError,
    CorrectionNotAllowedError,
    EntryNotFoundError,
    InvalidAmountError,
    InvalidMeasurementError,
    InvalidQuantityError,
    NoMatchingRateRuleError,
)
from dairy_kernel.logging_config import LogContext, get_logger
from dairy_kernel.models.collection import CollectionEntryModel
from dairy_kernel.models.sequence import COLLECTION_ENTRY_SEQUENCE
from dairy_kernel.selectors.rate_card_selector import RateCardSelector
from dairy_kernel.services.sequence_service import SequenceService

logger = get_logger("services.collection")

_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class CollectionCandidate:
    """A parsed collection, before pricing."""

    customer_id: str
    entry_date: date
    shift: Shift
    milk_type: MilkType
    quantity_litres: Decimal
    fat_pct: Decimal | None = None
    snf_pct: Decimal | None = None


@dataclass(frozen=True)
class PricedEntry:
    """A stored entry and whether the rate card failed to price it."""

    entry: CollectionEntry
    no_match: bool = False


@dataclass(frozen=True)
class EntryCorrection:
    """Result of a reprice: the compensation and the replacement."""

    reversal: CollectionEntry
    replacement: CollectionEntry


class CollectionService:
    """
    Records and corrects milk collection entries.

    Contract:
        Flush-only; the caller owns the transaction.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        sequence_service: SequenceService | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequences = sequence_service or SequenceService(session)
        self._rate_cards = RateCardSelector(session)

    def record_entry(
        self,
        candidate: CollectionCandidate,
        manual_price: Decimal | None = None,
    ) -> PricedEntry:
        """
        Price and store one collection.

        With ``manual_price`` the rate card is bypassed and the entry is
        stored with ``rate_source=MANUAL``.
        """
        quantity = to_decimal(candidate.quantity_litres)
        fat = None if candidate.fat_pct is None else to_decimal(candidate.fat_pct)
        snf = None if candidate.snf_pct is None else to_decimal(candidate.snf_pct)
        milk_type = MilkType(candidate.milk_type)
        shift = Shift(candidate.shift)

        if quantity < ZERO:
            raise InvalidQuantityError(quantity)
        for name, value in (("fat_pct", fat), ("snf_pct", snf)):
            if value is not None and not (ZERO <= value <= _HUNDRED):
                raise InvalidMeasurementError(name, value)

        no_match = False
        rule_id = None
        if manual_price is not None:
            price = to_decimal(manual_price)
            if price < ZERO:
                raise InvalidAmountError("manual_price", price)
            source = RateSource.MANUAL
        else:
            resolver = self._rate_cards.resolver(milk_type)
            try:
                resolution = resolver.resolve(milk_type=milk_type, fat_pct=fat, snf_pct=snf)
                price = resolution.price_per_litre
                rule_id = resolution.rule_id
                source = RateSource.RATE_CARD
            except NoMatchingRateRuleError as exc:
                logger.warning(
                    "collection_entry_unpriced",
                    extra={
                        "customer_id": candidate.customer_id,
                        "milk_type": exc.milk_type,
                        "fat_pct": exc.fat_pct,
                        "snf_pct": exc.snf_pct,
                    },
                )
                price = ZERO
                source = RateSource.UNPRICED
                no_match = True

        entry = self._store(
            CollectionEntry(
                record_id=self._sequences.next_value(COLLECTION_ENTRY_SEQUENCE),
                customer_id=candidate.customer_id,
                entry_date=candidate.entry_date,
                shift=shift,
                milk_type=milk_type,
                quantity_litres=quantity,
                price_per_litre=price,
                amount=price_amount(quantity, price),
                fat_pct=fat,
                snf_pct=snf,
                rate_rule_id=rule_id,
                rate_source=source,
                needs_review=no_match,
            )
        )
        return PricedEntry(entry=entry, no_match=no_match)

    def reverse_entry(
        self,
        entry_id: int,
        correction_date: date | None = None,
    ) -> CollectionEntry:
        """
        Store a compensating entry for ``entry_id``.

        The compensation repeats the original economics and is dated
        ``correction_date`` (default today), so statements already issued
        for earlier windows stay valid.
        """
        original = self._load(entry_id).to_domain()
        if original.is_reversal:
            raise CorrectionNotAllowedError(
                "CollectionEntry", entry_id, "entry is itself a reversal"
            )
        existing = self._session.execute(
            select(CollectionEntryModel.seq).where(
                CollectionEntryModel.reverses_entry_id == entry_id
            )
        ).scalar_one_or_none()
        if existing is not None:
            raise AlreadyReversedError("CollectionEntry", entry_id, existing)

        with LogContext.bind(customer_id=original.customer_id):
            reversal = self._store(
                CollectionEntry(
                    record_id=self._sequences.next_value(COLLECTION_ENTRY_SEQUENCE),
                    customer_id=original.customer_id,
                    entry_date=correction_date or self._clock.today(),
                    shift=original.shift,
                    milk_type=original.milk_type,
                    quantity_litres=original.quantity_litres,
                    price_per_litre=original.price_per_litre,
                    amount=original.amount,
                    fat_pct=original.fat_pct,
                    snf_pct=original.snf_pct,
                    rate_rule_id=original.rate_rule_id,
                    rate_source=original.rate_source,
                    needs_review=False,
                    reverses_entry_id=entry_id,
                )
            )
            logger.info(
                "collection_entry_reversed",
                extra={"entry_id": entry_id, "reversal_id": reversal.record_id},
            )
        return reversal

    def reprice_entry(
        self,
        entry_id: int,
        price_per_litre: Decimal,
        correction_date: date | None = None,
    ) -> EntryCorrection:
        """Reverse ``entry_id`` and record it again at a manual price."""
        price = to_decimal(price_per_litre)
        if price < ZERO:
            raise InvalidAmountError("price_per_litre", price)
        original = self._load(entry_id).to_domain()
        reversal = self.reverse_entry(entry_id, correction_date)
        replacement = self.record_entry(
            CollectionCandidate(
                customer_id=original.customer_id,
                entry_date=reversal.entry_date,
                shift=original.shift,
                milk_type=original.milk_type,
                quantity_litres=original.quantity_litres,
                fat_pct=original.fat_pct,
                snf_pct=original.snf_pct,
            ),
            manual_price=price,
        ).entry
        logger.info(
            "collection_entry_repriced",
            extra={
                "entry_id": entry_id,
                "reversal_id": reversal.record_id,
                "replacement_id": replacement.record_id,
                "old_price": str(original.price_per_litre),
                "new_price": str(replacement.price_per_litre),
            },
        )
        return EntryCorrection(reversal=reversal, replacement=replacement)

    def _load(self, entry_id: int) -> CollectionEntryModel:
        row = self._session.execute(
            select(CollectionEntryModel).where(CollectionEntryModel.seq == entry_id)
        ).scalar_one_or_none()
        if row is None:
            raise EntryNotFoundError(entry_id)
        return row

    def _store(self, entry: CollectionEntry) -> CollectionEntry:
        self._session.add(CollectionEntryModel.from_domain(entry))
        self._session.flush()
        logger.info(
            "collection_entry_recorded",
            extra={
                "customer_id": entry.customer_id,
                "entry_id": entry.record_id,
                "entry_date": entry.entry_date,
                "quantity_litres": str(entry.quantity_litres),
                "price_per_litre": str(entry.price_per_litre),
                "amount": str(entry.amount),
                "rate_source": entry.rate_source.value,
                "rate_rule_id": entry.rate_rule_id,
            },
        )
        return entry
