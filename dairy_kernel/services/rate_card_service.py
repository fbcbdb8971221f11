"""
RateCardService -- administration of banded rate rules.

Responsibility:
    Creates, revises and deactivates rate rules, and loads a whole rate
    card from configuration.

Architecture position:
    Kernel > Services -- imperative shell.  Reads go through
    RateCardSelector; pricing happens in RateResolver.

Invariants enforced:
    - Every stored rule passes RateRule validation (non-empty bands,
      positive price) before insert.
    - Revisions never edit a rule in place.  The old rule is deactivated
      and points at its replacement, so entries priced under it keep an
      accurate ``rate_rule_id``.
    - Loading a card is idempotent: a definition identical to an active
      rule is skipped.

Failure modes:
    - InvalidRateRuleError: empty band or non-positive price.
    - RateRuleNotFoundError: unknown rule_id.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.orm import Session

from dairy_kernel.db.types import to_decimal
from dairy_kernel.domain.records import MilkType, RateRule
from dairy_kernel.exceptions import InvalidRateRuleError, RateRuleNotFoundError
from dairy_kernel.logging_config import get_logger
from dairy_kernel.models.rate_rule import RateRuleModel
from dairy_kernel.models.sequence import RATE_RULE_SEQUENCE
from dairy_kernel.services.base import BaseService
from dairy_kernel.services.sequence_service import SequenceService

if TYPE_CHECKING:
    from dairy_config.schema import RateRuleDef

logger = get_logger("services.rate_card")


def _optional_decimal(value) -> Decimal | None:
    return None if value is None else to_decimal(value)


class RateCardService(BaseService[RateRuleModel]):
    """Write side of the rate card."""

    def __init__(self, session: Session, sequence_service: SequenceService | None = None):
        super().__init__(session)
        self._sequences = sequence_service or SequenceService(session)

    def create_rule(
        self,
        milk_type: MilkType | str,
        price_per_litre,
        fat_min=None,
        fat_max=None,
        snf_min=None,
        snf_max=None,
        label: str | None = None,
    ) -> RateRule:
        """Validate and store a new active rule."""
        try:
            milk = MilkType(milk_type)
        except ValueError as exc:
            raise InvalidRateRuleError(f"unknown milk type {milk_type!r}") from exc

        # Validate before consuming a rule id
        candidate = RateRule(
            rule_id=0,
            milk_type=milk,
            price_per_litre=to_decimal(price_per_litre),
            fat_min=_optional_decimal(fat_min),
            fat_max=_optional_decimal(fat_max),
            snf_min=_optional_decimal(snf_min),
            snf_max=_optional_decimal(snf_max),
        )

        rule_id = self._sequences.next_value(RATE_RULE_SEQUENCE)
        row = RateRuleModel(
            seq=rule_id,
            milk_type=milk.value,
            fat_min=candidate.fat_min,
            fat_max=candidate.fat_max,
            snf_min=candidate.snf_min,
            snf_max=candidate.snf_max,
            price_per_litre=candidate.price_per_litre,
            active=True,
            label=label,
        )
        self.session.add(row)
        self.session.flush()

        logger.info(
            "rate_rule_created",
            extra={
                "rule_id": rule_id,
                "milk_type": milk.value,
                "fat_band": [candidate.fat_min, candidate.fat_max],
                "snf_band": [candidate.snf_min, candidate.snf_max],
                "price_per_litre": str(candidate.price_per_litre),
            },
        )
        return row.to_domain()

    def revise_rule(self, rule_id: int, price_per_litre) -> RateRule:
        """Replace an active rule's price with a new rule; returns the new rule."""
        old = self._row(rule_id)
        if not old.active:
            raise InvalidRateRuleError("only an active rule can be revised", rule_id)

        replacement = self.create_rule(
            milk_type=old.milk_type,
            price_per_litre=price_per_litre,
            fat_min=old.fat_min,
            fat_max=old.fat_max,
            snf_min=old.snf_min,
            snf_max=old.snf_max,
            label=old.label,
        )
        old.active = False
        old.superseded_by = replacement.rule_id
        self.session.flush()

        logger.info(
            "rate_rule_revised",
            extra={
                "rule_id": rule_id,
                "replacement_rule_id": replacement.rule_id,
                "old_price": str(old.price_per_litre),
                "new_price": str(replacement.price_per_litre),
            },
        )
        return replacement

    def deactivate_rule(self, rule_id: int) -> RateRule:
        """Stop a rule from matching.  Idempotent."""
        row = self._row(rule_id)
        if row.active:
            row.active = False
            self.session.flush()
            logger.info("rate_rule_deactivated", extra={"rule_id": rule_id})
        return row.to_domain()

    def load_rate_card(
        self,
        definitions: Iterable[RateRuleDef],
        replace: bool = False,
    ) -> list[RateRule]:
        """
        Store every rule of a configured rate card.

        With ``replace`` the currently active rules of the card's milk
        types are deactivated first.  Returns the rules actually created.
        """
        definitions = list(definitions)
        if replace:
            milk_types = {MilkType(d.milk_type).value for d in definitions}
            for row in self._active_rows():
                if row.milk_type in milk_types:
                    row.active = False
            self.session.flush()

        existing = {self._signature_of_row(row) for row in self._active_rows()}
        created: list[RateRule] = []
        skipped = 0
        for definition in definitions:
            signature = self._signature_of_def(definition)
            if signature in existing:
                skipped += 1
                continue
            created.append(
                self.create_rule(
                    milk_type=definition.milk_type,
                    price_per_litre=definition.price_per_litre,
                    fat_min=definition.fat_min,
                    fat_max=definition.fat_max,
                    snf_min=definition.snf_min,
                    snf_max=definition.snf_max,
                    label=definition.label,
                )
            )
            existing.add(signature)

        logger.info(
            "rate_card_loaded",
            extra={"created_count": len(created), "skipped": skipped, "replace": replace},
        )
        return created

    def _row(self, rule_id: int) -> RateRuleModel:
        row = self.session.execute(
            select(RateRuleModel).where(RateRuleModel.seq == rule_id)
        ).scalar_one_or_none()
        if row is None:
            raise RateRuleNotFoundError(rule_id)
        return row

    def _active_rows(self) -> list[RateRuleModel]:
        return list(
            self.session.execute(
                select(RateRuleModel).where(RateRuleModel.active.is_(True))
            ).scalars()
        )

    @staticmethod
    def _signature_of_row(row: RateRuleModel) -> tuple:
        return (
            row.milk_type,
            _optional_decimal(row.fat_min),
            _optional_decimal(row.fat_max),
            _optional_decimal(row.snf_min),
            _optional_decimal(row.snf_max),
            to_decimal(row.price_per_litre),
        )

    @staticmethod
    def _signature_of_def(definition: RateRuleDef) -> tuple:
        return (
            MilkType(definition.milk_type).value,
            _optional_decimal(definition.fat_min),
            _optional_decimal(definition.fat_max),
            _optional_decimal(definition.snf_min),
            _optional_decimal(definition.snf_max),
            to_decimal(definition.price_per_litre),
        )
