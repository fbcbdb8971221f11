"""
Module: dairy_engines.rate_resolver
Responsibility:
    Map a (milk type, fat%, SNF%) observation to a price per litre using a
    set of banded, possibly overlapping rate rules.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Rules are loaded by RateCardSelector and handed in at construction.

Invariants enforced:
    - Bands are half-open: ``min <= value < max``; a missing bound is
      unbounded on that side.
    - A missing measurement only satisfies a dimension the rule leaves
      fully unbounded.
    - Determinism: when several active rules match, the narrowest total
      band (fat width + SNF width, unbounded = infinity) wins, then the
      highest price, then the lowest rule_id.  The result does not depend
      on the order the rules were supplied in.

Failure modes:
    - NoMatchingRateRuleError when no active rule of the milk type covers
      the sample.
    - InvalidMeasurementError when fat or SNF is outside 0..100.

Audit relevance:
    An overlap is a data-quality problem in the rate card, not an error.
    It is logged as ``rate_rule_overlap`` with every candidate rule id so
    the card can be cleaned up.

Usage:
    resolver = RateResolver(rules)
    resolution = resolver.resolve(
        milk_type=MilkType.COW, fat_pct=Decimal("4.1"), snf_pct=Decimal("8.5"),
    )
    resolution.price_per_litre, resolution.rule_id
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from dairy_engines.tracer import traced_engine
from dairy_kernel.db.types import ZERO
from dairy_kernel.domain.records import MilkType, RateRule
from dairy_kernel.exceptions import InvalidMeasurementError, NoMatchingRateRuleError
from dairy_kernel.logging_config import get_logger

logger = get_logger("engines.rate_resolver")

_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class RateResolution:
    """The price chosen for one sample and the rule it came from."""

    price_per_litre: Decimal
    rule_id: int
    candidate_count: int = 1

    @property
    def had_overlap(self) -> bool:
        return self.candidate_count > 1


def tie_break_key(rule: RateRule) -> tuple[Decimal, Decimal, int]:
    """Sort key: narrowest band first, then highest price, then lowest id."""
    return (rule.band_width, -rule.price_per_litre, rule.rule_id)


def matching_rules(
    rules: Iterable[RateRule],
    milk_type: MilkType,
    fat_pct: Decimal | None,
    snf_pct: Decimal | None,
) -> list[RateRule]:
    """Active rules of ``milk_type`` covering the sample, best first."""
    candidates = [
        rule
        for rule in rules
        if rule.active and rule.milk_type == milk_type and rule.covers(fat_pct, snf_pct)
    ]
    candidates.sort(key=tie_break_key)
    return candidates


class RateResolver:
    """
    Resolve prices against a fixed set of rate rules.

    Contract:
        Pure; identical inputs always produce the identical resolution.
    Non-goals:
        - Does not load rules or price entries; CollectionService does.
        - Does not validate that the rule set is free of overlaps.
    """

    def __init__(self, rules: Iterable[RateRule]):
        self._rules: tuple[RateRule, ...] = tuple(rules)

    @property
    def rules(self) -> tuple[RateRule, ...]:
        return self._rules

    @traced_engine(
        "rate_resolver", "1.0", fingerprint_fields=("milk_type", "fat_pct", "snf_pct")
    )
    def resolve(
        self,
        milk_type: MilkType,
        fat_pct: Decimal | None = None,
        snf_pct: Decimal | None = None,
    ) -> RateResolution:
        """
        Pick the price for one sample.

        Raises:
            NoMatchingRateRuleError: no active rule covers the sample.
            InvalidMeasurementError: fat or SNF outside 0..100.
        """
        for name, value in (("fat_pct", fat_pct), ("snf_pct", snf_pct)):
            if value is not None and not (ZERO <= value <= _HUNDRED):
                raise InvalidMeasurementError(name, value)

        milk_type = MilkType(milk_type)
        candidates = matching_rules(self._rules, milk_type, fat_pct, snf_pct)

        if not candidates:
            logger.info(
                "rate_rule_no_match",
                extra={
                    "milk_type": milk_type.value,
                    "fat_pct": fat_pct,
                    "snf_pct": snf_pct,
                    "rules_considered": len(self._rules),
                },
            )
            raise NoMatchingRateRuleError(milk_type.value, fat_pct, snf_pct)

        chosen = candidates[0]
        if len(candidates) > 1:
            logger.warning(
                "rate_rule_overlap",
                extra={
                    "milk_type": milk_type.value,
                    "fat_pct": fat_pct,
                    "snf_pct": snf_pct,
                    "candidate_rule_ids": [rule.rule_id for rule in candidates],
                    "chosen_rule_id": chosen.rule_id,
                },
            )

        return RateResolution(
            price_per_litre=chosen.price_per_litre,
            rule_id=chosen.rule_id,
            candidate_count=len(candidates),
        )
