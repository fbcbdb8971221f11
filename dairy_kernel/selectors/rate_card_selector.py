"""
Module: dairy_kernel.selectors.rate_card_selector
Responsibility: Read access to stored rate rules as domain RateRule records,
    and construction of a RateResolver over the active card.
Architecture position: Kernel > Selectors.  Read-only.
"""

from __future__ import annotations

from sqlalchemy import select

from dairy_engines.rate_resolver import RateResolver
from dairy_kernel.domain.records import MilkType, RateRule
from dairy_kernel.exceptions import RateRuleNotFoundError
from dairy_kernel.models.rate_rule import RateRuleModel
from dairy_kernel.selectors.base import BaseSelector


class RateCardSelector(BaseSelector[RateRuleModel]):
    """Query the rate card."""

    def get(self, rule_id: int) -> RateRule:
        row = self.session.execute(
            select(RateRuleModel).where(RateRuleModel.seq == rule_id)
        ).scalar_one_or_none()
        if row is None:
            raise RateRuleNotFoundError(rule_id)
        return row.to_domain()

    def active_rules(self, milk_type: MilkType | None = None) -> list[RateRule]:
        """Active rules in rule_id order, optionally for one milk type."""
        query = select(RateRuleModel).where(RateRuleModel.active.is_(True))
        if milk_type is not None:
            query = query.where(RateRuleModel.milk_type == MilkType(milk_type).value)
        rows = self.session.execute(query.order_by(RateRuleModel.seq)).scalars()
        return [row.to_domain() for row in rows]

    def all_rules(self) -> list[RateRule]:
        rows = self.session.execute(
            select(RateRuleModel).order_by(RateRuleModel.seq)
        ).scalars()
        return [row.to_domain() for row in rows]

    def resolver(self, milk_type: MilkType | None = None) -> RateResolver:
        return RateResolver(self.active_rules(milk_type))
