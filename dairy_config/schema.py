"""
Ledger configuration schema.

Frozen dataclasses that the loader parses YAML into.  Rate cards are
declared either as explicit rules or as series: evenly spaced fat bands
whose price is ``base_rate + midpoint_fat * per_fat``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from dairy_kernel.db.types import round_money

# ---------------------------------------------------------------------------
# Rate card
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RateRuleDef:
    """One configured rate band."""

    milk_type: str
    price_per_litre: Decimal
    fat_min: Decimal | None = None
    fat_max: Decimal | None = None
    snf_min: Decimal | None = None
    snf_max: Decimal | None = None
    label: str | None = None


@dataclass(frozen=True)
class RateSeriesDef:
    """Fat bands from ``fat_from`` to ``fat_to`` in steps of ``step``."""

    milk_type: str
    fat_from: Decimal
    fat_to: Decimal
    step: Decimal
    base_rate: Decimal
    per_fat: Decimal
    snf_min: Decimal | None = None
    snf_max: Decimal | None = None

    def __post_init__(self) -> None:
        if self.step <= 0:
            raise ValueError(f"Series step must be positive, got {self.step}")
        if self.fat_to <= self.fat_from:
            raise ValueError(
                f"Series fat_to ({self.fat_to}) must exceed fat_from ({self.fat_from})"
            )

    def expand(self) -> tuple[RateRuleDef, ...]:
        rules: list[RateRuleDef] = []
        lower = self.fat_from
        while lower < self.fat_to:
            upper = min(lower + self.step, self.fat_to)
            midpoint = (lower + upper) / 2
            rules.append(
                RateRuleDef(
                    milk_type=self.milk_type,
                    price_per_litre=round_money(self.base_rate + midpoint * self.per_fat),
                    fat_min=lower,
                    fat_max=upper,
                    snf_min=self.snf_min,
                    snf_max=self.snf_max,
                    label=f"{self.milk_type} fat {lower}-{upper}",
                )
            )
            lower = upper
        return tuple(rules)


@dataclass(frozen=True)
class RateCardDef:
    """A named rate card."""

    name: str
    rules: tuple[RateRuleDef, ...] = field(default_factory=tuple)
    series: tuple[RateSeriesDef, ...] = field(default_factory=tuple)

    def all_rules(self) -> tuple[RateRuleDef, ...]:
        """Explicit rules followed by every expanded series."""
        expanded: list[RateRuleDef] = list(self.rules)
        for series in self.series:
            expanded.extend(series.expand())
        return tuple(expanded)


# ---------------------------------------------------------------------------
# Runtime settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite+pysqlite:///dairy_ledger.db"
    echo: bool = False
    pool_size: int = 10


@dataclass(frozen=True)
class LedgerSettings:
    currency: str = "INR"
    log_level: str = "INFO"


@dataclass(frozen=True)
class LedgerConfig:
    """The loaded configuration.  ``checksum`` identifies its source."""

    config_id: str
    version: int
    settings: LedgerSettings
    database: DatabaseSettings
    rate_card: RateCardDef
    checksum: str
