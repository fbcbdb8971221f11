"""Pure domain layer: immutable ledger records and the clock abstraction."""

from dairy_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from dairy_kernel.domain.records import (
    Advance,
    AdvanceDraw,
    AdvanceStatus,
    AdvanceUtilization,
    CollectionEntry,
    ExternalPayment,
    FundingSource,
    MilkType,
    Payment,
    PaymentMode,
    RateRule,
    RateSource,
    Shift,
    price_amount,
)

__all__ = [
    "Advance",
    "AdvanceDraw",
    "AdvanceStatus",
    "AdvanceUtilization",
    "Clock",
    "CollectionEntry",
    "DeterministicClock",
    "ExternalPayment",
    "FundingSource",
    "MilkType",
    "Payment",
    "PaymentMode",
    "RateRule",
    "RateSource",
    "Shift",
    "SystemClock",
    "price_amount",
]
