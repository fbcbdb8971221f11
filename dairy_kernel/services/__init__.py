"""Kernel write-side services.  All flush; none commit."""

from dairy_kernel.services.advance_ledger import AdvanceLedger, AdvanceSummary
from dairy_kernel.services.base import BaseService
from dairy_kernel.services.rate_card_service import RateCardService
from dairy_kernel.services.sequence_service import SequenceService

__all__ = [
    "AdvanceLedger",
    "AdvanceSummary",
    "BaseService",
    "RateCardService",
    "SequenceService",
]
