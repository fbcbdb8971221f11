"""Read-only selectors over the stored ledger."""

from dairy_kernel.selectors.base import BaseSelector
from dairy_kernel.selectors.passbook_selector import CustomerRecords, PassbookSelector
from dairy_kernel.selectors.rate_card_selector import RateCardSelector

__all__ = [
    "BaseSelector",
    "CustomerRecords",
    "PassbookSelector",
    "RateCardSelector",
]
