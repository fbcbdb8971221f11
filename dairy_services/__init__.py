"""
dairy_services -- orchestration over the kernel and the pure engines.

    CollectionService   -- write-time pricing and entry corrections
    SettlementService   -- cash payments and advance draws
    StatementService    -- passbook windows and monthly statements
"""

from dairy_services.collection_service import (
    CollectionCandidate,
    CollectionService,
    EntryCorrection,
    PricedEntry,
)
from dairy_services.settlement_service import SettlementRequest, SettlementService
from dairy_services.statement_service import StatementService

__all__ = [
    "CollectionCandidate",
    "CollectionService",
    "EntryCorrection",
    "PricedEntry",
    "SettlementRequest",
    "SettlementService",
    "StatementService",
]
