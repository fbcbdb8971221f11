"""ORM models for the dairy settlement ledger."""

from dairy_kernel.models.advance import AdvanceModel, AdvanceUtilizationModel
from dairy_kernel.models.collection import CollectionEntryModel
from dairy_kernel.models.payment import PaymentModel
from dairy_kernel.models.rate_rule import RateRuleModel
from dairy_kernel.models.sequence import SequenceCounter, sequence_names

__all__ = [
    "AdvanceModel",
    "AdvanceUtilizationModel",
    "CollectionEntryModel",
    "PaymentModel",
    "RateRuleModel",
    "SequenceCounter",
    "sequence_names",
]
