"""
SequenceService -- monotonic record id allocation via locked counter rows.

Responsibility:
    Provides strictly increasing integer ids for every stored record type.
    These ids are the ``record_id`` used to break ordering ties in the
    passbook, so they must never be reused or reordered.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by every service that inserts a ledger fact or rate rule.

Invariants enforced:
    - Monotonicity: the locked counter row is the sole source of truth for
      the next value.  The aggregate-max-plus-one pattern is never used.
    - Transactional: the increment is only visible after the caller's
      transaction commits.  Rollback returns the value.

Failure modes:
    - IntegrityError if two transactions create the same missing counter
      at once.  create_tables() seeds every counter, so this only happens
      against a schema created some other way.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from dairy_kernel.logging_config import get_logger
from dairy_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Contract:
        Accepts a sequence name and returns the next strictly-monotonic
        integer value.

    Guarantees:
        - ``SELECT ... FOR UPDATE`` serializes concurrent allocations for the
          same sequence on PostgreSQL.  SQLite serializes writers itself.

    Non-goals:
        - Does NOT call ``session.commit()``.

    Usage:
        with session_scope() as session:
            record_id = SequenceService(session).next_value(COLLECTION_ENTRY_SEQUENCE)
    """

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        Preconditions:
            - The caller is within an active database transaction.

        Postconditions:
            - Returns an integer > 0 strictly greater than any value
              previously returned for ``sequence_name``.
            - The counter row stays locked until the transaction completes.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            counter = SequenceCounter(name=sequence_name, current_value=0)
            self._session.add(counter)
            logger.debug(
                "sequence_counter_created",
                extra={"sequence_name": sequence_name},
            )

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value of a sequence without incrementing, or None if unused."""
        return self._session.execute(
            select(SequenceCounter.current_value).where(
                SequenceCounter.name == sequence_name
            )
        ).scalar_one_or_none()
