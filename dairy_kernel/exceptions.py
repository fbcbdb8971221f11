"""
Typed Exception Hierarchy for the Dairy Settlement Ledger.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Settlement errors must be handled precisely. A rejected advance draw and an
unpriced milk sample call for very different operator actions, and callers
must not parse message strings to tell them apart.

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        settlement_service.settle(request)
    except InsufficientAdvanceBalanceError as e:
        offer_smaller_draw(e.available)
        api_response(code=e.code, requested=e.requested)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from DairyLedgerError:

    DairyLedgerError (base)
    |
    +-- ValidationError
    |   +-- InvalidAmountError
    |   +-- InvalidQuantityError
    |   +-- InvalidMeasurementError
    |
    +-- RateError
    |   +-- NoMatchingRateRuleError
    |   +-- InvalidRateRuleError
    |   +-- RateRuleNotFoundError
    |
    +-- AdvanceError
    |   +-- AdvanceNotFoundError
    |   +-- InsufficientAdvanceBalanceError
    |   +-- AdvanceCancelledError
    |
    +-- WindowError
    |   +-- InvalidWindowError
    |   +-- WindowReconciliationError
    |
    +-- CorrectionError
    |   +-- EntryNotFoundError
    |   +-- PaymentNotFoundError
    |   +-- AlreadyReversedError
    |   +-- CorrectionNotAllowedError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|---------------------------------------
Validation      | INVALID_AMOUNT                | Principal/payment/draw amount <= 0
                | INVALID_QUANTITY              | Negative litres
                | INVALID_MEASUREMENT           | Fat/SNF outside 0..100
----------------|-------------------------------|---------------------------------------
Rate            | NO_MATCHING_RATE_RULE         | No active band covers the sample
                | INVALID_RATE_RULE             | Empty band or bad price
                | RATE_RULE_NOT_FOUND           | Rule ID doesn't exist
----------------|-------------------------------|---------------------------------------
Advance         | ADVANCE_NOT_FOUND             | Advance ID doesn't exist
                | INSUFFICIENT_ADVANCE_BALANCE  | Draw exceeds available advance
                | ADVANCE_CANCELLED             | Draw against a cancelled advance
----------------|-------------------------------|---------------------------------------
Window          | INVALID_WINDOW                | to < from
                | WINDOW_RECONCILIATION_FAILED  | closing(N) != opening(N+1)
----------------|-------------------------------|---------------------------------------
Correction      | ENTRY_NOT_FOUND               | Collection entry ID doesn't exist
                | PAYMENT_NOT_FOUND             | Payment ID doesn't exist
                | ALREADY_REVERSED              | Record already has a compensation
                | CORRECTION_NOT_ALLOWED        | Record kind cannot be compensated
----------------|-------------------------------|---------------------------------------
Immutability    | IMMUTABILITY_VIOLATION        | UPDATE/DELETE of a stored fact

None of these are transient. The engine never retries them; they indicate
bad input or a business conflict the caller must resolve.
"""


class DairyLedgerError(Exception):
    """
    Base exception for all dairy ledger errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "DAIRY_LEDGER_ERROR"


# Validation exceptions


class ValidationError(DairyLedgerError):
    """Base exception for input validation failures."""

    code: str = "VALIDATION_ERROR"


class InvalidAmountError(ValidationError):
    """A monetary amount was zero, negative, or finer than one paisa."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, amount, reason: str = "must be positive"):
        self.field = field
        self.amount = str(amount)
        self.reason = reason
        super().__init__(f"{field} {reason}, got {amount}")


class InvalidQuantityError(ValidationError):
    """Collected quantity was negative."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity):
        self.quantity = str(quantity)
        super().__init__(f"Quantity cannot be negative, got {quantity} L")


class InvalidMeasurementError(ValidationError):
    """Fat or SNF percentage outside the physical 0..100 range."""

    code: str = "INVALID_MEASUREMENT"

    def __init__(self, measurement: str, value):
        self.measurement = measurement
        self.value = str(value)
        super().__init__(f"{measurement} must be within 0..100, got {value}")


# Rate exceptions


class RateError(DairyLedgerError):
    """Base exception for rate card errors."""

    code: str = "RATE_ERROR"


class NoMatchingRateRuleError(RateError):
    """
    No active rate rule covers the observed sample.

    The caller must surface this to an operator. The collection service
    stores the entry at price 0 with a review flag; it never falls back
    to some other rate.
    """

    code: str = "NO_MATCHING_RATE_RULE"

    def __init__(self, milk_type: str, fat_pct, snf_pct):
        self.milk_type = milk_type
        self.fat_pct = None if fat_pct is None else str(fat_pct)
        self.snf_pct = None if snf_pct is None else str(snf_pct)
        super().__init__(
            f"No active rate rule for {milk_type} fat={fat_pct} snf={snf_pct}"
        )


class InvalidRateRuleError(RateError):
    """Rate rule definition is unusable (empty band or bad price)."""

    code: str = "INVALID_RATE_RULE"

    def __init__(self, reason: str, rule_id: int | None = None):
        self.rule_id = rule_id
        self.reason = reason
        super().__init__(f"Invalid rate rule {rule_id}: {reason}")


class RateRuleNotFoundError(RateError):
    """Rate rule with given ID was not found."""

    code: str = "RATE_RULE_NOT_FOUND"

    def __init__(self, rule_id: int):
        self.rule_id = rule_id
        super().__init__(f"Rate rule not found: {rule_id}")


# Advance exceptions


class AdvanceError(DairyLedgerError):
    """Base exception for advance ledger errors."""

    code: str = "ADVANCE_ERROR"


class AdvanceNotFoundError(AdvanceError):
    """Advance with given ID was not found."""

    code: str = "ADVANCE_NOT_FOUND"

    def __init__(self, advance_id: int):
        self.advance_id = advance_id
        super().__init__(f"Advance not found: {advance_id}")


class InsufficientAdvanceBalanceError(AdvanceError):
    """
    Requested draw exceeds the usable advance balance.

    Rejected as a whole -- the ledger never performs a partial draw.
    """

    code: str = "INSUFFICIENT_ADVANCE_BALANCE"

    def __init__(self, customer_id: str, requested, available):
        self.customer_id = customer_id
        self.requested = str(requested)
        self.available = str(available)
        super().__init__(
            f"Advance draw of {requested} for customer {customer_id} "
            f"exceeds available balance {available}"
        )


class AdvanceCancelledError(AdvanceError):
    """Utilization attempted against a cancelled advance."""

    code: str = "ADVANCE_CANCELLED"

    def __init__(self, advance_id: int):
        self.advance_id = advance_id
        super().__init__(f"Advance {advance_id} is cancelled")


# Window exceptions


class WindowError(DairyLedgerError):
    """Base exception for statement window errors."""

    code: str = "WINDOW_ERROR"


class InvalidWindowError(WindowError):
    """Window end precedes its start."""

    code: str = "INVALID_WINDOW"

    def __init__(self, start, end, reason: str | None = None):
        self.start = str(start)
        self.end = str(end)
        self.reason = reason or "end precedes start"
        super().__init__(f"Invalid window [{start}, {end}]: {self.reason}")


class WindowReconciliationError(WindowError):
    """Successive statements do not chain."""

    code: str = "WINDOW_RECONCILIATION_FAILED"

    def __init__(self, position: int, expected, actual, reason: str):
        self.position = position
        self.expected = str(expected)
        self.actual = str(actual)
        self.reason = reason
        super().__init__(
            f"Statement {position} does not reconcile: {reason} "
            f"(expected {expected}, got {actual})"
        )


# Correction exceptions


class CorrectionError(DairyLedgerError):
    """Base exception for compensating-entry errors."""

    code: str = "CORRECTION_ERROR"


class EntryNotFoundError(CorrectionError):
    """Collection entry with given ID was not found."""

    code: str = "ENTRY_NOT_FOUND"

    def __init__(self, entry_id: int):
        self.entry_id = entry_id
        super().__init__(f"Collection entry not found: {entry_id}")


class PaymentNotFoundError(CorrectionError):
    """Payment with given ID was not found."""

    code: str = "PAYMENT_NOT_FOUND"

    def __init__(self, payment_id: int):
        self.payment_id = payment_id
        super().__init__(f"Payment not found: {payment_id}")


class AlreadyReversedError(CorrectionError):
    """Record already has a compensating entry."""

    code: str = "ALREADY_REVERSED"

    def __init__(self, record_type: str, record_id: int, reversal_id: int):
        self.record_type = record_type
        self.record_id = record_id
        self.reversal_id = reversal_id
        super().__init__(
            f"{record_type} {record_id} already reversed by {reversal_id}"
        )


class CorrectionNotAllowedError(CorrectionError):
    """Record cannot be compensated (e.g. is itself a reversal)."""

    code: str = "CORRECTION_NOT_ALLOWED"

    def __init__(self, record_type: str, record_id, reason: str):
        self.record_type = record_type
        self.record_id = record_id
        self.reason = reason
        super().__init__(f"Cannot correct {record_type} {record_id}: {reason}")


# Immutability exceptions


class ImmutabilityError(DairyLedgerError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Collection entries, payments and advance utilizations are immutable
    from creation; advances only move forward.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
