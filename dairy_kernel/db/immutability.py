"""
ORM-level immutability enforcement for stored ledger facts.

===============================================================================
WHY THIS EXISTS
===============================================================================

A passbook is only trustworthy if what it was compiled from cannot change
underneath it.  Collection entries, external payments and advance
utilizations are append-only: a wrong entry is corrected by a compensating
entry, never by an edit.  Advances are the one mutable fact, and they only
move forward.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events and check the rules:

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_*_delete() ---------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity              | Rule
--------------------|----------------------------------------------------------
CollectionEntry     | No UPDATE, no DELETE
Payment             | No UPDATE, no DELETE
AdvanceUtilization  | No UPDATE, no DELETE
Advance             | customer/principal/issued_date frozen; utilized_amount
                    | never decreases or exceeds principal; cancelled is
                    | terminal; no DELETE

Rate rules are administrative data and are not protected here.

===============================================================================
USAGE
===============================================================================

    from dairy_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

To temporarily disable (TESTS ONLY):

    from dairy_kernel.db.immutability import unregister_immutability_listeners
    unregister_immutability_listeners()
"""

from decimal import Decimal

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from dairy_kernel.exceptions import ImmutabilityViolationError
from dairy_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"created_at"})
_ADVANCE_FROZEN_FIELDS = ("customer_id", "principal", "issued_date", "seq")


def _blocked(entity_type: str, target, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.seq),
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.seq),
        reason=reason,
    )


def _changed_fields(target) -> list[str]:
    return [
        attr.key
        for attr in inspect(target).attrs
        if attr.key not in _AUDIT_FIELDS and attr.history.has_changes()
    ]


def _append_only_update(entity_type: str):
    def check(mapper, connection, target):
        changed = _changed_fields(target)
        if changed:
            _blocked(
                entity_type,
                target,
                "UPDATE",
                f"Cannot modify field '{changed[0]}' on a stored {entity_type}",
                field=changed[0],
            )

    check.__name__ = f"_check_{entity_type.lower()}_immutability"
    return check


def _append_only_delete(entity_type: str):
    def check(mapper, connection, target):
        _blocked(
            entity_type,
            target,
            "DELETE",
            f"{entity_type} records cannot be deleted; record a compensation instead",
        )

    check.__name__ = f"_check_{entity_type.lower()}_delete"
    return check


_check_collection_entry_immutability = _append_only_update("CollectionEntry")
_check_collection_entry_delete = _append_only_delete("CollectionEntry")
_check_payment_immutability = _append_only_update("Payment")
_check_payment_delete = _append_only_delete("Payment")
_check_utilization_immutability = _append_only_update("AdvanceUtilization")
_check_utilization_delete = _append_only_delete("AdvanceUtilization")


def _old_value(target, key: str):
    history = get_history(target, key)
    if history.deleted:
        return history.deleted[0]
    return getattr(target, key)


def _check_advance_immutability(mapper, connection, target):
    """
    Advances only move forward.

    Allowed: utilized_amount increasing up to principal, status moving
    ACTIVE -> EXHAUSTED and anything -> CANCELLED, note edits.
    """
    for key in _ADVANCE_FROZEN_FIELDS:
        if get_history(target, key).has_changes():
            _blocked("Advance", target, "UPDATE", f"Cannot modify field '{key}'", field=key)

    old_status = _old_value(target, "status")
    if old_status == "cancelled" and get_history(target, "status").has_changes():
        _blocked("Advance", target, "UPDATE", "A cancelled advance cannot be reopened", "status")
    if old_status == "cancelled" and get_history(target, "utilized_amount").has_changes():
        _blocked(
            "Advance", target, "UPDATE",
            "Utilization of a cancelled advance is frozen", "utilized_amount",
        )

    utilized_history = get_history(target, "utilized_amount")
    if utilized_history.has_changes():
        old = Decimal(utilized_history.deleted[0]) if utilized_history.deleted else Decimal(0)
        new = Decimal(target.utilized_amount)
        if new < old:
            _blocked(
                "Advance", target, "UPDATE",
                f"utilized_amount cannot decrease ({old} -> {new})", "utilized_amount",
            )
        if new > Decimal(target.principal):
            _blocked(
                "Advance", target, "UPDATE",
                f"utilized_amount {new} exceeds principal {target.principal}",
                "utilized_amount",
            )


def _check_advance_delete(mapper, connection, target):
    _blocked("Advance", target, "DELETE", "Advances cannot be deleted; cancel instead")


def _listeners():
    from dairy_kernel.models import (
        AdvanceModel,
        AdvanceUtilizationModel,
        CollectionEntryModel,
        PaymentModel,
    )

    return (
        (CollectionEntryModel, "before_update", _check_collection_entry_immutability),
        (CollectionEntryModel, "before_delete", _check_collection_entry_delete),
        (PaymentModel, "before_update", _check_payment_immutability),
        (PaymentModel, "before_delete", _check_payment_delete),
        (AdvanceUtilizationModel, "before_update", _check_utilization_immutability),
        (AdvanceUtilizationModel, "before_delete", _check_utilization_delete),
        (AdvanceModel, "before_update", _check_advance_immutability),
        (AdvanceModel, "before_delete", _check_advance_delete),
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Idempotent.  Call once during application initialization, after the
    models are importable and before any database writes.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
