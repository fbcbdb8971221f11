"""
Module: dairy_kernel.db.types
Responsibility: Precision constants and utility functions for money and
    measurement values.  Centralizes precision and rounding so that every
    model and service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, selectors/ and engines.  MUST NOT import from any of those.

Invariants enforced:
    - round_money() is the ONLY sanctioned rounding function for settled
      amounts.  Collection amounts are quantity x price rounded half-up to
      AMOUNT_DECIMAL_PLACES.
    - No floats.  All amounts, litres and percentages are Decimal.

Failure modes:
    - decimal.InvalidOperation on a non-numeric string passed to to_decimal().
"""

from decimal import ROUND_HALF_UP, Decimal

from dairy_kernel.exceptions import InvalidAmountError

# Settlement precision (paise)
AMOUNT_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    """
    Convert an int, str or Decimal to Decimal.

    Floats are routed through ``str`` so that 4.1 becomes Decimal("4.1")
    rather than its binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_money(
    value: Decimal,
    decimal_places: int = AMOUNT_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the settlement precision.

    Preconditions: value is a Decimal.
    Postconditions: Returns value quantized to ``decimal_places`` using
        ``rounding`` (default ROUND_HALF_UP).
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places else "1"
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def settled_amount(field: str, value) -> Decimal:
    """
    Validate an amount of money handed over or drawn.

    Returns the amount at settlement precision.  Nothing is rounded: an
    amount with fractions of a paisa is rejected.

    Raises:
        InvalidAmountError: value <= 0 or finer than AMOUNT_DECIMAL_PLACES.
    """
    amount = to_decimal(value)
    if amount <= ZERO:
        raise InvalidAmountError(field, value)
    settled = round_money(amount)
    if settled != amount:
        raise InvalidAmountError(field, value, "has fractions of a paisa")
    return settled
