"""
Money Amount Rules -- tolerance-based comparison and classification.

Pure, no side effects.  These functions are the single source of truth for
"is this paid": every service classifies through classify() and tests
positivity through is_positive() instead of comparing with zero.

The tolerance absorbs rounding noise.  Its production value is exactly
Decimal("0.01"); it is a parameter so policy can change it.
"""

from dataclasses import dataclass
from decimal import Decimal

from installment_kernel.db.types import ZERO, as_money
from installment_kernel.domain.enums import PaymentStatus
from installment_kernel.domain.policy import DEFAULT_TOLERANCE


@dataclass(frozen=True)
class Classification:
    """Outcome of comparing a received amount with an expected one.

    remaining and excess are never both positive.
    """

    status: PaymentStatus
    remaining_amount: Decimal
    excess_amount: Decimal


def classify(
    actual: Decimal,
    expected: Decimal,
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> Classification:
    """
    Classify ``actual`` against ``expected``.

    |actual - expected| <= tolerance  -> PAID
    actual < expected - tolerance     -> UNDERPAID, remaining = expected - actual
    actual > expected + tolerance     -> OVERPAID, excess = actual - expected
    """
    actual = as_money(actual)
    expected = as_money(expected)
    diff = actual - expected
    if abs(diff) <= tolerance:
        return Classification(PaymentStatus.PAID, ZERO, ZERO)
    if diff < 0:
        return Classification(PaymentStatus.UNDERPAID, -diff, ZERO)
    return Classification(PaymentStatus.OVERPAID, ZERO, diff)


def is_positive(value: Decimal, tolerance: Decimal = DEFAULT_TOLERANCE) -> bool:
    """True when value exceeds the tolerance."""
    return as_money(value) > tolerance


def amounts_equal(
    a: Decimal,
    b: Decimal,
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> bool:
    return abs(as_money(a) - as_money(b)) <= tolerance


def covers(
    satisfied: Decimal,
    target: Decimal,
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> bool:
    """True when ``satisfied`` reaches ``target`` within tolerance."""
    return as_money(satisfied) >= as_money(target) - tolerance
