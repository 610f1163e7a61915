"""
Contract terms and the rules an edit to them must satisfy.

Validation collects every violation before anything is written; an edit is
applied whole or not at all.
"""

from dataclasses import dataclass, replace
from decimal import Decimal

from installment_kernel.db.types import as_money
from installment_kernel.domain.policy import DEFAULT_MAX_MONTHLY_CHANGE_RATIO


@dataclass(frozen=True)
class ContractTerms:
    total_price: Decimal
    initial_payment: Decimal
    monthly_payment: Decimal


@dataclass(frozen=True)
class TermChanges:
    """Requested new values.  None means unchanged."""

    monthly_payment: Decimal | None = None
    initial_payment: Decimal | None = None
    total_price: Decimal | None = None

    def __post_init__(self) -> None:
        for name in ("monthly_payment", "initial_payment", "total_price"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, as_money(value))

    def changed_fields(self, current: ContractTerms) -> dict[str, tuple[Decimal, Decimal]]:
        """Fields whose new value differs from ``current``: name -> (old, new)."""
        diffs = {}
        for name in ("monthly_payment", "initial_payment", "total_price"):
            new = getattr(self, name)
            old = getattr(current, name)
            if new is not None and new != old:
                diffs[name] = (old, new)
        return diffs

    def apply_to(self, current: ContractTerms) -> ContractTerms:
        values = {
            name: getattr(self, name)
            for name in ("monthly_payment", "initial_payment", "total_price")
            if getattr(self, name) is not None
        }
        return replace(current, **values)


def validate_term_changes(
    current: ContractTerms,
    changes: TermChanges,
    max_monthly_change_ratio: Decimal = DEFAULT_MAX_MONTHLY_CHANGE_RATIO,
) -> list[str]:
    """Return every rule the edit breaks.  An empty list means valid."""
    violations: list[str] = []

    for name in ("monthly_payment", "initial_payment", "total_price"):
        value = getattr(changes, name)
        if value is not None and value < 0:
            violations.append(f"{name} must not be negative")

    old_monthly = current.monthly_payment
    new_monthly = changes.monthly_payment
    if new_monthly is not None and old_monthly > 0 and new_monthly > 0:
        change_ratio = abs(new_monthly - old_monthly) / old_monthly
        if change_ratio > max_monthly_change_ratio:
            violations.append(
                f"monthly_payment change of {change_ratio:.0%} exceeds the "
                f"{max_monthly_change_ratio:.0%} limit"
            )

    result = changes.apply_to(current)
    if result.total_price <= result.initial_payment:
        violations.append("total_price must be greater than initial_payment")

    return violations
