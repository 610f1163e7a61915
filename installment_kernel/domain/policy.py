"""
ReconciliationPolicy -- the business constants the engine runs under.

The tolerance, the monthly-change limit and the pending timeout are policy
choices, not derived correctness requirements, so they travel as one frozen
value object injected into services.  The kernel never reads configuration
files; installment_config builds this object (see installment_config.bridges).
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

DEFAULT_TOLERANCE = Decimal("0.01")
DEFAULT_MAX_MONTHLY_CHANGE_RATIO = Decimal("0.5")
DEFAULT_PENDING_TIMEOUT_HOURS = 24
DEFAULT_MAX_SINGLE_PAYMENT = Decimal("100000")

# Actor recorded for automatic transitions (expired-payment sweep)
SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000000")


@dataclass(frozen=True)
class ReconciliationPolicy:
    """Immutable engine policy.  Defaults match the production constants."""

    tolerance: Decimal = DEFAULT_TOLERANCE
    max_monthly_change_ratio: Decimal = DEFAULT_MAX_MONTHLY_CHANGE_RATIO
    pending_timeout_hours: int = DEFAULT_PENDING_TIMEOUT_HOURS
    max_single_payment: Decimal = DEFAULT_MAX_SINGLE_PAYMENT
    system_actor_id: UUID = SYSTEM_ACTOR_ID

    def __post_init__(self) -> None:
        if self.tolerance < 0:
            raise ValueError("tolerance must be non-negative")
        if self.max_monthly_change_ratio <= 0:
            raise ValueError("max_monthly_change_ratio must be positive")
        if self.pending_timeout_hours <= 0:
            raise ValueError("pending_timeout_hours must be positive")
        if self.max_single_payment <= 0:
            raise ValueError("max_single_payment must be positive")


DEFAULT_POLICY = ReconciliationPolicy()
