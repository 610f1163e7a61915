"""Pure domain core: amount rules, schedule arithmetic, planners, policy."""

from installment_kernel.domain.amounts import (
    Classification,
    amounts_equal,
    classify,
    covers,
    is_positive,
)
from installment_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from installment_kernel.domain.enums import (
    BalanceEntryKind,
    ContractStatus,
    NotificationType,
    PaymentReason,
    PaymentStatus,
    PaymentType,
)
from installment_kernel.domain.policy import DEFAULT_POLICY, ReconciliationPolicy

__all__ = [
    "Classification",
    "classify",
    "is_positive",
    "amounts_equal",
    "covers",
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "PaymentStatus",
    "PaymentType",
    "PaymentReason",
    "ContractStatus",
    "BalanceEntryKind",
    "NotificationType",
    "ReconciliationPolicy",
    "DEFAULT_POLICY",
]
