"""Status and type vocabularies shared by models, domain rules and services."""

from enum import Enum


class PaymentStatus(str, Enum):
    """Payment state machine.

    SCHEDULED -> PENDING -> {PAID | UNDERPAID | OVERPAID}
    PENDING -> REJECTED (terminal)
    """

    SCHEDULED = "scheduled"
    PENDING = "pending"
    PAID = "paid"
    UNDERPAID = "underpaid"
    OVERPAID = "overpaid"
    REJECTED = "rejected"

    @property
    def is_provisional(self) -> bool:
        return self in (PaymentStatus.SCHEDULED, PaymentStatus.PENDING)

    @property
    def is_confirmed(self) -> bool:
        return self in (
            PaymentStatus.PAID,
            PaymentStatus.UNDERPAID,
            PaymentStatus.OVERPAID,
        )


class PaymentType(str, Enum):
    INITIAL = "initial"
    MONTHLY = "monthly"
    EXTRA = "extra"


class PaymentReason(str, Enum):
    """Why a compensating payment exists."""

    MONTHLY_PAYMENT_INCREASE = "monthly_payment_increase"
    MONTHLY_PAYMENT_DECREASE = "monthly_payment_decrease"
    INITIAL_PAYMENT_CHANGE = "initial_payment_change"
    TOTAL_PRICE_CHANGE = "total_price_change"


class ContractStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BalanceEntryKind(str, Enum):
    """Source of a balance ledger credit."""

    PAYMENT = "payment"
    PREPAID = "prepaid"
    INITIAL_ADJUSTMENT = "initial_adjustment"


class NotificationType(str, Enum):
    PAYMENT_CONFIRMED = "payment_confirmed"
    PAYMENT_REJECTED = "payment_rejected"
    PAYMENT_EXPIRED = "payment_expired"
    EXCESS_DISTRIBUTED = "excess_distributed"
    REMAINING_COLLECTED = "remaining_collected"
    CONTRACT_COMPLETED = "contract_completed"
