"""
Typed Exception Hierarchy for the Installment Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Reconciliation errors must be handled precisely. A cash desk that tries to
confirm a payment twice needs a different answer than an edit that breaks
the monthly-change limit, and neither should be recognized by parsing a
message string.

Every error therefore has:
  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA as instance attributes (payment_id, violations, ...)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InstallmentKernelError (base)
    |
    +-- NotFoundError
    |   +-- PaymentNotFoundError
    |   +-- ContractNotFoundError
    |   +-- BalanceNotFoundError
    |
    +-- ConflictError
    |   +-- PaymentAlreadyConfirmedError
    |   +-- PaymentAlreadyRejectedError
    |   +-- InvalidPaymentStateError
    |   +-- NoUnpaidInstallmentError
    |   +-- ContractNotActiveError
    |
    +-- ValidationError
    |   +-- ContractEditValidationError
    |   +-- ContractValidationError
    |   +-- InvalidAmountError
    |   +-- ScheduleValidationError
    |   +-- InvalidTargetMonthError
    |
    +-- DataIntegrityError
    |   +-- ContractIntegrityError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category    | Code                       | When Raised
------------|----------------------------|-------------------------------------------
NotFound    | PAYMENT_NOT_FOUND          | Payment ID doesn't exist
            | CONTRACT_NOT_FOUND         | Contract ID doesn't exist (or soft-deleted)
            | BALANCE_NOT_FOUND          | Manager has no balance row
------------|----------------------------|-------------------------------------------
Conflict    | PAYMENT_ALREADY_CONFIRMED  | Confirm/reject on an is_paid payment
            | PAYMENT_ALREADY_REJECTED   | Confirm/reject on a REJECTED payment
            | INVALID_PAYMENT_STATE      | Transition not allowed from current status
            | NO_UNPAID_INSTALLMENT      | Every month of the contract is paid
            | CONTRACT_NOT_ACTIVE        | Payment intake on a non-active contract
------------|----------------------------|-------------------------------------------
Validation  | CONTRACT_EDIT_INVALID      | Negative terms, >50% swing, price <= initial
            | CONTRACT_INVALID           | New contract with inconsistent terms
            | INVALID_AMOUNT             | Non-positive or out-of-range payment amount
            | SCHEDULE_INVALID           | Postponement that does not move forward
            | INVALID_TARGET_MONTH       | Installment month outside 1..period
------------|----------------------------|-------------------------------------------
Integrity   | CONTRACT_INTEGRITY         | Confirmed payment has no owning contract
------------|----------------------------|-------------------------------------------
Config      | CONFIGURATION_ERROR        | Settings file missing or malformed

===============================================================================
HANDLING PATTERNS
===============================================================================

1. CONFLICTS ARE USER-CORRECTABLE (never silently ignored):

    try:
        engine.lifecycle.confirm(payment_id, actor_id)
    except PaymentAlreadyConfirmedError as e:
        return {"error": e.code, "payment_id": str(e.payment_id)}

2. VALIDATION CARRIES EVERY VIOLATION:

    except ContractEditValidationError as e:
        return {"error": e.code, "violations": list(e.violations)}

3. INTEGRITY ERRORS ARE BUGS (log, surface as opaque 500, never retry):

    except DataIntegrityError:
        logger.exception("integrity_violation")
        raise

===============================================================================
"""

from decimal import Decimal
from uuid import UUID


class InstallmentKernelError(Exception):
    """
    Base exception for all installment kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "INSTALLMENT_KERNEL_ERROR"


# Not found


class NotFoundError(InstallmentKernelError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"


class PaymentNotFoundError(NotFoundError):
    """Payment with given ID was not found."""

    code: str = "PAYMENT_NOT_FOUND"

    def __init__(self, payment_id: UUID | str):
        self.payment_id = payment_id
        super().__init__(f"Payment not found: {payment_id}")


class ContractNotFoundError(NotFoundError):
    """Contract with given ID was not found or is soft-deleted."""

    code: str = "CONTRACT_NOT_FOUND"

    def __init__(self, contract_id: UUID | str):
        self.contract_id = contract_id
        super().__init__(f"Contract not found: {contract_id}")


class BalanceNotFoundError(NotFoundError):
    """Manager has no balance row."""

    code: str = "BALANCE_NOT_FOUND"

    def __init__(self, manager_id: UUID | str):
        self.manager_id = manager_id
        super().__init__(f"Balance not found for manager: {manager_id}")


# Conflicts


class ConflictError(InstallmentKernelError):
    """Base exception for state conflicts the caller can correct."""

    code: str = "CONFLICT"


class PaymentAlreadyConfirmedError(ConflictError):
    """Payment was already confirmed; confirm/reject must not repeat."""

    code: str = "PAYMENT_ALREADY_CONFIRMED"

    def __init__(self, payment_id: UUID | str):
        self.payment_id = payment_id
        super().__init__(f"Payment already confirmed: {payment_id}")


class PaymentAlreadyRejectedError(ConflictError):
    """Payment was already rejected; REJECTED is terminal."""

    code: str = "PAYMENT_ALREADY_REJECTED"

    def __init__(self, payment_id: UUID | str):
        self.payment_id = payment_id
        super().__init__(f"Payment already rejected: {payment_id}")


class InvalidPaymentStateError(ConflictError):
    """Requested transition is not allowed from the payment's status."""

    code: str = "INVALID_PAYMENT_STATE"

    def __init__(self, payment_id: UUID | str, status: str, operation: str):
        self.payment_id = payment_id
        self.status = status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} payment {payment_id} in status {status}"
        )


class NoUnpaidInstallmentError(ConflictError):
    """Every monthly installment of the contract is already paid."""

    code: str = "NO_UNPAID_INSTALLMENT"

    def __init__(self, contract_id: UUID | str, period: int):
        self.contract_id = contract_id
        self.period = period
        super().__init__(
            f"All {period} months of contract {contract_id} are already paid"
        )


class ContractNotActiveError(ConflictError):
    """Operation requires an ACTIVE contract."""

    code: str = "CONTRACT_NOT_ACTIVE"

    def __init__(self, contract_id: UUID | str, status: str):
        self.contract_id = contract_id
        self.status = status
        super().__init__(f"Contract {contract_id} is {status}, not active")


# Validation


class ValidationError(InstallmentKernelError):
    """Base exception for input rejected before any mutation."""

    code: str = "VALIDATION_ERROR"


class ContractEditValidationError(ValidationError):
    """Contract term edit violates one or more rules; nothing was applied."""

    code: str = "CONTRACT_EDIT_INVALID"

    def __init__(self, contract_id: UUID | str | None, violations: list[str]):
        self.contract_id = contract_id
        self.violations = tuple(violations)
        super().__init__(
            f"Invalid contract edit for {contract_id}: " + "; ".join(violations)
        )


class ContractValidationError(ValidationError):
    """Terms of a new contract are inconsistent; nothing was created."""

    code: str = "CONTRACT_INVALID"

    def __init__(self, violations: list[str]):
        self.violations = tuple(violations)
        super().__init__("Invalid contract: " + "; ".join(violations))


class InvalidAmountError(ValidationError):
    """Payment amount is non-positive or exceeds the configured maximum."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: Decimal, reason: str):
        self.amount = amount
        self.reason = reason
        super().__init__(f"Invalid amount {amount}: {reason}")


class ScheduleValidationError(ValidationError):
    """Schedule change would not move the due date forward."""

    code: str = "SCHEDULE_INVALID"

    def __init__(self, contract_id: UUID | str, message: str):
        self.contract_id = contract_id
        super().__init__(message)


class InvalidTargetMonthError(ValidationError):
    """Requested installment month is outside the contract period."""

    code: str = "INVALID_TARGET_MONTH"

    def __init__(self, contract_id: UUID | str, target_month: int, period: int):
        self.contract_id = contract_id
        self.target_month = target_month
        self.period = period
        super().__init__(
            f"Month {target_month} is outside 1..{period} for contract {contract_id}"
        )


# Integrity


class DataIntegrityError(InstallmentKernelError):
    """Base exception for stored data that breaks an engine invariant."""

    code: str = "DATA_INTEGRITY_ERROR"


class ContractIntegrityError(DataIntegrityError):
    """A payment being confirmed has no owning contract."""

    code: str = "CONTRACT_INTEGRITY"

    def __init__(self, payment_id: UUID | str, customer_id: UUID | str | None):
        self.payment_id = payment_id
        self.customer_id = customer_id
        super().__init__(
            f"No contract found for payment {payment_id} "
            f"(customer {customer_id})"
        )


# Configuration


class ConfigurationError(InstallmentKernelError):
    """Engine settings are missing or malformed."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, message: str, source: str | None = None):
        self.source = source
        super().__init__(message)
