"""Services for the installment kernel (write side)."""

from installment_kernel.services.balance_ledger import BalanceCredit, BalanceLedger
from installment_kernel.services.collaborators import (
    AuditSink,
    LoggingAuditSink,
    LoggingNotificationSink,
    NotificationSink,
    SideEffects,
)
from installment_kernel.services.contract_completion import (
    CompletionCheck,
    ContractCompletionService,
)
from installment_kernel.services.contract_edit import (
    ContractEditService,
    EditPreview,
    EditResult,
)
from installment_kernel.services.engine import ReconciliationEngine
from installment_kernel.services.excess_distributor import Distribution, ExcessDistributor
from installment_kernel.services.payment_intake import PayAllResult, PaymentIntakeService
from installment_kernel.services.payment_lifecycle import (
    CollectionResult,
    ConfirmationResult,
    PaymentLifecycleService,
    RejectionResult,
    SweepResult,
)
from installment_kernel.services.payment_schedule import (
    PaymentScheduleService,
    ScheduleChange,
)
from installment_kernel.services.repositories import ContractRepository, PaymentRepository

__all__ = [
    "AuditSink",
    "BalanceCredit",
    "BalanceLedger",
    "CollectionResult",
    "CompletionCheck",
    "ConfirmationResult",
    "ContractCompletionService",
    "ContractEditService",
    "ContractRepository",
    "Distribution",
    "EditPreview",
    "EditResult",
    "ExcessDistributor",
    "LoggingAuditSink",
    "LoggingNotificationSink",
    "NotificationSink",
    "PayAllResult",
    "PaymentIntakeService",
    "PaymentLifecycleService",
    "PaymentRepository",
    "PaymentScheduleService",
    "RejectionResult",
    "ReconciliationEngine",
    "ScheduleChange",
    "SideEffects",
    "SweepResult",
]
