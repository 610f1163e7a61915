"""
ReconciliationEngine - one object wiring every service to a session.

The engine ties together:
- Repositories: payment and contract access
- BalanceLedger: idempotent manager credits
- ExcessDistributor, PaymentScheduleService, ContractCompletionService
- PaymentLifecycleService: the confirmation/rejection state machine
- ContractEditService and PaymentIntakeService: the outer operations

All services share one session, clock, policy and set of side-effect sinks,
so a confirmation and everything it triggers land in the caller's single
transaction.  The engine never commits; wrap calls in ``session_scope()``.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from installment_kernel.domain.clock import Clock, SystemClock
from installment_kernel.domain.policy import DEFAULT_POLICY, ReconciliationPolicy
from installment_kernel.domain.terms import TermChanges
from installment_kernel.models.contract import Contract
from installment_kernel.models.payment import Payment
from installment_kernel.services.balance_ledger import BalanceLedger
from installment_kernel.services.collaborators import SideEffects
from installment_kernel.services.contract_completion import (
    CompletionCheck,
    ContractCompletionService,
)
from installment_kernel.services.contract_edit import (
    ContractEditService,
    EditPreview,
    EditResult,
)
from installment_kernel.services.excess_distributor import ExcessDistributor
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


class ReconciliationEngine:
    """
    Facade over the kernel services.

    Collaborators are injected at construction; nothing is looked up at
    call time.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: ReconciliationPolicy | None = None,
        side_effects: SideEffects | None = None,
    ):
        self.session = session
        self.clock = clock or SystemClock()
        self.policy = policy or DEFAULT_POLICY
        self.side_effects = side_effects or SideEffects.default()

        shared = {"clock": self.clock, "policy": self.policy}
        self.payments = PaymentRepository(session)
        self.contracts = ContractRepository(session)
        self.ledger = BalanceLedger(session, **shared)
        self.schedule = PaymentScheduleService(session, contracts=self.contracts, **shared)
        self.completion = ContractCompletionService(
            session, payments=self.payments, contracts=self.contracts, **shared
        )
        self.distributor = ExcessDistributor(
            session, payments=self.payments, contracts=self.contracts, **shared
        )
        self.lifecycle = PaymentLifecycleService(
            session,
            payments=self.payments,
            contracts=self.contracts,
            ledger=self.ledger,
            distributor=self.distributor,
            schedule=self.schedule,
            completion=self.completion,
            side_effects=self.side_effects,
            **shared,
        )
        self.edits = ContractEditService(
            session,
            payments=self.payments,
            contracts=self.contracts,
            ledger=self.ledger,
            completion=self.completion,
            side_effects=self.side_effects,
            **shared,
        )
        self.intake = PaymentIntakeService(
            session,
            payments=self.payments,
            contracts=self.contracts,
            ledger=self.ledger,
            lifecycle=self.lifecycle,
            **shared,
        )

    # Contracts

    def open_contract(
        self,
        customer_id: UUID,
        manager_id: UUID,
        product_name: str,
        total_price: Decimal,
        initial_payment: Decimal,
        monthly_payment: Decimal,
        period: int,
        start_date: date,
        actor_id: UUID,
    ) -> Contract:
        return self.intake.open_contract(
            customer_id=customer_id,
            manager_id=manager_id,
            product_name=product_name,
            total_price=total_price,
            initial_payment=initial_payment,
            monthly_payment=monthly_payment,
            period=period,
            start_date=start_date,
            actor_id=actor_id,
        )

    def preview_edit(self, contract_id: UUID, changes: TermChanges) -> EditPreview:
        return self.edits.preview_edit(contract_id, changes)

    def apply_edit(self, contract_id: UUID, changes: TermChanges, actor_id: UUID) -> EditResult:
        return self.edits.apply_edit(contract_id, changes, actor_id)

    def recheck_completion(self, contract_id: UUID) -> CompletionCheck:
        return self.completion.recheck(contract_id)

    def postpone(self, contract_id: UUID, new_date: date, actor_id: UUID) -> ScheduleChange:
        return self.schedule.postpone(contract_id, new_date, actor_id)

    # Payments

    def record_pending_payment(
        self,
        contract_id: UUID,
        amount: Decimal,
        manager_id: UUID,
        actor_id: UUID,
        target_month: int | None = None,
        note: str | None = None,
    ) -> Payment:
        return self.intake.record_pending_payment(
            contract_id, amount, manager_id, actor_id, target_month=target_month, note=note
        )

    def schedule_installment(
        self, contract_id: UUID, target_month: int, manager_id: UUID, actor_id: UUID
    ) -> Payment:
        return self.intake.schedule_installment(contract_id, target_month, manager_id, actor_id)

    def submit_for_confirmation(
        self, payment_id: UUID, actual_amount: Decimal, actor_id: UUID
    ) -> Payment:
        return self.lifecycle.submit_for_confirmation(payment_id, actual_amount, actor_id)

    def pay_by_contract(
        self,
        contract_id: UUID,
        amount: Decimal,
        manager_id: UUID,
        actor_id: UUID,
        note: str | None = None,
    ) -> ConfirmationResult:
        return self.intake.pay_by_contract(contract_id, amount, manager_id, actor_id, note=note)

    def pay_remaining(self, payment_id: UUID, amount: Decimal, actor_id: UUID) -> CollectionResult:
        return self.intake.pay_remaining(payment_id, amount, actor_id)

    def pay_all_remaining_months(
        self,
        contract_id: UUID,
        amount: Decimal,
        manager_id: UUID,
        actor_id: UUID,
        note: str | None = None,
    ) -> PayAllResult:
        return self.intake.pay_all_remaining_months(
            contract_id, amount, manager_id, actor_id, note=note
        )

    def confirm(self, payment_id: UUID, actor_id: UUID) -> ConfirmationResult:
        return self.lifecycle.confirm(payment_id, actor_id)

    def reject(self, payment_id: UUID, reason: str, actor_id: UUID) -> RejectionResult:
        return self.lifecycle.reject(payment_id, reason, actor_id)

    def reject_expired_payments(self, now: datetime | None = None) -> SweepResult:
        return self.lifecycle.reject_expired_payments(now)
