"""
PaymentLifecycleService -- the payment confirmation/rejection state machine.

Responsibility:
    Moves a provisional payment (SCHEDULED or PENDING) into a confirmed
    status or into REJECTED, with every transactional side effect of that
    move: excess distribution, due-date advancement, balance credit, debtor
    cleanup and the completion recheck.  Also collects the remainder of an
    UNDERPAID payment onto that same payment, and owns the expired-payment
    sweep.

    This is the only state machine for payments.  The dashboard direct-pay
    path creates a PENDING payment and calls confirm() like the cash desk.

Invariants enforced:
    - At-most-once: confirm/reject lock the payment row and then claim it
      with a compare-and-set UPDATE on (is_paid, status).  A concurrent
      loser gets PaymentAlreadyConfirmedError; no second credit is made.
    - A confirmed OVERPAID payment is corrected to exactly its expected
      amount and the surplus is moved into later months, never stacked on
      the confirmed slot.
    - Balance credits are keyed per payment (payment:<id>), plus one
      prepaid:<id> key for a remainder that reached prepaid.  Total credit
      equals the cash received.
    - A rejected payment is detached from its contract and credits nothing.

Failure modes:
    - PaymentNotFoundError: no such payment.
    - PaymentAlreadyConfirmedError / PaymentAlreadyRejectedError: conflict,
      raised before any write.
    - ContractIntegrityError: a payment being confirmed has no contract.
      Fatal; the caller's transaction rolls back.
    - Notification/audit failures are logged and swallowed.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from uuid import UUID

from installment_kernel.db.types import ZERO, as_money
from installment_kernel.domain.amounts import classify, is_positive
from installment_kernel.domain.enums import (
    BalanceEntryKind,
    ContractStatus,
    NotificationType,
    PaymentStatus,
    PaymentType,
)
from installment_kernel.exceptions import (
    ContractIntegrityError,
    ContractNotActiveError,
    ContractNotFoundError,
    InvalidAmountError,
    InvalidPaymentStateError,
    PaymentAlreadyConfirmedError,
    PaymentAlreadyRejectedError,
)
from installment_kernel.logging_config import LogContext, get_logger
from installment_kernel.models.contract import Contract
from installment_kernel.models.payment import Payment
from installment_kernel.services.balance_ledger import BalanceLedger
from installment_kernel.services.base import BaseService
from installment_kernel.services.collaborators import SideEffects
from installment_kernel.services.contract_completion import ContractCompletionService
from installment_kernel.services.excess_distributor import ExcessDistributor
from installment_kernel.services.payment_schedule import PaymentScheduleService
from installment_kernel.services.repositories import ContractRepository, PaymentRepository
from installment_kernel.utils.idempotency import (
    payment_credit_key,
    prepaid_credit_key,
    remaining_collection_key,
    remaining_prepaid_key,
)

logger = get_logger("services.payment_lifecycle")


@dataclass(frozen=True)
class ConfirmationResult:
    payment_id: UUID
    contract_id: UUID
    status: PaymentStatus
    confirmed_amount: Decimal
    remaining_amount: Decimal
    created_payment_ids: tuple[UUID, ...]
    prepaid_added: Decimal
    balance_credited: Decimal
    next_payment_date: date | None
    contract_status: ContractStatus


@dataclass(frozen=True)
class CollectionResult:
    payment_id: UUID
    contract_id: UUID
    status: PaymentStatus
    collected_amount: Decimal
    remaining_amount: Decimal
    created_payment_ids: tuple[UUID, ...]
    prepaid_added: Decimal
    balance_credited: Decimal
    contract_status: ContractStatus


@dataclass(frozen=True)
class RejectionResult:
    payment_id: UUID
    contract_id: UUID | None
    detached: bool
    contract_status: ContractStatus | None


@dataclass(frozen=True)
class SweepResult:
    threshold: datetime
    rejected_ids: tuple[UUID, ...]
    failed_ids: tuple[UUID, ...]


class PaymentLifecycleService(BaseService):
    """Confirm, reject and expire provisional payments."""

    def __init__(
        self,
        session,
        payments: PaymentRepository | None = None,
        contracts: ContractRepository | None = None,
        ledger: BalanceLedger | None = None,
        distributor: ExcessDistributor | None = None,
        schedule: PaymentScheduleService | None = None,
        completion: ContractCompletionService | None = None,
        side_effects: SideEffects | None = None,
        **kwargs,
    ):
        super().__init__(session, **kwargs)
        shared = {"clock": self.clock, "policy": self.policy}
        self.payments = payments or PaymentRepository(session)
        self.contracts = contracts or ContractRepository(session)
        self.ledger = ledger or BalanceLedger(session, **shared)
        self.distributor = distributor or ExcessDistributor(
            session, payments=self.payments, contracts=self.contracts, **shared
        )
        self.schedule = schedule or PaymentScheduleService(
            session, contracts=self.contracts, **shared
        )
        self.completion = completion or ContractCompletionService(
            session, payments=self.payments, contracts=self.contracts, **shared
        )
        self.side_effects = side_effects or SideEffects.default()

    # ------------------------------------------------------------------
    # SCHEDULED -> PENDING
    # ------------------------------------------------------------------

    def submit_for_confirmation(
        self,
        payment_id: UUID,
        actual_amount: Decimal,
        actor_id: UUID,
    ) -> Payment:
        """Record money received against a SCHEDULED slot; it awaits confirmation."""
        actual_amount = self._check_received(actual_amount)
        payment = self.payments.get_for_update(payment_id)
        self._guard_unconfirmed(payment)
        if payment.status is not PaymentStatus.SCHEDULED:
            raise InvalidPaymentStateError(payment.id, payment.status.value, "submit")

        payment.actual_amount = actual_amount
        payment.status = PaymentStatus.PENDING
        payment.submitted_at = self.clock.now()
        payment.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "payment_submitted",
            extra={"payment_id": str(payment.id), "actual_amount": str(actual_amount)},
        )
        return payment

    # ------------------------------------------------------------------
    # Confirmation
    # ------------------------------------------------------------------

    def confirm(self, payment_id: UUID, actor_id: UUID) -> ConfirmationResult:
        """
        Confirm a provisional payment.

        Raises:
            PaymentNotFoundError, PaymentAlreadyConfirmedError,
            PaymentAlreadyRejectedError, ContractIntegrityError
        """
        with LogContext.bind(payment_id=payment_id, actor_id=actor_id):
            payment = self.payments.get_for_update(payment_id)
            self._guard_unconfirmed(payment)
            if not self.payments.claim_for_confirmation(payment.id):
                logger.warning("payment_confirm_lost_race", extra={"payment_id": str(payment.id)})
                raise PaymentAlreadyConfirmedError(payment.id)

            actual = payment.effective_actual_amount
            expected = payment.effective_expected_amount
            outcome = classify(actual, expected, self.tolerance)
            now = self.clock.now()

            payment.actual_amount = actual
            payment.expected_amount = expected
            payment.status = outcome.status
            payment.remaining_amount = outcome.remaining_amount
            payment.excess_amount = outcome.excess_amount
            payment.is_paid = True
            payment.confirmed_at = now
            payment.confirmed_by_id = actor_id
            payment.paid_on = payment.paid_on or self.clock.today()
            payment.updated_by_id = actor_id
            self.session.flush()

            contract = self._locate_contract(payment)
            self.contracts.attach(contract, payment)

            created: tuple[Payment, ...] = ()
            prepaid_added = ZERO
            if outcome.status is PaymentStatus.OVERPAID:
                payment.actual_amount = expected
                payment.excess_amount = ZERO
                payment.status = PaymentStatus.PAID
                self.session.flush()
                distribution = self.distributor.distribute_detailed(
                    outcome.excess_amount, contract, payment, actor_id
                )
                created = distribution.payments
                prepaid_added = distribution.prepaid_added

            if payment.payment_type is PaymentType.MONTHLY:
                self.schedule.advance(contract)

            credited = self._credit_balances(payment, contract, created, prepaid_added, actor_id)

            debtors_removed = self.contracts.delete_debtor(contract.id)
            completion = self.completion.recheck_contract(contract)

            logger.info(
                "payment_confirmed",
                extra={
                    "payment_id": str(payment.id),
                    "contract_id": str(contract.id),
                    "status": payment.status.value,
                    "received_amount": str(actual),
                    "expected_amount": str(expected),
                    "created_payments": len(created),
                    "prepaid_added": str(prepaid_added),
                    "balance_credited": str(credited),
                    "debtors_removed": debtors_removed,
                },
            )

            self._report_confirmation(payment, contract, actual, created, completion.changed, actor_id)

            return ConfirmationResult(
                payment_id=payment.id,
                contract_id=contract.id,
                status=payment.status,
                confirmed_amount=payment.actual_amount,
                remaining_amount=payment.remaining_amount,
                created_payment_ids=tuple(p.id for p in created),
                prepaid_added=prepaid_added,
                balance_credited=credited,
                next_payment_date=contract.next_payment_date,
                contract_status=contract.status,
            )

    def _locate_contract(self, payment: Payment) -> Contract:
        if payment.contract_id is not None:
            try:
                return self.contracts.get_for_update(payment.contract_id)
            except ContractNotFoundError as exc:
                raise ContractIntegrityError(payment.id, payment.customer_id) from exc
        contract = self.contracts.find_active_for_customer(payment.customer_id)
        if contract is None:
            raise ContractIntegrityError(payment.id, payment.customer_id)
        return contract

    def _credit_balances(
        self,
        payment: Payment,
        contract: Contract,
        created: tuple[Payment, ...],
        prepaid_added: Decimal,
        actor_id: UUID,
    ) -> Decimal:
        credited = ZERO
        for p in (payment, *created):
            credit = self.ledger.credit(
                manager_id=p.manager_id,
                amount=p.actual_amount,
                idempotency_key=payment_credit_key(p.id),
                kind=BalanceEntryKind.PAYMENT,
                actor_id=actor_id,
                payment_id=p.id,
                contract_id=contract.id,
            )
            if credit is not None:
                credited += credit.amount
        if prepaid_added > 0:
            credit = self.ledger.credit(
                manager_id=payment.manager_id,
                amount=prepaid_added,
                idempotency_key=prepaid_credit_key(payment.id),
                kind=BalanceEntryKind.PREPAID,
                actor_id=actor_id,
                payment_id=payment.id,
                contract_id=contract.id,
            )
            if credit is not None:
                credited += credit.amount
        return credited

    def _report_confirmation(
        self,
        payment: Payment,
        contract: Contract,
        received: Decimal,
        created: tuple[Payment, ...],
        status_changed: bool,
        actor_id: UUID,
    ) -> None:
        self.side_effects.record_change(
            "payment",
            payment.id,
            actor_id,
            {"status": (PaymentStatus.PENDING.value, payment.status.value), "is_paid": (False, True)},
            {"contract_id": str(contract.id), "received_amount": str(received)},
        )
        self.side_effects.notify(
            NotificationType.PAYMENT_CONFIRMED,
            payment_id=payment.id,
            contract_id=contract.id,
            customer_id=payment.customer_id,
            amount=received,
            status=payment.status,
            month_number=payment.target_month,
        )
        for extra in created:
            self.side_effects.notify(
                NotificationType.EXCESS_DISTRIBUTED,
                payment_id=extra.id,
                contract_id=contract.id,
                customer_id=extra.customer_id,
                amount=extra.actual_amount,
                status=extra.status,
                month_number=extra.target_month,
            )
        if status_changed and contract.status is ContractStatus.COMPLETED:
            self.side_effects.notify(
                NotificationType.CONTRACT_COMPLETED,
                contract_id=contract.id,
                customer_id=contract.customer_id,
                amount=contract.total_price,
            )

    # ------------------------------------------------------------------
    # Collecting an UNDERPAID payment's remainder
    # ------------------------------------------------------------------

    def collect_remaining(
        self,
        payment_id: UUID,
        amount: Decimal,
        actor_id: UUID,
    ) -> CollectionResult:
        """
        Apply ``amount`` to a confirmed UNDERPAID payment's shortfall.

        The money tops up the same payment.  Anything beyond its remaining
        amount corrects it to exactly its expected amount and the surplus
        goes through the excess distributor, as on confirmation.

        Raises:
            PaymentNotFoundError, InvalidAmountError,
            InvalidPaymentStateError: the payment is unconfirmed, rejected,
                has nothing left to pay, or its shortfall is already
                tracked by a compensating payment.
            ContractNotActiveError: the contract is cancelled.
        """
        with LogContext.bind(payment_id=payment_id, actor_id=actor_id):
            amount = self._check_received(amount)
            payment = self.payments.get_for_update(payment_id)
            operation = "collect remaining on"
            if not payment.is_paid or payment.status is not PaymentStatus.UNDERPAID:
                raise InvalidPaymentStateError(payment.id, payment.status.value, operation)
            already_paid = payment.effective_actual_amount
            expected = payment.effective_expected_amount
            if not is_positive(expected - already_paid, self.tolerance):
                raise InvalidPaymentStateError(payment.id, payment.status.value, operation)
            if self.payments.compensations(payment.id):
                raise InvalidPaymentStateError(
                    payment.id, f"{payment.status.value} with a compensating payment", operation
                )

            contract = self._locate_contract(payment)
            if contract.status is ContractStatus.CANCELLED:
                raise ContractNotActiveError(contract.id, contract.status.value)
            self.contracts.attach(contract, payment)

            collected_total = already_paid + amount
            outcome = classify(collected_total, expected, self.tolerance)
            payment.actual_amount = collected_total
            payment.status = outcome.status
            payment.remaining_amount = outcome.remaining_amount
            payment.excess_amount = ZERO
            payment.append_note(f"[REMAINING COLLECTED: {amount}]")
            payment.updated_by_id = actor_id
            self.session.flush()

            created: tuple[Payment, ...] = ()
            prepaid_added = ZERO
            if outcome.status is PaymentStatus.OVERPAID:
                payment.actual_amount = expected
                payment.status = PaymentStatus.PAID
                self.session.flush()
                distribution = self.distributor.distribute_detailed(
                    outcome.excess_amount, contract, payment, actor_id
                )
                created = distribution.payments
                prepaid_added = distribution.prepaid_added

            credited = self._credit_collection(
                payment,
                contract,
                payment.actual_amount - already_paid,
                collected_total,
                created,
                prepaid_added,
                actor_id,
            )

            debtors_removed = 0
            if payment.status is PaymentStatus.PAID:
                debtors_removed = self.contracts.delete_debtor(contract.id)
            completion = self.completion.recheck_contract(contract)

            logger.info(
                "remaining_collected",
                extra={
                    "payment_id": str(payment.id),
                    "contract_id": str(contract.id),
                    "status": payment.status.value,
                    "collected_amount": str(amount),
                    "remaining_amount": str(payment.remaining_amount),
                    "created_payments": len(created),
                    "prepaid_added": str(prepaid_added),
                    "balance_credited": str(credited),
                    "debtors_removed": debtors_removed,
                },
            )

            self.side_effects.record_change(
                "payment",
                payment.id,
                actor_id,
                {
                    "status": (PaymentStatus.UNDERPAID.value, payment.status.value),
                    "actual_amount": (str(already_paid), str(payment.actual_amount)),
                },
                {"contract_id": str(contract.id), "collected_amount": str(amount)},
            )
            self.side_effects.notify(
                NotificationType.REMAINING_COLLECTED,
                payment_id=payment.id,
                contract_id=contract.id,
                customer_id=payment.customer_id,
                amount=amount,
                status=payment.status,
                month_number=payment.target_month,
            )
            if completion.changed and contract.status is ContractStatus.COMPLETED:
                self.side_effects.notify(
                    NotificationType.CONTRACT_COMPLETED,
                    contract_id=contract.id,
                    customer_id=contract.customer_id,
                    amount=contract.total_price,
                )

            return CollectionResult(
                payment_id=payment.id,
                contract_id=contract.id,
                status=payment.status,
                collected_amount=amount,
                remaining_amount=payment.remaining_amount,
                created_payment_ids=tuple(p.id for p in created),
                prepaid_added=prepaid_added,
                balance_credited=credited,
                contract_status=contract.status,
            )

    def _credit_collection(
        self,
        payment: Payment,
        contract: Contract,
        applied: Decimal,
        collected_total: Decimal,
        created: tuple[Payment, ...],
        prepaid_added: Decimal,
        actor_id: UUID,
    ) -> Decimal:
        credits = [
            self.ledger.credit(
                manager_id=payment.manager_id,
                amount=applied,
                idempotency_key=remaining_collection_key(payment.id, collected_total),
                kind=BalanceEntryKind.PAYMENT,
                actor_id=actor_id,
                payment_id=payment.id,
                contract_id=contract.id,
            )
        ]
        for p in created:
            credits.append(
                self.ledger.credit(
                    manager_id=p.manager_id,
                    amount=p.actual_amount,
                    idempotency_key=payment_credit_key(p.id),
                    kind=BalanceEntryKind.PAYMENT,
                    actor_id=actor_id,
                    payment_id=p.id,
                    contract_id=contract.id,
                )
            )
        if prepaid_added > 0:
            credits.append(
                self.ledger.credit(
                    manager_id=payment.manager_id,
                    amount=prepaid_added,
                    idempotency_key=remaining_prepaid_key(payment.id, collected_total),
                    kind=BalanceEntryKind.PREPAID,
                    actor_id=actor_id,
                    payment_id=payment.id,
                    contract_id=contract.id,
                )
            )
        return sum((c.amount for c in credits if c is not None), ZERO)

    # ------------------------------------------------------------------
    # Rejection
    # ------------------------------------------------------------------

    def reject(self, payment_id: UUID, reason: str, actor_id: UUID) -> RejectionResult:
        """
        Reject a provisional payment.

        Raises:
            PaymentNotFoundError, PaymentAlreadyConfirmedError,
            PaymentAlreadyRejectedError
        """
        with LogContext.bind(payment_id=payment_id, actor_id=actor_id):
            return self._reject(payment_id, reason, actor_id, NotificationType.PAYMENT_REJECTED)

    def _reject(
        self,
        payment_id: UUID,
        reason: str,
        actor_id: UUID,
        notification: NotificationType,
    ) -> RejectionResult:
        payment = self.payments.get_for_update(payment_id)
        self._guard_unconfirmed(payment)
        if not self.payments.claim_for_rejection(payment.id):
            self.session.refresh(payment)
            self._guard_unconfirmed(payment)
            raise InvalidPaymentStateError(payment.id, payment.status.value, "reject")

        previous_status = payment.status
        payment.status = PaymentStatus.REJECTED
        payment.append_note(f"[REJECTED: {reason}]")
        payment.updated_by_id = actor_id
        self.session.flush()

        contract = None
        detached = False
        if payment.contract_id is not None:
            contract = self.contracts.get_for_update(payment.contract_id)
            detached = self.contracts.detach(payment)
            self.completion.recheck_contract(contract)

        logger.info(
            "payment_rejected",
            extra={
                "payment_id": str(payment.id),
                "reason": reason,
                "detached": detached,
                "auto": notification is NotificationType.PAYMENT_EXPIRED,
            },
        )

        self.side_effects.record_change(
            "payment",
            payment.id,
            actor_id,
            {"status": (previous_status.value, PaymentStatus.REJECTED.value)},
            {"reason": reason},
        )
        self.side_effects.notify(
            notification,
            payment_id=payment.id,
            contract_id=payment.contract_id,
            customer_id=payment.customer_id,
            amount=payment.effective_actual_amount,
            status=PaymentStatus.REJECTED,
            month_number=payment.target_month,
        )

        return RejectionResult(
            payment_id=payment.id,
            contract_id=payment.contract_id,
            detached=detached,
            contract_status=contract.status if contract is not None else None,
        )

    def _check_received(self, amount: Decimal) -> Decimal:
        amount = as_money(amount)
        if not is_positive(amount, self.tolerance):
            raise InvalidAmountError(amount, "must be positive")
        if amount > self.policy.max_single_payment:
            raise InvalidAmountError(amount, "exceeds the single payment limit")
        return amount

    def _guard_unconfirmed(self, payment: Payment) -> None:
        if payment.is_paid:
            raise PaymentAlreadyConfirmedError(payment.id)
        if payment.status is PaymentStatus.REJECTED:
            raise PaymentAlreadyRejectedError(payment.id)

    # ------------------------------------------------------------------
    # Expired-payment sweep
    # ------------------------------------------------------------------

    def reject_expired_payments(self, now: datetime | None = None) -> SweepResult:
        """
        Reject every PENDING payment older than the pending timeout.

        Each payment is rejected inside its own savepoint.  A failure rolls
        back that payment only; it is logged and reported in failed_ids
        and the sweep moves on.
        """
        now = now or self.clock.now()
        hours = self.policy.pending_timeout_hours
        threshold = now - timedelta(hours=hours)
        reason = f"Automatically rejected: not confirmed within {hours} hours"

        candidates = self.payments.expired_pending_ids(threshold)
        rejected: list[UUID] = []
        failed: list[UUID] = []

        for payment_id in candidates:
            savepoint = self.session.begin_nested()
            try:
                self._expire_payment(payment_id, reason)
                savepoint.commit()
                rejected.append(payment_id)
            except Exception:
                savepoint.rollback()
                failed.append(payment_id)
                logger.error(
                    "expired_payment_rejection_failed",
                    exc_info=True,
                    extra={"payment_id": str(payment_id)},
                )

        logger.info(
            "expired_payment_sweep_completed",
            extra={
                "threshold": threshold,
                "candidates": len(candidates),
                "rejected": len(rejected),
                "failed": len(failed),
            },
        )
        return SweepResult(threshold=threshold, rejected_ids=tuple(rejected), failed_ids=tuple(failed))

    def _expire_payment(self, payment_id: UUID, reason: str) -> RejectionResult:
        return self._reject(
            payment_id,
            reason,
            self.policy.system_actor_id,
            NotificationType.PAYMENT_EXPIRED,
        )
