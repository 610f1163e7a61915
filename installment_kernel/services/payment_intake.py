"""
PaymentIntakeService -- entry points that create contracts and payments.

Responsibility:
    - open_contract: create an ACTIVE contract; a positive initial payment
      is recorded as a confirmed INITIAL payment and credited to the
      manager's balance.
    - record_pending_payment: cash desk / bot path.  Creates a PENDING
      MONTHLY payment awaiting a second actor's confirmation.
    - schedule_installment: creates a SCHEDULED slot for a future month.
    - pay_by_contract: dashboard path.  Creates a PENDING payment for the
      next unpaid month and confirms it immediately through
      PaymentLifecycleService.confirm, so both paths share one state machine.
    - pay_remaining: collects an UNDERPAID payment's shortfall onto the
      same payment (PaymentLifecycleService.collect_remaining).
    - pay_all_remaining_months: pays off every unpaid month from one sum,
      each month confirmed through PaymentLifecycleService.confirm.

Entry points never classify amounts themselves; classification happens only
at confirmation.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from installment_kernel.db.types import ZERO, as_money
from installment_kernel.domain.amounts import classify, is_positive
from installment_kernel.domain.enums import (
    BalanceEntryKind,
    ContractStatus,
    PaymentStatus,
    PaymentType,
)
from installment_kernel.domain.schedule import add_months
from installment_kernel.exceptions import (
    ContractNotActiveError,
    ContractValidationError,
    InvalidAmountError,
    InvalidTargetMonthError,
    NoUnpaidInstallmentError,
)
from installment_kernel.logging_config import LogContext, get_logger
from installment_kernel.models.contract import Contract
from installment_kernel.models.payment import Payment
from installment_kernel.services.balance_ledger import BalanceLedger
from installment_kernel.services.base import BaseService
from installment_kernel.services.payment_lifecycle import (
    CollectionResult,
    ConfirmationResult,
    PaymentLifecycleService,
)
from installment_kernel.services.repositories import ContractRepository, PaymentRepository
from installment_kernel.utils.idempotency import payment_credit_key

logger = get_logger("services.payment_intake")


@dataclass(frozen=True)
class PayAllResult:
    contract_id: UUID
    amount: Decimal
    confirmations: tuple[ConfirmationResult, ...]
    months_left_unpaid: int
    contract_status: ContractStatus

    @property
    def payment_ids(self) -> tuple[UUID, ...]:
        return tuple(c.payment_id for c in self.confirmations)

    @property
    def underpaid_count(self) -> int:
        return sum(1 for c in self.confirmations if c.status is PaymentStatus.UNDERPAID)

    @property
    def total_shortage(self) -> Decimal:
        return sum((c.remaining_amount for c in self.confirmations), ZERO)

    @property
    def prepaid_added(self) -> Decimal:
        return sum((c.prepaid_added for c in self.confirmations), ZERO)

    @property
    def balance_credited(self) -> Decimal:
        return sum((c.balance_credited for c in self.confirmations), ZERO)


class PaymentIntakeService(BaseService):

    def __init__(
        self,
        session,
        payments: PaymentRepository | None = None,
        contracts: ContractRepository | None = None,
        ledger: BalanceLedger | None = None,
        lifecycle: PaymentLifecycleService | None = None,
        **kwargs,
    ):
        super().__init__(session, **kwargs)
        shared = {"clock": self.clock, "policy": self.policy}
        self.payments = payments or PaymentRepository(session)
        self.contracts = contracts or ContractRepository(session)
        self.ledger = ledger or BalanceLedger(session, **shared)
        self.lifecycle = lifecycle or PaymentLifecycleService(
            session,
            payments=self.payments,
            contracts=self.contracts,
            ledger=self.ledger,
            **shared,
        )

    # ------------------------------------------------------------------
    # Contracts
    # ------------------------------------------------------------------

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
        """
        Open a contract.

        Raises:
            ContractValidationError: negative amounts, period < 1, or
                total_price <= initial_payment.
        """
        total_price = as_money(total_price)
        initial_payment = as_money(initial_payment)
        monthly_payment = as_money(monthly_payment)

        problems = []
        if min(total_price, initial_payment, monthly_payment) < 0:
            problems.append("amounts must not be negative")
        if period < 1:
            problems.append("period must be at least 1")
        if total_price <= initial_payment:
            problems.append("total_price must be greater than initial_payment")
        if problems:
            raise ContractValidationError(problems)

        now = self.clock.now()
        contract = Contract(
            customer_id=customer_id,
            manager_id=manager_id,
            product_name=product_name,
            total_price=total_price,
            initial_payment=initial_payment,
            monthly_payment=monthly_payment,
            period=period,
            start_date=start_date,
            original_payment_day=start_date.day,
            next_payment_date=add_months(start_date, 1),
            prepaid_balance=ZERO,
            status=ContractStatus.ACTIVE,
            is_deleted=False,
            payment_seq=0,
            created_at=now,
            updated_at=now,
            created_by_id=actor_id,
        )
        self.contracts.add(contract)

        with LogContext.bind(contract_id=contract.id, actor_id=actor_id):
            if is_positive(initial_payment, self.tolerance):
                self._record_initial_payment(contract, actor_id)

            logger.info(
                "contract_opened",
                extra={
                    "contract_id": str(contract.id),
                    "total_price": str(total_price),
                    "monthly_payment": str(monthly_payment),
                    "period": period,
                    "next_payment_date": contract.next_payment_date,
                },
            )
        return contract

    def _record_initial_payment(self, contract: Contract, actor_id: UUID) -> Payment:
        now = self.clock.now()
        outcome = classify(contract.initial_payment, contract.initial_payment, self.tolerance)
        payment = Payment(
            contract_id=contract.id,
            customer_id=contract.customer_id,
            manager_id=contract.manager_id,
            amount=contract.initial_payment,
            actual_amount=contract.initial_payment,
            expected_amount=contract.initial_payment,
            remaining_amount=outcome.remaining_amount,
            excess_amount=outcome.excess_amount,
            payment_type=PaymentType.INITIAL,
            target_month=0,
            is_paid=True,
            status=outcome.status,
            confirmed_at=now,
            confirmed_by_id=actor_id,
            paid_on=contract.start_date,
            note="Initial payment",
            created_at=now,
            updated_at=now,
            created_by_id=actor_id,
        )
        self.payments.add(payment)
        self.contracts.attach(contract, payment)
        self.ledger.credit(
            manager_id=contract.manager_id,
            amount=contract.initial_payment,
            idempotency_key=payment_credit_key(payment.id),
            kind=BalanceEntryKind.PAYMENT,
            actor_id=actor_id,
            payment_id=payment.id,
            contract_id=contract.id,
        )
        return payment

    # ------------------------------------------------------------------
    # Provisional payments
    # ------------------------------------------------------------------

    def record_pending_payment(
        self,
        contract_id: UUID,
        amount: Decimal,
        manager_id: UUID,
        actor_id: UUID,
        target_month: int | None = None,
        note: str | None = None,
    ) -> Payment:
        """
        Record money received at the cash desk, pending confirmation.

        The payment is attached to the contract but counts toward nothing
        until it is confirmed.

        Raises:
            ContractNotFoundError, ContractNotActiveError, InvalidAmountError,
            NoUnpaidInstallmentError
        """
        amount = self._validate_amount(amount)
        contract = self._active_contract(contract_id)
        if target_month is None:
            month = self._next_unpaid_month(contract)
        else:
            self._check_month(contract, target_month)
            month = target_month
        payment = self._new_monthly(contract, month, amount, manager_id, actor_id, note)
        payment.status = PaymentStatus.PENDING
        payment.submitted_at = self.clock.now()
        self.payments.add(payment)
        self.contracts.attach(contract, payment)

        logger.info(
            "payment_recorded_pending",
            extra={
                "payment_id": str(payment.id),
                "contract_id": str(contract.id),
                "amount": str(amount),
                "target_month": month,
            },
        )
        return payment

    def schedule_installment(
        self,
        contract_id: UUID,
        target_month: int,
        manager_id: UUID,
        actor_id: UUID,
    ) -> Payment:
        """Create a SCHEDULED slot for ``target_month`` (not yet attached)."""
        contract = self._active_contract(contract_id)
        self._check_month(contract, target_month)
        payment = self._new_monthly(
            contract, target_month, contract.monthly_payment, manager_id, actor_id, None
        )
        payment.actual_amount = None
        payment.status = PaymentStatus.SCHEDULED
        self.payments.add(payment)
        logger.info(
            "installment_scheduled",
            extra={"payment_id": str(payment.id), "target_month": target_month},
        )
        return payment

    def pay_by_contract(
        self,
        contract_id: UUID,
        amount: Decimal,
        manager_id: UUID,
        actor_id: UUID,
        note: str | None = None,
    ) -> ConfirmationResult:
        """
        Dashboard payment: record and confirm in one step.

        Money beyond the next month's installment flows through the excess
        distributor exactly as for a cash-desk confirmation.

        Raises:
            ContractNotFoundError, ContractNotActiveError, InvalidAmountError,
            NoUnpaidInstallmentError
        """
        amount = self._validate_amount(amount)
        contract = self._active_contract(contract_id)
        month = self._next_unpaid_month(contract)
        payment = self._new_monthly(contract, month, amount, manager_id, actor_id, note)
        payment.status = PaymentStatus.PENDING
        payment.submitted_at = self.clock.now()
        self.payments.add(payment)
        logger.info(
            "dashboard_payment_received",
            extra={"payment_id": str(payment.id), "contract_id": str(contract.id), "amount": str(amount)},
        )
        return self.lifecycle.confirm(payment.id, actor_id)

    def pay_remaining(
        self,
        payment_id: UUID,
        amount: Decimal,
        actor_id: UUID,
    ) -> CollectionResult:
        """Dashboard payment against an UNDERPAID month's own shortfall."""
        return self.lifecycle.collect_remaining(payment_id, amount, actor_id)

    def pay_all_remaining_months(
        self,
        contract_id: UUID,
        amount: Decimal,
        manager_id: UUID,
        actor_id: UUID,
        note: str | None = None,
    ) -> PayAllResult:
        """
        Pay every unpaid month of a contract from one sum.

        Months are filled oldest first with one monthly amount each and the
        last unpaid month takes whatever is left, so a surplus is handled by
        that month's confirmation (it reaches the prepaid balance) and a
        shortfall leaves it UNDERPAID.  When the money runs out early the
        remaining months stay unpaid.  Every month goes through
        PaymentLifecycleService.confirm.

        Raises:
            ContractNotFoundError, ContractNotActiveError, InvalidAmountError,
            NoUnpaidInstallmentError
        """
        amount = self._validate_amount(amount)
        contract = self._active_contract(contract_id)
        first_month = self._next_unpaid_month(contract)
        monthly = contract.monthly_payment
        months_open = contract.period - first_month + 1

        confirmations: list[ConfirmationResult] = []
        left = amount
        for month in range(first_month, contract.period + 1):
            if not is_positive(left, self.tolerance):
                break
            if month == contract.period or not is_positive(monthly, self.tolerance):
                share = left
            else:
                share = min(left, monthly)
            payment = self._new_monthly(contract, month, share, manager_id, actor_id, note)
            payment.status = PaymentStatus.PENDING
            payment.submitted_at = self.clock.now()
            self.payments.add(payment)
            confirmations.append(self.lifecycle.confirm(payment.id, actor_id))
            left -= share

        result = PayAllResult(
            contract_id=contract.id,
            amount=amount,
            confirmations=tuple(confirmations),
            months_left_unpaid=months_open - len(confirmations),
            contract_status=contract.status,
        )
        logger.info(
            "all_remaining_months_paid",
            extra={
                "contract_id": str(contract.id),
                "amount": str(amount),
                "months_paid": len(confirmations),
                "months_left_unpaid": result.months_left_unpaid,
                "underpaid_months": result.underpaid_count,
                "prepaid_added": str(result.prepaid_added),
                "contract_status": contract.status.value,
            },
        )
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _validate_amount(self, amount: Decimal) -> Decimal:
        amount = as_money(amount)
        if not is_positive(amount, self.tolerance):
            raise InvalidAmountError(amount, "must be positive")
        if amount > self.policy.max_single_payment:
            raise InvalidAmountError(amount, "exceeds the single payment limit")
        return amount

    def _active_contract(self, contract_id: UUID) -> Contract:
        contract = self.contracts.get_for_update(contract_id)
        if contract.status is not ContractStatus.ACTIVE:
            raise ContractNotActiveError(contract.id, contract.status.value)
        return contract

    def _check_month(self, contract: Contract, target_month: int) -> None:
        if not 1 <= target_month <= contract.period:
            raise InvalidTargetMonthError(contract.id, target_month, contract.period)

    def _next_unpaid_month(self, contract: Contract) -> int:
        paid = self.payments.paid_monthly_count(contract.id)
        if paid >= contract.period:
            raise NoUnpaidInstallmentError(contract.id, contract.period)
        return paid + 1

    def _new_monthly(
        self,
        contract: Contract,
        month: int,
        amount: Decimal,
        manager_id: UUID,
        actor_id: UUID,
        note: str | None,
    ) -> Payment:
        now = self.clock.now()
        return Payment(
            contract_id=contract.id,
            customer_id=contract.customer_id,
            manager_id=manager_id,
            amount=contract.monthly_payment,
            actual_amount=amount,
            expected_amount=contract.monthly_payment,
            payment_type=PaymentType.MONTHLY,
            target_month=month,
            is_paid=False,
            remaining_amount=ZERO,
            excess_amount=ZERO,
            note=note,
            created_at=now,
            updated_at=now,
            created_by_id=actor_id,
        )
