"""
ContractCompletionService -- derive a contract's lifecycle status.

Responsibility:
    Recomputes ACTIVE/COMPLETED from the confirmed attached payments and the
    prepaid balance.  Safe to call redundantly after any mutation: the
    result depends only on current rows.

Invariants enforced:
    status = COMPLETED iff sum(effective actual of confirmed attached
    payments) + prepaid_balance >= total_price - tolerance.
    CANCELLED contracts are left untouched.
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from installment_kernel.db.types import ZERO
from installment_kernel.domain.amounts import covers
from installment_kernel.domain.enums import ContractStatus
from installment_kernel.logging_config import get_logger
from installment_kernel.models.contract import Contract
from installment_kernel.services.base import BaseService
from installment_kernel.services.repositories import ContractRepository, PaymentRepository

logger = get_logger("services.contract_completion")


@dataclass(frozen=True)
class CompletionCheck:
    contract_id: UUID
    total_paid: Decimal
    total_satisfied: Decimal
    total_price: Decimal
    previous_status: ContractStatus
    status: ContractStatus

    @property
    def changed(self) -> bool:
        return self.previous_status is not self.status


class ContractCompletionService(BaseService):

    def __init__(
        self,
        session,
        payments: PaymentRepository | None = None,
        contracts: ContractRepository | None = None,
        **kwargs,
    ):
        super().__init__(session, **kwargs)
        self.payments = payments or PaymentRepository(session)
        self.contracts = contracts or ContractRepository(session)

    def recheck(self, contract_id: UUID) -> CompletionCheck:
        return self.recheck_contract(self.contracts.get(contract_id))

    def recheck_contract(self, contract: Contract) -> CompletionCheck:
        self.session.flush()
        total_paid = sum(
            (p.effective_actual_amount for p in self.payments.confirmed_attached_payments(contract.id)),
            ZERO,
        )
        satisfied = total_paid + contract.prepaid_balance
        previous = contract.status

        if previous is not ContractStatus.CANCELLED:
            if covers(satisfied, contract.total_price, self.tolerance):
                contract.status = ContractStatus.COMPLETED
            else:
                contract.status = ContractStatus.ACTIVE

        if contract.status is not previous:
            self.session.flush()
            logger.info(
                "contract_status_changed",
                extra={
                    "contract_id": str(contract.id),
                    "from_status": previous.value,
                    "to_status": contract.status.value,
                    "total_satisfied": str(satisfied),
                    "total_price": str(contract.total_price),
                },
            )

        return CompletionCheck(
            contract_id=contract.id,
            total_paid=total_paid,
            total_satisfied=satisfied,
            total_price=contract.total_price,
            previous_status=previous,
            status=contract.status,
        )
