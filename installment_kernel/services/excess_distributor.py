"""
ExcessDistributor -- move a surplus into the following months.

Responsibility:
    Persists an ExcessPlan: one confirmed MONTHLY payment per covered month,
    attached to the contract, and any remainder added to the contract's
    prepaid balance.

Invariants enforced:
    - surplus == sum(created actual amounts) + prepaid increase, exactly.
    - Month numbering continues from the count of confirmed monthly
      payments, so no month is covered twice by one distribution.
    - Created payments are never OVERPAID: each takes at most one monthly
      amount.

The caller credits the balance ledger for the created payments and for the
prepaid remainder; distribution itself never touches balances.
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from installment_kernel.db.types import ZERO
from installment_kernel.domain.enums import PaymentType
from installment_kernel.domain.excess import ExcessPlan, plan_excess_distribution
from installment_kernel.logging_config import get_logger
from installment_kernel.models.contract import Contract
from installment_kernel.models.payment import Payment
from installment_kernel.services.base import BaseService
from installment_kernel.services.repositories import ContractRepository, PaymentRepository

logger = get_logger("services.excess_distributor")


@dataclass(frozen=True)
class Distribution:
    payments: tuple[Payment, ...]
    prepaid_added: Decimal
    plan: ExcessPlan


class ExcessDistributor(BaseService):

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

    def distribute(
        self,
        surplus: Decimal,
        contract: Contract,
        triggering_payment: Payment,
        actor_id: UUID,
    ) -> list[Payment]:
        """Distribute ``surplus``; return the newly created payments."""
        return list(self.distribute_detailed(surplus, contract, triggering_payment, actor_id).payments)

    def distribute_detailed(
        self,
        surplus: Decimal,
        contract: Contract,
        triggering_payment: Payment,
        actor_id: UUID,
    ) -> Distribution:
        self.session.flush()
        paid_months = self.payments.paid_monthly_count(contract.id)
        plan = plan_excess_distribution(
            surplus=surplus,
            paid_month_count=paid_months,
            period=contract.period,
            monthly_payment=contract.monthly_payment,
            tolerance=self.tolerance,
        )

        now = self.clock.now()
        created: list[Payment] = []
        for slot in plan.installments:
            payment = Payment(
                contract_id=contract.id,
                customer_id=contract.customer_id,
                manager_id=triggering_payment.manager_id,
                amount=contract.monthly_payment,
                actual_amount=slot.amount,
                expected_amount=contract.monthly_payment,
                remaining_amount=slot.classification.remaining_amount,
                excess_amount=ZERO,
                payment_type=PaymentType.MONTHLY,
                target_month=slot.month_number,
                is_paid=True,
                status=slot.classification.status,
                confirmed_at=now,
                confirmed_by_id=actor_id,
                paid_on=self.clock.today(),
                linked_payment_id=triggering_payment.id,
                note=f"Covered by excess of payment {triggering_payment.id}",
                created_at=now,
                updated_at=now,
                created_by_id=actor_id,
            )
            self.payments.add(payment)
            self.contracts.attach(contract, payment)
            created.append(payment)

        if plan.to_prepaid > 0:
            contract.prepaid_balance = contract.prepaid_balance + plan.to_prepaid
            self.session.flush()

        logger.info(
            "excess_distributed",
            extra={
                "contract_id": str(contract.id),
                "triggering_payment_id": str(triggering_payment.id),
                "surplus": str(plan.surplus),
                "months_covered": [slot.month_number for slot in plan.installments],
                "prepaid_added": str(plan.to_prepaid),
            },
        )
        return Distribution(payments=tuple(created), prepaid_added=plan.to_prepaid, plan=plan)
