"""
Excess planning -- where a surplus goes.

Pure planner behind the Excess Distributor service.  Given a surplus and the
contract's progress it decides which future months are covered and how much
spills into the contract's prepaid balance.  The service persists the plan.

Conservation: surplus == sum(installment amounts) + to_prepaid, exactly.
"""

from dataclasses import dataclass
from decimal import Decimal

from installment_kernel.db.types import ZERO, as_money
from installment_kernel.domain.amounts import Classification, classify, is_positive
from installment_kernel.domain.policy import DEFAULT_TOLERANCE


@dataclass(frozen=True)
class PlannedInstallment:
    month_number: int
    amount: Decimal
    classification: Classification


@dataclass(frozen=True)
class ExcessPlan:
    surplus: Decimal
    installments: tuple[PlannedInstallment, ...]
    to_prepaid: Decimal

    @property
    def allocated(self) -> Decimal:
        return sum((i.amount for i in self.installments), ZERO)


def plan_excess_distribution(
    surplus: Decimal,
    paid_month_count: int,
    period: int,
    monthly_payment: Decimal,
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> ExcessPlan:
    """
    Spread ``surplus`` over the months after ``paid_month_count``.

    Each month takes at most ``monthly_payment``; the last one may be
    partial (UNDERPAID).  Whatever is left once every month up to ``period``
    is covered goes to prepaid, including a residue at or below the
    tolerance, so no money disappears.
    """
    surplus = as_money(surplus)
    monthly_payment = as_money(monthly_payment)
    remaining = surplus
    index = paid_month_count
    installments: list[PlannedInstallment] = []

    if is_positive(monthly_payment, tolerance):
        while is_positive(remaining, tolerance) and index < period:
            this_month = min(remaining, monthly_payment)
            installments.append(
                PlannedInstallment(
                    month_number=index + 1,
                    amount=this_month,
                    classification=classify(this_month, monthly_payment, tolerance),
                )
            )
            remaining -= this_month
            index += 1

    return ExcessPlan(
        surplus=surplus,
        installments=tuple(installments),
        to_prepaid=remaining if remaining > 0 else ZERO,
    )
