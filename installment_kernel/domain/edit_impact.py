"""
Edit impact -- retroactive recomputation of paid installments.

When the monthly amount of a contract changes after months were paid, each
paid month is re-classified against the new amount.  An overshoot on one
month discounts the expectation of the next (the cascading carry); a
shortfall becomes a compensating EXTRA payment and resets the carry.

Each month is measured against ``new_monthly - carry``.  Consecutive
overpaid months accumulate their excess into the carry; a PAID or UNDERPAID
month resets it.  Whatever carry survives the last month is credited to the
contract's prepaid balance.

Pure: the contract edit service reads the inputs and writes the results.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from uuid import UUID

from installment_kernel.db.types import ZERO, as_money
from installment_kernel.domain.amounts import classify
from installment_kernel.domain.enums import PaymentStatus
from installment_kernel.domain.policy import DEFAULT_TOLERANCE


@dataclass(frozen=True)
class PaidInstallment:
    """A confirmed monthly payment, in chronological order."""

    payment_id: UUID
    paid_amount: Decimal


@dataclass(frozen=True)
class InstallmentRecalc:
    payment_id: UUID
    paid_amount: Decimal
    effective_expected: Decimal
    status: PaymentStatus
    remaining_amount: Decimal
    excess_amount: Decimal

    @property
    def needs_compensation(self) -> bool:
        return self.status is PaymentStatus.UNDERPAID


@dataclass(frozen=True)
class EditImpact:
    new_monthly_payment: Decimal
    recalcs: tuple[InstallmentRecalc, ...]
    carry_to_prepaid: Decimal

    @property
    def underpaid(self) -> tuple[InstallmentRecalc, ...]:
        return tuple(r for r in self.recalcs if r.status is PaymentStatus.UNDERPAID)

    @property
    def overpaid(self) -> tuple[InstallmentRecalc, ...]:
        return tuple(r for r in self.recalcs if r.status is PaymentStatus.OVERPAID)

    @property
    def total_shortage(self) -> Decimal:
        return sum((r.remaining_amount for r in self.underpaid), ZERO)

    @property
    def total_excess(self) -> Decimal:
        return sum((r.excess_amount for r in self.overpaid), ZERO)

    @property
    def affected_payment_ids(self) -> tuple[UUID, ...]:
        return tuple(r.payment_id for r in self.recalcs)

    def summary(self) -> dict[str, Any]:
        """Impact summary as stored in contract edit history."""
        return {
            "underpaidCount": len(self.underpaid),
            "overpaidCount": len(self.overpaid),
            "totalShortage": str(self.total_shortage),
            "totalExcess": str(self.total_excess),
            "additionalPaymentsCreated": len(self.underpaid),
            "prepaidCredited": str(self.carry_to_prepaid),
        }


EMPTY_IMPACT_SUMMARY = {
    "underpaidCount": 0,
    "overpaidCount": 0,
    "totalShortage": "0",
    "totalExcess": "0",
    "additionalPaymentsCreated": 0,
    "prepaidCredited": "0",
}


def cascade_monthly_change(
    installments: Sequence[PaidInstallment],
    new_monthly_payment: Decimal,
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> EditImpact:
    """Re-classify ``installments`` (oldest first) against the new amount."""
    new_monthly_payment = as_money(new_monthly_payment)
    carry = ZERO
    recalcs: list[InstallmentRecalc] = []

    for installment in installments:
        effective_expected = new_monthly_payment - carry
        result = classify(installment.paid_amount, effective_expected, tolerance)
        recalcs.append(
            InstallmentRecalc(
                payment_id=installment.payment_id,
                paid_amount=installment.paid_amount,
                effective_expected=effective_expected,
                status=result.status,
                remaining_amount=result.remaining_amount,
                excess_amount=result.excess_amount,
            )
        )
        if result.status is PaymentStatus.OVERPAID:
            carry += result.excess_amount
        else:
            carry = ZERO

    return EditImpact(
        new_monthly_payment=new_monthly_payment,
        recalcs=tuple(recalcs),
        carry_to_prepaid=carry,
    )
