"""
Module: installment_kernel.selectors.contract_selector
Responsibility: Read-only views of a contract, its payment list and its
    edit history.
Architecture position: Kernel > Selectors.

The payment list is the attached payments in attachment order; a rejected
payment drops out of it because rejection detaches it.  Month progress and
the satisfied total are computed from current rows the same way the
completion recheck computes them, so the summary always agrees with the
contract's status.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select

from installment_kernel.db.types import ZERO
from installment_kernel.domain.enums import (
    ContractStatus,
    PaymentReason,
    PaymentStatus,
    PaymentType,
)
from installment_kernel.exceptions import ContractNotFoundError
from installment_kernel.models.contract import Contract, ContractEdit
from installment_kernel.models.payment import Payment
from installment_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class PaymentDTO:
    id: UUID
    payment_type: PaymentType
    target_month: int
    status: PaymentStatus
    is_paid: bool
    amount: Decimal
    actual_amount: Decimal
    expected_amount: Decimal
    remaining_amount: Decimal
    excess_amount: Decimal
    attached_seq: int | None
    linked_payment_id: UUID | None
    reason: PaymentReason | None
    confirmed_at: datetime | None
    paid_on: date | None
    note: str | None

    @classmethod
    def from_model(cls, payment: Payment) -> "PaymentDTO":
        return cls(
            id=payment.id,
            payment_type=payment.payment_type,
            target_month=payment.target_month,
            status=payment.status,
            is_paid=payment.is_paid,
            amount=payment.amount,
            actual_amount=payment.effective_actual_amount,
            expected_amount=payment.effective_expected_amount,
            remaining_amount=payment.remaining_amount,
            excess_amount=payment.excess_amount,
            attached_seq=payment.attached_seq,
            linked_payment_id=payment.linked_payment_id,
            reason=payment.reason,
            confirmed_at=payment.confirmed_at,
            paid_on=payment.paid_on,
            note=payment.note,
        )


@dataclass(frozen=True)
class ContractSummaryDTO:
    id: UUID
    customer_id: UUID
    manager_id: UUID
    product_name: str
    status: ContractStatus
    total_price: Decimal
    initial_payment: Decimal
    monthly_payment: Decimal
    period: int
    start_date: date
    next_payment_date: date | None
    is_postponed: bool
    prepaid_balance: Decimal
    paid_month_count: int
    total_paid: Decimal
    payments: tuple[PaymentDTO, ...]

    @property
    def total_satisfied(self) -> Decimal:
        return self.total_paid + self.prepaid_balance

    @property
    def outstanding(self) -> Decimal:
        """What is still owed; never negative."""
        return max(self.total_price - self.total_satisfied, ZERO)


@dataclass(frozen=True)
class ContractEditDTO:
    id: UUID
    edited_at: datetime
    edited_by_id: UUID
    changes: tuple[dict[str, Any], ...]
    affected_payment_ids: tuple[UUID, ...]
    impact: dict[str, Any]


class ContractSelector(BaseSelector[Contract]):
    """Contract read model."""

    def summary(self, contract_id: UUID) -> ContractSummaryDTO:
        """
        Raises:
            ContractNotFoundError: unknown or soft-deleted contract.
        """
        contract = self.session.get(Contract, contract_id)
        if contract is None or contract.is_deleted:
            raise ContractNotFoundError(contract_id)

        attached = self._payments(contract.id, include_detached=False)
        confirmed = [p for p in attached if p.is_paid]
        return ContractSummaryDTO(
            id=contract.id,
            customer_id=contract.customer_id,
            manager_id=contract.manager_id,
            product_name=contract.product_name,
            status=contract.status,
            total_price=contract.total_price,
            initial_payment=contract.initial_payment,
            monthly_payment=contract.monthly_payment,
            period=contract.period,
            start_date=contract.start_date,
            next_payment_date=contract.next_payment_date,
            is_postponed=contract.is_postponed,
            prepaid_balance=contract.prepaid_balance,
            paid_month_count=sum(
                1 for p in confirmed if p.payment_type is PaymentType.MONTHLY
            ),
            total_paid=sum((p.effective_actual_amount for p in confirmed), ZERO),
            payments=tuple(PaymentDTO.from_model(p) for p in attached),
        )

    def payments(self, contract_id: UUID, include_detached: bool = False) -> list[PaymentDTO]:
        """
        Payments of a contract.

        By default only the attached ones, in attachment order.  With
        ``include_detached`` every payment referencing the contract is
        returned (rejected payments, scheduled slots not yet attached),
        attached ones first.
        """
        return [
            PaymentDTO.from_model(p)
            for p in self._payments(contract_id, include_detached=include_detached)
        ]

    def edit_history(self, contract_id: UUID) -> list[ContractEditDTO]:
        edits = self.session.scalars(
            select(ContractEdit)
            .where(ContractEdit.contract_id == contract_id)
            .order_by(ContractEdit.edited_at, ContractEdit.id)
        )
        return [
            ContractEditDTO(
                id=edit.id,
                edited_at=edit.edited_at,
                edited_by_id=edit.edited_by_id,
                changes=tuple(edit.changes),
                affected_payment_ids=tuple(UUID(pid) for pid in edit.affected_payment_ids),
                impact=dict(edit.impact),
            )
            for edit in edits
        ]

    def _payments(self, contract_id: UUID, include_detached: bool) -> list[Payment]:
        stmt = select(Payment).where(Payment.contract_id == contract_id)
        if not include_detached:
            stmt = stmt.where(Payment.attached_seq.is_not(None))
        stmt = stmt.order_by(
            Payment.attached_seq.is_(None),
            Payment.attached_seq,
            Payment.created_at,
        )
        return list(self.session.scalars(stmt))
