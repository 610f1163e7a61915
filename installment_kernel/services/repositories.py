"""
Repositories -- persistence access for payments and contracts.

Services receive these by construction instead of querying ad hoc, so every
"which payments count" rule lives in one place:

    - a payment counts toward a contract when it is attached
      (attached_seq IS NOT NULL) and confirmed (is_paid);
    - month progress is the number of attached, confirmed MONTHLY payments.

Both compare-and-set claims are the at-most-once guard for confirm/reject:
the UPDATE matches only while the payment is still unconfirmed and not
rejected, so of two racing transactions exactly one sees rowcount == 1.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from installment_kernel.domain.enums import ContractStatus, PaymentStatus, PaymentType
from installment_kernel.exceptions import ContractNotFoundError, PaymentNotFoundError
from installment_kernel.models.contract import Contract
from installment_kernel.models.debtor import Debtor
from installment_kernel.models.payment import Payment


class PaymentRepository:
    def __init__(self, session: Session):
        self.session = session

    def add(self, payment: Payment) -> Payment:
        self.session.add(payment)
        self.session.flush()
        return payment

    def get(self, payment_id: UUID) -> Payment:
        payment = self.session.get(Payment, payment_id)
        if payment is None:
            raise PaymentNotFoundError(payment_id)
        return payment

    def get_for_update(self, payment_id: UUID) -> Payment:
        """Load a payment with a row lock, refreshing any cached copy."""
        payment = self.session.execute(
            select(Payment)
            .where(Payment.id == payment_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if payment is None:
            raise PaymentNotFoundError(payment_id)
        return payment

    def claim_for_confirmation(self, payment_id: UUID) -> bool:
        """Flip is_paid false -> true.  False means another writer won."""
        result = self.session.execute(
            update(Payment)
            .where(
                Payment.id == payment_id,
                Payment.is_paid.is_(False),
                Payment.status != PaymentStatus.REJECTED,
            )
            .values(is_paid=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def claim_for_rejection(self, payment_id: UUID) -> bool:
        """Flip an unconfirmed payment to REJECTED.  False means it already moved."""
        result = self.session.execute(
            update(Payment)
            .where(
                Payment.id == payment_id,
                Payment.is_paid.is_(False),
                Payment.status != PaymentStatus.REJECTED,
            )
            .values(status=PaymentStatus.REJECTED)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def attached_payments(self, contract_id: UUID) -> list[Payment]:
        return list(
            self.session.scalars(
                select(Payment)
                .where(
                    Payment.contract_id == contract_id,
                    Payment.attached_seq.is_not(None),
                )
                .order_by(Payment.attached_seq)
            )
        )

    def confirmed_attached_payments(self, contract_id: UUID) -> list[Payment]:
        return [p for p in self.attached_payments(contract_id) if p.is_paid]

    def paid_monthly_count(self, contract_id: UUID) -> int:
        return self.session.scalar(
            select(func.count(Payment.id)).where(
                Payment.contract_id == contract_id,
                Payment.attached_seq.is_not(None),
                Payment.is_paid.is_(True),
                Payment.payment_type == PaymentType.MONTHLY,
            )
        )

    def paid_monthly_chronological(self, contract_id: UUID, lock: bool = True) -> list[Payment]:
        """Confirmed attached MONTHLY payments, oldest first."""
        stmt = (
            select(Payment)
            .where(
                Payment.contract_id == contract_id,
                Payment.attached_seq.is_not(None),
                Payment.is_paid.is_(True),
                Payment.payment_type == PaymentType.MONTHLY,
            )
            .order_by(
                Payment.paid_on,
                Payment.target_month,
                Payment.attached_seq,
            )
        )
        if lock:
            stmt = stmt.with_for_update()
        return list(self.session.scalars(stmt))

    def compensations(self, payment_id: UUID) -> list[Payment]:
        """Non-rejected EXTRA payments created to make up ``payment``'s shortfall."""
        return list(
            self.session.scalars(
                select(Payment).where(
                    Payment.linked_payment_id == payment_id,
                    Payment.status != PaymentStatus.REJECTED,
                )
            )
        )

    def find_initial(self, contract_id: UUID) -> Payment | None:
        return self.session.scalars(
            select(Payment)
            .where(
                Payment.contract_id == contract_id,
                Payment.payment_type == PaymentType.INITIAL,
                Payment.status != PaymentStatus.REJECTED,
            )
            .order_by(Payment.created_at)
            .limit(1)
        ).first()

    def expired_pending_ids(self, older_than: datetime) -> list[UUID]:
        """Ids of unconfirmed PENDING payments submitted before ``older_than``.

        Rows without submitted_at (older data) are aged from created_at.
        """
        submitted = func.coalesce(Payment.submitted_at, Payment.created_at)
        return list(
            self.session.scalars(
                select(Payment.id)
                .where(
                    Payment.status == PaymentStatus.PENDING,
                    Payment.is_paid.is_(False),
                    submitted < older_than,
                )
                .order_by(submitted)
            )
        )


class ContractRepository:
    def __init__(self, session: Session):
        self.session = session

    def add(self, contract: Contract) -> Contract:
        self.session.add(contract)
        self.session.flush()
        return contract

    def get(self, contract_id: UUID) -> Contract:
        contract = self.session.get(Contract, contract_id)
        if contract is None or contract.is_deleted:
            raise ContractNotFoundError(contract_id)
        return contract

    def get_for_update(self, contract_id: UUID) -> Contract:
        contract = self.session.execute(
            select(Contract)
            .where(Contract.id == contract_id, Contract.is_deleted.is_(False))
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if contract is None:
            raise ContractNotFoundError(contract_id)
        return contract

    def find_active_for_customer(self, customer_id: UUID) -> Contract | None:
        """Most recently opened active contract of a customer, locked."""
        return self.session.execute(
            select(Contract)
            .where(
                Contract.customer_id == customer_id,
                Contract.status == ContractStatus.ACTIVE,
                Contract.is_deleted.is_(False),
            )
            .order_by(Contract.created_at.desc())
            .limit(1)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def attach(self, contract: Contract, payment: Payment) -> None:
        """Append ``payment`` to the contract's payment list (idempotent).

        The caller must hold the contract row lock; payment_seq is bumped
        in place.
        """
        if payment.attached_seq is not None and payment.contract_id == contract.id:
            return
        contract.payment_seq += 1
        payment.contract_id = contract.id
        payment.attached_seq = contract.payment_seq
        self.session.flush()

    def detach(self, payment: Payment) -> bool:
        if payment.attached_seq is None:
            return False
        payment.attached_seq = None
        self.session.flush()
        return True

    def get_debtor(self, contract_id: UUID) -> Debtor | None:
        return self.session.scalars(
            select(Debtor).where(Debtor.contract_id == contract_id)
        ).first()

    def delete_debtor(self, contract_id: UUID) -> int:
        result = self.session.execute(
            delete(Debtor)
            .where(Debtor.contract_id == contract_id)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount
