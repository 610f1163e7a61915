"""
Module: installment_kernel.models.payment
Responsibility: ORM persistence for individual money movements against a
    contract: the initial payment, monthly installments and compensating
    extra payments.
Architecture position: Kernel > Models.

Invariants enforced (by services):
    - A payment leaves SCHEDULED/PENDING exactly once, into a confirmed
      status (PAID/UNDERPAID/OVERPAID) or into REJECTED.
    - is_paid, confirmed_at and confirmed_by_id are set together, once.
    - A confirmed status is a pure function of the effective actual and
      expected amounts at confirmation.
    - target_month is 0 for INITIAL/EXTRA and 1..period for MONTHLY.

Money fields are read through effective_actual_amount and
effective_expected_amount.  Rows migrated from older data may lack
actual_amount or expected_amount; both fall back to ``amount``.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from installment_kernel.db.base import TrackedBase, UUIDString
from installment_kernel.db.types import enum_column
from installment_kernel.domain.enums import PaymentReason, PaymentStatus, PaymentType


class Payment(TrackedBase):
    """One installment slot's money movement."""

    __tablename__ = "payments"

    __table_args__ = (
        CheckConstraint("target_month >= 0", name="ck_payment_target_month"),
        Index("idx_payment_contract_attached", "contract_id", "attached_seq"),
        Index("idx_payment_pending_age", "status", "is_paid", "submitted_at"),
        Index("idx_payment_customer", "customer_id"),
    )

    contract_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("contracts.id"), nullable=True
    )
    customer_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    manager_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # Money
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    actual_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    expected_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    remaining_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    excess_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    # Slot identity
    payment_type: Mapped[PaymentType] = mapped_column(
        enum_column(PaymentType), nullable=False, default=PaymentType.MONTHLY
    )
    target_month: Mapped[int] = mapped_column(nullable=False, default=0)

    # State
    is_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[PaymentStatus] = mapped_column(
        enum_column(PaymentStatus), nullable=False, default=PaymentStatus.PENDING
    )
    confirmed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    confirmed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    # When the payment entered PENDING; the expiry sweep measures age from here
    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    paid_on: Mapped[date | None] = mapped_column(nullable=True)

    # Compensating payments point at the payment they make up for
    linked_payment_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("payments.id"), nullable=True
    )
    reason: Mapped[PaymentReason | None] = mapped_column(
        enum_column(PaymentReason), nullable=True
    )
    note: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    # Position in the contract's payment list; NULL means not attached
    attached_seq: Mapped[int | None] = mapped_column(nullable=True)

    @property
    def effective_actual_amount(self) -> Decimal:
        """What was received: actual_amount, else the nominal amount."""
        return self.actual_amount if self.actual_amount is not None else self.amount

    @property
    def effective_expected_amount(self) -> Decimal:
        """What this slot had to cover: expected_amount, else the nominal amount."""
        return self.expected_amount if self.expected_amount is not None else self.amount

    @property
    def is_attached(self) -> bool:
        return self.attached_seq is not None

    def append_note(self, text: str) -> None:
        self.note = f"{self.note}\n{text}" if self.note else text

    def __repr__(self) -> str:
        return (
            f"<Payment {self.id}: {self.payment_type.value} m{self.target_month} "
            f"{self.amount} ({self.status.value})>"
        )
