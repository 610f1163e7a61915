"""
Module: installment_kernel.models.contract
Responsibility: ORM persistence for installment contracts and their
    append-only term-edit history.
Architecture position: Kernel > Models.  May import from db/ and domain
    value types only.  MUST NOT import from services/ or selectors/.

Invariants enforced (by services, this model is the data source):
    - status = COMPLETED iff confirmed payments plus prepaid_balance cover
      total_price within tolerance (ACTIVE/COMPLETED contracts only).
    - original_payment_day is fixed when the contract is opened and every
      due date is anchored to it.
    - previous_payment_date and postponed_at are set together, only while a
      postponement is active.
    - Contracts are never physically deleted; is_deleted hides them.

Audit relevance:
    ContractEdit rows record every term change with the payments it touched
    and a computed impact summary.  They are write-only: recomputation always
    derives from current Payment rows.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, CheckConstraint, ForeignKey, Index, SmallInteger, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from installment_kernel.db.base import Base, TrackedBase, UUIDString
from installment_kernel.db.types import enum_column
from installment_kernel.domain.enums import ContractStatus
from installment_kernel.domain.terms import ContractTerms


class Contract(TrackedBase):
    """
    An installment agreement: initial payment plus ``period`` monthly
    installments of ``monthly_payment`` towards ``total_price``.

    Payments attached to the contract are those with a non-null
    ``attached_seq``; ``payment_seq`` is the counter that numbers them.
    """

    __tablename__ = "contracts"

    __table_args__ = (
        CheckConstraint("period >= 1", name="ck_contract_period_positive"),
        CheckConstraint("prepaid_balance >= 0", name="ck_contract_prepaid_non_negative"),
        Index("idx_contract_customer_status", "customer_id", "status"),
        Index("idx_contract_manager", "manager_id"),
    )

    # Parties
    customer_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    manager_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    product_name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Terms
    total_price: Mapped[Decimal] = mapped_column(nullable=False)
    initial_payment: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    monthly_payment: Mapped[Decimal] = mapped_column(nullable=False)
    period: Mapped[int] = mapped_column(nullable=False)
    start_date: Mapped[date] = mapped_column(nullable=False)

    # Schedule state
    next_payment_date: Mapped[date | None] = mapped_column(nullable=True)
    original_payment_day: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    previous_payment_date: Mapped[date | None] = mapped_column(nullable=True)
    postponed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Ledger state
    prepaid_balance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    status: Mapped[ContractStatus] = mapped_column(
        enum_column(ContractStatus),
        nullable=False,
        default=ContractStatus.ACTIVE,
    )
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Attachment counter for payments
    payment_seq: Mapped[int] = mapped_column(nullable=False, default=0)

    edit_history: Mapped[list["ContractEdit"]] = relationship(
        back_populates="contract",
        order_by="ContractEdit.edited_at",
    )

    @property
    def is_postponed(self) -> bool:
        return self.previous_payment_date is not None and self.postponed_at is not None

    @property
    def anchor_day(self) -> int:
        """Day-of-month every due date is anchored to."""
        return self.original_payment_day or self.start_date.day

    @property
    def terms(self) -> ContractTerms:
        return ContractTerms(
            total_price=self.total_price,
            initial_payment=self.initial_payment,
            monthly_payment=self.monthly_payment,
        )

    def __repr__(self) -> str:
        return f"<Contract {self.id}: {self.product_name} ({self.status.value})>"


class ContractEdit(Base):
    """One applied term edit, with the payments it touched and its impact."""

    __tablename__ = "contract_edits"

    __table_args__ = (Index("idx_contract_edit_contract", "contract_id", "edited_at"),)

    contract_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("contracts.id"), nullable=False
    )
    edited_at: Mapped[datetime] = mapped_column(nullable=False)
    edited_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # [{"field": ..., "old": ..., "new": ...}]
    changes: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    affected_payment_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    impact: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    contract: Mapped[Contract] = relationship(back_populates="edit_history")

    def __repr__(self) -> str:
        fields = ",".join(c["field"] for c in self.changes)
        return f"<ContractEdit {self.id}: {fields}>"
