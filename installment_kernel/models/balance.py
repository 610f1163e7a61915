"""
Module: installment_kernel.models.balance
Responsibility: Per-manager running cash balance and the ledger of credits
    applied to it.
Architecture position: Kernel > Models.

Invariants enforced:
    - One Balance row per manager (uq_balance_manager).
    - One BalanceEntry per idempotency key (uq_balance_entry_key).  A payment
      is credited under ``payment:<id>``, so a retried or concurrent
      confirmation can never credit it twice.
    - Balance totals are accumulators: they are incremented in SQL
      (dollar = dollar + :delta) under a row lock and never recomputed.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from installment_kernel.db.base import Base, TrackedBase, UUIDString
from installment_kernel.db.types import enum_column
from installment_kernel.domain.enums import BalanceEntryKind


class Balance(TrackedBase):
    """Running totals for one manager."""

    __tablename__ = "balances"

    __table_args__ = (UniqueConstraint("manager_id", name="uq_balance_manager"),)

    manager_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # Cash received in contract currency
    dollar: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    # Local-currency cash; only debited by expenses, which live outside the engine
    sum: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    def __repr__(self) -> str:
        return f"<Balance manager={self.manager_id} dollar={self.dollar}>"


class BalanceEntry(Base):
    """One idempotent credit (or correction) applied to a Balance."""

    __tablename__ = "balance_entries"

    __table_args__ = (
        UniqueConstraint("idempotency_key", name="uq_balance_entry_key"),
        Index("idx_balance_entry_manager", "manager_id"),
        Index("idx_balance_entry_payment", "payment_id"),
    )

    balance_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("balances.id"), nullable=False
    )
    manager_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    idempotency_key: Mapped[str] = mapped_column(String(200), nullable=False)
    kind: Mapped[BalanceEntryKind] = mapped_column(
        enum_column(BalanceEntryKind), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    payment_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    contract_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    created_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    def __repr__(self) -> str:
        return f"<BalanceEntry {self.idempotency_key}: {self.amount}>"
