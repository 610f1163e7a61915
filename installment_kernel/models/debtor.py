"""
Module: installment_kernel.models.debtor
Responsibility: Marker that a contract currently owes an overdue amount.

The engine only deletes these rows (a confirmation means the contract caught
up on at least the confirmed slot) and updates their debt amount when the
monthly payment is edited.  An external scan recreates them.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from installment_kernel.db.base import Base, UUIDString


class Debtor(Base):
    __tablename__ = "debtors"

    __table_args__ = (UniqueConstraint("contract_id", name="uq_debtor_contract"),)

    contract_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("contracts.id"), nullable=False
    )
    debt_amount: Mapped[Decimal] = mapped_column(nullable=False)
    due_date: Mapped[date] = mapped_column(nullable=False)
    overdue_days: Mapped[int] = mapped_column(nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<Debtor contract={self.contract_id} debt={self.debt_amount}>"
