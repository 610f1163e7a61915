"""
Module: installment_kernel.selectors.balance_selector
Responsibility: Read-only access to manager balances and the credit entries
    behind them.
Architecture position: Kernel > Selectors.

The stored Balance.dollar must always equal the sum of the manager's
BalanceEntry amounts; ``entries_total`` exposes the right-hand side so the
two can be compared.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from installment_kernel.domain.enums import BalanceEntryKind
from installment_kernel.models.balance import Balance, BalanceEntry
from installment_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class BalanceDTO:
    manager_id: UUID
    dollar: Decimal
    sum: Decimal
    updated_at: datetime | None


@dataclass(frozen=True)
class BalanceEntryDTO:
    id: UUID
    idempotency_key: str
    kind: BalanceEntryKind
    amount: Decimal
    payment_id: UUID | None
    contract_id: UUID | None
    created_at: datetime


class BalanceSelector(BaseSelector[Balance]):

    def balance(self, manager_id: UUID) -> BalanceDTO | None:
        """The manager's balance, or None if nothing was ever credited."""
        balance = self.session.scalars(
            select(Balance).where(Balance.manager_id == manager_id)
        ).first()
        if balance is None:
            return None
        return BalanceDTO(
            manager_id=balance.manager_id,
            dollar=balance.dollar,
            sum=balance.sum,
            updated_at=balance.updated_at,
        )

    def entries(self, manager_id: UUID) -> list[BalanceEntryDTO]:
        rows = self.session.scalars(
            select(BalanceEntry)
            .where(BalanceEntry.manager_id == manager_id)
            .order_by(BalanceEntry.created_at, BalanceEntry.idempotency_key)
        )
        return [
            BalanceEntryDTO(
                id=row.id,
                idempotency_key=row.idempotency_key,
                kind=row.kind,
                amount=row.amount,
                payment_id=row.payment_id,
                contract_id=row.contract_id,
                created_at=row.created_at,
            )
            for row in rows
        ]

    def entries_total(self, manager_id: UUID) -> Decimal:
        total = self.session.scalar(
            select(func.coalesce(func.sum(BalanceEntry.amount), 0)).where(
                BalanceEntry.manager_id == manager_id
            )
        )
        return Decimal(str(total))
