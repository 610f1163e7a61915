"""
BalanceLedger -- idempotent per-manager cash crediting.

Responsibility:
    Credits a manager's running Balance when money is authoritatively
    received.  Each credit is recorded as a BalanceEntry under an
    idempotency key; a key that already exists is a no-op.

Invariants enforced:
    - Never double-credit: uq_balance_entry_key makes the second insert of
      the same key fail inside a savepoint, and the credit is skipped.
    - No lost updates: the Balance row is locked (SELECT ... FOR UPDATE)
      and incremented in SQL (dollar = dollar + :delta), so concurrent
      confirmations for one manager serialize.
    - A missing Balance row is created on first credit; a creation race is
      resolved with a savepoint and a locked re-read.
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from installment_kernel.domain.enums import BalanceEntryKind
from installment_kernel.exceptions import BalanceNotFoundError
from installment_kernel.logging_config import get_logger
from installment_kernel.models.balance import Balance, BalanceEntry
from installment_kernel.services.base import BaseService

logger = get_logger("services.balance_ledger")


@dataclass(frozen=True)
class BalanceCredit:
    """A credit that was actually applied."""

    entry_id: UUID
    manager_id: UUID
    idempotency_key: str
    amount: Decimal


class BalanceLedger(BaseService):
    """Credits manager balances exactly once per idempotency key."""

    def credit(
        self,
        manager_id: UUID,
        amount: Decimal,
        idempotency_key: str,
        kind: BalanceEntryKind,
        actor_id: UUID,
        payment_id: UUID | None = None,
        contract_id: UUID | None = None,
    ) -> BalanceCredit | None:
        """
        Apply ``amount`` to the manager's balance unless ``idempotency_key``
        was already used.

        ``amount`` may be negative for corrections.  A zero amount records
        nothing.

        Returns:
            The applied credit, or None when skipped (zero or duplicate).
        """
        if amount == 0:
            return None

        if self._entry_exists(idempotency_key):
            logger.info(
                "balance_credit_duplicate",
                extra={"idempotency_key": idempotency_key, "manager_id": str(manager_id)},
            )
            return None

        balance = self._lock_or_create(manager_id, actor_id)

        entry = BalanceEntry(
            balance_id=balance.id,
            manager_id=manager_id,
            idempotency_key=idempotency_key,
            kind=kind,
            amount=amount,
            payment_id=payment_id,
            contract_id=contract_id,
            created_at=self.clock.now(),
            created_by_id=actor_id,
        )
        savepoint = self.session.begin_nested()
        try:
            self.session.add(entry)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            # A concurrent transaction committed the same key first
            savepoint.rollback()
            logger.info(
                "balance_credit_duplicate",
                extra={"idempotency_key": idempotency_key, "manager_id": str(manager_id)},
            )
            return None

        self.session.execute(
            update(Balance)
            .where(Balance.id == balance.id)
            .values(dollar=Balance.dollar + amount, updated_by_id=actor_id)
            .execution_options(synchronize_session=False)
        )
        self.session.expire(balance, ["dollar"])

        logger.info(
            "balance_credited",
            extra={
                "manager_id": str(manager_id),
                "amount": str(amount),
                "kind": kind.value,
                "idempotency_key": idempotency_key,
            },
        )
        return BalanceCredit(
            entry_id=entry.id,
            manager_id=manager_id,
            idempotency_key=idempotency_key,
            amount=amount,
        )

    def get_balance(self, manager_id: UUID) -> Balance:
        balance = self.session.scalars(
            select(Balance).where(Balance.manager_id == manager_id)
        ).first()
        if balance is None:
            raise BalanceNotFoundError(manager_id)
        return balance

    def credited_total(self, idempotency_key_prefix: str) -> Decimal:
        """Sum of entries whose key starts with the prefix."""
        amounts = self.session.scalars(
            select(BalanceEntry.amount).where(
                BalanceEntry.idempotency_key.startswith(idempotency_key_prefix)
            )
        )
        return sum(amounts, Decimal("0"))

    def _entry_exists(self, idempotency_key: str) -> bool:
        return (
            self.session.scalar(
                select(BalanceEntry.id).where(
                    BalanceEntry.idempotency_key == idempotency_key
                )
            )
            is not None
        )

    def _select_locked(self, manager_id: UUID) -> Balance | None:
        return self.session.execute(
            select(Balance)
            .where(Balance.manager_id == manager_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _lock_or_create(self, manager_id: UUID, actor_id: UUID) -> Balance:
        balance = self._select_locked(manager_id)
        if balance is not None:
            return balance

        savepoint = self.session.begin_nested()
        try:
            balance = Balance(
                manager_id=manager_id,
                dollar=Decimal("0"),
                sum=Decimal("0"),
                created_at=self.clock.now(),
                updated_at=self.clock.now(),
                created_by_id=actor_id,
            )
            self.session.add(balance)
            self.session.flush()
            savepoint.commit()
            logger.debug("balance_created", extra={"manager_id": str(manager_id)})
            return balance
        except IntegrityError:
            logger.debug("balance_create_race_retry", extra={"manager_id": str(manager_id)})
            savepoint.rollback()
            balance = self._select_locked(manager_id)
            if balance is None:
                raise
            return balance
