"""
PaymentScheduleService -- next-due-date advancement and postponement.

Responsibility:
    Moves a contract's next_payment_date forward when a monthly installment
    is confirmed, and records manual postponements.

Invariants enforced:
    - Every computed due date sits on the contract's original payment day,
      clamped to the month's length.
    - Advancing from a normal schedule is relative to the current due date,
      so the due date after month N is strictly later than the one before.
    - A postponed contract returns to its cadence (one month after today)
      on the next confirmation, and the postponement markers are cleared.
"""

from dataclasses import dataclass
from datetime import date
from uuid import UUID

from installment_kernel.domain.schedule import add_months, advance_next_payment_date
from installment_kernel.exceptions import ScheduleValidationError
from installment_kernel.logging_config import get_logger
from installment_kernel.models.contract import Contract
from installment_kernel.services.base import BaseService
from installment_kernel.services.repositories import ContractRepository

logger = get_logger("services.payment_schedule")


@dataclass(frozen=True)
class ScheduleChange:
    contract_id: UUID
    previous_date: date | None
    next_payment_date: date
    was_postponed: bool


class PaymentScheduleService(BaseService):

    def __init__(self, session, contracts: ContractRepository | None = None, **kwargs):
        super().__init__(session, **kwargs)
        self.contracts = contracts or ContractRepository(session)

    def advance(self, contract: Contract) -> ScheduleChange:
        """Move next_payment_date one installment forward."""
        if contract.original_payment_day is None:
            contract.original_payment_day = contract.start_date.day

        current = contract.next_payment_date or contract.start_date
        postponed = contract.is_postponed
        new_date = advance_next_payment_date(
            current_next=current,
            anchor_day=contract.original_payment_day,
            today=self.clock.today(),
            postponed=postponed,
        )
        contract.next_payment_date = new_date
        if postponed:
            contract.previous_payment_date = None
            contract.postponed_at = None
        self.session.flush()

        logger.info(
            "next_payment_date_advanced",
            extra={
                "contract_id": str(contract.id),
                "previous_date": current,
                "next_payment_date": new_date,
                "was_postponed": postponed,
            },
        )
        return ScheduleChange(contract.id, current, new_date, postponed)

    def postpone(self, contract_id: UUID, new_date: date, actor_id: UUID) -> ScheduleChange:
        """
        Defer the next due date to ``new_date``.

        Raises:
            ContractNotFoundError: No such contract.
            ScheduleValidationError: ``new_date`` does not move the due date forward.
        """
        contract = self.contracts.get_for_update(contract_id)
        current = contract.next_payment_date or add_months(
            contract.start_date, 1, contract.anchor_day
        )
        if new_date <= current:
            raise ScheduleValidationError(
                contract_id,
                f"Postponed date {new_date} must be after the current due date {current}",
            )

        # Keep the first deferred date when postponing twice
        if not contract.is_postponed:
            contract.previous_payment_date = current
        contract.postponed_at = self.clock.now()
        contract.next_payment_date = new_date
        contract.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "payment_postponed",
            extra={
                "contract_id": str(contract_id),
                "previous_date": current,
                "next_payment_date": new_date,
            },
        )
        return ScheduleChange(contract.id, current, new_date, True)
