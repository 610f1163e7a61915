"""
ContractEditService -- reconcile term edits against recorded payments.

Responsibility:
    Validates and applies changes to a contract's monthly payment, initial
    payment and total price, recomputing every payment the change affects.

    - monthly_payment: paid monthly installments are re-classified oldest
      first with a cascading carry (domain.edit_impact).  Shortfalls become
      unconfirmed EXTRA payments linked to the short month; a final carry
      goes to the prepaid balance.
    - initial_payment: the INITIAL payment and the manager's balance move by
      the delta.  No cascade.
    - total_price: no payment changes.

    Every edit ends with the completion recheck and appends a ContractEdit
    row with the changes, affected payment ids and the impact summary.

Invariants enforced:
    - Validation runs before any write; the edit is applied whole or not at
      all.
    - Every re-classified payment's expected_amount is the new monthly
      payment.
    - preview_edit() never mutates anything.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from installment_kernel.db.types import ZERO, as_money
from installment_kernel.domain.edit_impact import (
    EMPTY_IMPACT_SUMMARY,
    EditImpact,
    PaidInstallment,
    cascade_monthly_change,
)
from installment_kernel.domain.enums import (
    BalanceEntryKind,
    ContractStatus,
    PaymentReason,
    PaymentStatus,
    PaymentType,
)
from installment_kernel.domain.terms import TermChanges, validate_term_changes
from installment_kernel.exceptions import ContractEditValidationError
from installment_kernel.logging_config import LogContext, get_logger
from installment_kernel.models.contract import Contract, ContractEdit
from installment_kernel.models.payment import Payment
from installment_kernel.services.balance_ledger import BalanceLedger
from installment_kernel.services.base import BaseService
from installment_kernel.services.collaborators import SideEffects
from installment_kernel.services.contract_completion import ContractCompletionService
from installment_kernel.services.repositories import ContractRepository, PaymentRepository
from installment_kernel.utils.idempotency import initial_adjustment_key

logger = get_logger("services.contract_edit")


@dataclass(frozen=True)
class EditPreview:
    """Dry-run result: what apply_edit() would do."""

    contract_id: UUID
    changes: dict[str, tuple[Decimal, Decimal]]
    impact: EditImpact | None

    @property
    def summary(self) -> dict[str, Any]:
        return self.impact.summary() if self.impact else dict(EMPTY_IMPACT_SUMMARY)


@dataclass(frozen=True)
class EditResult:
    contract_id: UUID
    edit_id: UUID | None
    changes: dict[str, tuple[Decimal, Decimal]]
    summary: dict[str, Any]
    affected_payment_ids: tuple[UUID, ...]
    created_payment_ids: tuple[UUID, ...]
    prepaid_added: Decimal
    initial_delta: Decimal
    contract_status: ContractStatus


class ContractEditService(BaseService):

    def __init__(
        self,
        session,
        payments: PaymentRepository | None = None,
        contracts: ContractRepository | None = None,
        ledger: BalanceLedger | None = None,
        completion: ContractCompletionService | None = None,
        side_effects: SideEffects | None = None,
        **kwargs,
    ):
        super().__init__(session, **kwargs)
        shared = {"clock": self.clock, "policy": self.policy}
        self.payments = payments or PaymentRepository(session)
        self.contracts = contracts or ContractRepository(session)
        self.ledger = ledger or BalanceLedger(session, **shared)
        self.completion = completion or ContractCompletionService(
            session, payments=self.payments, contracts=self.contracts, **shared
        )
        self.side_effects = side_effects or SideEffects.default()

    def validate(self, contract: Contract, changes: TermChanges) -> None:
        violations = validate_term_changes(
            contract.terms, changes, self.policy.max_monthly_change_ratio
        )
        if violations:
            raise ContractEditValidationError(contract.id, violations)

    def preview_edit(self, contract_id: UUID, changes: TermChanges) -> EditPreview:
        """
        Validate ``changes`` and compute their impact without writing.

        Raises:
            ContractNotFoundError, ContractEditValidationError
        """
        contract = self.contracts.get(contract_id)
        self.validate(contract, changes)
        diffs = changes.changed_fields(contract.terms)
        impact = None
        if "monthly_payment" in diffs:
            impact = self._compute_impact(contract.id, diffs["monthly_payment"][1], lock=False)
        return EditPreview(contract_id=contract.id, changes=diffs, impact=impact)

    def apply_edit(self, contract_id: UUID, changes: TermChanges, actor_id: UUID) -> EditResult:
        """
        Validate and apply ``changes``.

        Raises:
            ContractNotFoundError, ContractEditValidationError
        """
        with LogContext.bind(contract_id=contract_id, actor_id=actor_id):
            contract = self.contracts.get_for_update(contract_id)
            self.validate(contract, changes)
            diffs = changes.changed_fields(contract.terms)
            if not diffs:
                logger.info("contract_edit_noop", extra={"contract_id": str(contract.id)})
                return EditResult(
                    contract_id=contract.id,
                    edit_id=None,
                    changes={},
                    summary=dict(EMPTY_IMPACT_SUMMARY),
                    affected_payment_ids=(),
                    created_payment_ids=(),
                    prepaid_added=ZERO,
                    initial_delta=ZERO,
                    contract_status=contract.status,
                )

            edit_id = uuid4()
            now = self.clock.now()
            affected: list[UUID] = []
            created: list[Payment] = []
            summary = dict(EMPTY_IMPACT_SUMMARY)
            prepaid_added = ZERO
            initial_delta = ZERO

            if "monthly_payment" in diffs:
                new_monthly = diffs["monthly_payment"][1]
                impact = self._compute_impact(contract.id, new_monthly, lock=True)
                created = self._apply_impact(contract, impact, actor_id)
                affected.extend(impact.affected_payment_ids)
                summary = impact.summary()
                prepaid_added = impact.carry_to_prepaid
                contract.monthly_payment = new_monthly
                debtor = self.contracts.get_debtor(contract.id)
                if debtor is not None:
                    debtor.debt_amount = new_monthly

            if "initial_payment" in diffs:
                old_initial, new_initial = diffs["initial_payment"]
                initial_delta = new_initial - old_initial
                adjusted = self._apply_initial_change(contract, initial_delta, edit_id, actor_id)
                if adjusted is not None:
                    affected.append(adjusted.id)
                contract.initial_payment = new_initial

            if "total_price" in diffs:
                contract.total_price = diffs["total_price"][1]

            contract.updated_by_id = actor_id
            self.session.flush()
            completion = self.completion.recheck_contract(contract)

            edit = ContractEdit(
                id=edit_id,
                contract_id=contract.id,
                edited_at=now,
                edited_by_id=actor_id,
                changes=[
                    {"field": name, "old": str(old), "new": str(new)}
                    for name, (old, new) in diffs.items()
                ],
                affected_payment_ids=[str(pid) for pid in affected],
                impact=summary,
            )
            self.session.add(edit)
            self.session.flush()

            logger.info(
                "contract_edited",
                extra={
                    "contract_id": str(contract.id),
                    "edit_id": str(edit_id),
                    "fields": sorted(diffs),
                    "affected_payments": len(affected),
                    "created_payments": len(created),
                    "prepaid_added": str(prepaid_added),
                    "contract_status": completion.status.value,
                },
            )
            self.side_effects.record_change(
                "contract",
                contract.id,
                actor_id,
                diffs,
                {"edit_id": str(edit_id), "impact": summary},
            )

            return EditResult(
                contract_id=contract.id,
                edit_id=edit_id,
                changes=diffs,
                summary=summary,
                affected_payment_ids=tuple(affected),
                created_payment_ids=tuple(p.id for p in created),
                prepaid_added=prepaid_added,
                initial_delta=initial_delta,
                contract_status=completion.status,
            )

    def _compute_impact(self, contract_id: UUID, new_monthly: Decimal, lock: bool) -> EditImpact:
        paid = self.payments.paid_monthly_chronological(contract_id, lock=lock)
        return cascade_monthly_change(
            [PaidInstallment(p.id, p.effective_actual_amount) for p in paid],
            as_money(new_monthly),
            self.tolerance,
        )

    def _apply_impact(self, contract: Contract, impact: EditImpact, actor_id: UUID) -> list[Payment]:
        now = self.clock.now()
        created: list[Payment] = []
        for recalc in impact.recalcs:
            payment = self.payments.get(recalc.payment_id)
            payment.status = recalc.status
            payment.remaining_amount = recalc.remaining_amount
            payment.excess_amount = recalc.excess_amount
            payment.expected_amount = impact.new_monthly_payment
            payment.updated_by_id = actor_id

            if recalc.needs_compensation:
                extra = Payment(
                    contract_id=contract.id,
                    customer_id=contract.customer_id,
                    manager_id=payment.manager_id,
                    amount=recalc.remaining_amount,
                    expected_amount=recalc.remaining_amount,
                    payment_type=PaymentType.EXTRA,
                    target_month=0,
                    is_paid=False,
                    # Not PENDING: a compensating slot must not expire in the sweep
                    status=PaymentStatus.SCHEDULED,
                    linked_payment_id=payment.id,
                    reason=PaymentReason.MONTHLY_PAYMENT_INCREASE,
                    note=(
                        f"Shortfall of month {payment.target_month} after monthly "
                        f"payment changed to {impact.new_monthly_payment}"
                    ),
                    created_at=now,
                    updated_at=now,
                    created_by_id=actor_id,
                )
                self.payments.add(extra)
                self.contracts.attach(contract, extra)
                created.append(extra)

        if impact.carry_to_prepaid > 0:
            contract.prepaid_balance = contract.prepaid_balance + impact.carry_to_prepaid
        self.session.flush()
        return created

    def _apply_initial_change(
        self,
        contract: Contract,
        delta: Decimal,
        edit_id: UUID,
        actor_id: UUID,
    ) -> Payment | None:
        initial = self.payments.find_initial(contract.id)
        if initial is None:
            logger.warning(
                "initial_payment_missing",
                extra={"contract_id": str(contract.id), "delta": str(delta)},
            )
            return None

        initial.amount = initial.amount + delta
        if initial.actual_amount is not None:
            initial.actual_amount = initial.actual_amount + delta
        if initial.expected_amount is not None:
            initial.expected_amount = initial.expected_amount + delta
        initial.updated_by_id = actor_id
        self.session.flush()

        if initial.is_paid:
            self.ledger.credit(
                manager_id=initial.manager_id,
                amount=delta,
                idempotency_key=initial_adjustment_key(edit_id),
                kind=BalanceEntryKind.INITIAL_ADJUSTMENT,
                actor_id=actor_id,
                payment_id=initial.id,
                contract_id=contract.id,
            )
        return initial
