"""
Tests for ContractEditService.

Covers:
- Monthly decrease: cascading OVERPAID re-classification, carry to prepaid
- Monthly increase: UNDERPAID months with SCHEDULED compensating payments
- Validation rejects the whole edit before any write
- Initial payment change moves the INITIAL payment and the manager balance
- preview_edit() writes nothing; a no-op edit records no history
- Edit history rows and the debtor's amount due
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from installment_kernel.domain.enums import (
    ContractStatus,
    PaymentReason,
    PaymentStatus,
    PaymentType,
)
from installment_kernel.domain.terms import TermChanges
from installment_kernel.exceptions import ContractEditValidationError, ContractNotFoundError
from installment_kernel.models.debtor import Debtor
from installment_kernel.models.payment import Payment
from installment_kernel.selectors.contract_selector import ContractSelector


@pytest.fixture
def two_months_paid(create_contract, pay_months):
    contract = create_contract()
    pay_months(contract, 2)
    return contract


def _paid_months(engine, contract):
    return engine.payments.paid_monthly_chronological(contract.id, lock=False)


class TestMonthlyDecrease:
    """100 -> 80 after two months paid at 100."""

    def test_cascade(self, engine, two_months_paid, test_actor_id):
        result = engine.apply_edit(
            two_months_paid.id, TermChanges(monthly_payment=Decimal("80")), test_actor_id
        )

        first, second = _paid_months(engine, two_months_paid)
        assert first.status is PaymentStatus.OVERPAID
        assert first.excess_amount == Decimal("20")
        assert second.status is PaymentStatus.OVERPAID
        assert second.excess_amount == Decimal("40")
        assert first.expected_amount == second.expected_amount == Decimal("80")

        assert two_months_paid.monthly_payment == Decimal("80")
        assert two_months_paid.prepaid_balance == Decimal("60")
        assert result.prepaid_added == Decimal("60")
        assert result.created_payment_ids == ()
        assert set(result.affected_payment_ids) == {first.id, second.id}
        assert result.summary["overpaidCount"] == 2
        assert result.summary["additionalPaymentsCreated"] == 0

    def test_three_months_accumulate_carry(self, engine, create_contract, pay_months, test_actor_id):
        contract = create_contract()
        pay_months(contract, 3)

        result = engine.apply_edit(contract.id, TermChanges(monthly_payment=Decimal("80")), test_actor_id)

        months = _paid_months(engine, contract)
        assert [p.excess_amount for p in months] == [Decimal("20"), Decimal("40"), Decimal("80")]
        assert contract.prepaid_balance == Decimal("140")
        assert result.prepaid_added == Decimal("140")
        assert Decimal(result.summary["totalExcess"]) == Decimal("140")

    def test_records_history(self, engine, session, two_months_paid, test_actor_id, clock):
        result = engine.apply_edit(
            two_months_paid.id, TermChanges(monthly_payment=Decimal("80")), test_actor_id
        )

        history = ContractSelector(session).edit_history(two_months_paid.id)
        assert len(history) == 1
        edit = history[0]
        assert edit.id == result.edit_id
        assert edit.edited_by_id == test_actor_id
        (change,) = edit.changes
        assert change["field"] == "monthly_payment"
        assert Decimal(change["old"]) == Decimal("100")
        assert Decimal(change["new"]) == Decimal("80")
        assert set(edit.affected_payment_ids) == set(result.affected_payment_ids)
        assert edit.impact["overpaidCount"] == 2

    def test_debtor_amount_follows_new_monthly(self, engine, session, two_months_paid, test_actor_id, clock):
        session.add(
            Debtor(
                contract_id=two_months_paid.id,
                debt_amount=Decimal("100"),
                due_date=date(2024, 4, 15),
                overdue_days=3,
                created_at=clock.now(),
            )
        )
        session.flush()

        engine.apply_edit(two_months_paid.id, TermChanges(monthly_payment=Decimal("80")), test_actor_id)

        assert engine.contracts.get_debtor(two_months_paid.id).debt_amount == Decimal("80")


class TestMonthlyIncrease:
    """100 -> 120 after two months paid at 100."""

    def test_compensating_payments(self, engine, session, two_months_paid, test_actor_id):
        result = engine.apply_edit(
            two_months_paid.id, TermChanges(monthly_payment=Decimal("120")), test_actor_id
        )

        months = _paid_months(engine, two_months_paid)
        assert [p.status for p in months] == [PaymentStatus.UNDERPAID] * 2
        assert all(p.remaining_amount == Decimal("20") for p in months)

        extras = [session.get(Payment, pid) for pid in result.created_payment_ids]
        assert len(extras) == 2
        for extra, month in zip(extras, months):
            assert extra.payment_type is PaymentType.EXTRA
            assert extra.status is PaymentStatus.SCHEDULED
            assert extra.reason is PaymentReason.MONTHLY_PAYMENT_INCREASE
            assert extra.linked_payment_id == month.id
            assert extra.amount == Decimal("20")
            assert not extra.is_paid
            assert extra.is_attached

        assert result.summary["underpaidCount"] == 2
        assert Decimal(result.summary["totalShortage"]) == Decimal("40")
        assert two_months_paid.prepaid_balance == 0

    def test_compensating_payments_listed_on_contract(self, engine, session, two_months_paid, test_actor_id):
        """The shortfall slots show in the contract's payment list but do not count as paid."""
        before = ContractSelector(session).summary(two_months_paid.id)

        result = engine.apply_edit(
            two_months_paid.id, TermChanges(monthly_payment=Decimal("120")), test_actor_id
        )

        summary = ContractSelector(session).summary(two_months_paid.id)
        listed = [p.id for p in summary.payments]
        assert listed[-2:] == list(result.created_payment_ids)
        assert summary.total_satisfied == before.total_satisfied
        assert summary.status is ContractStatus.ACTIVE

    def test_compensating_payments_survive_the_sweep(
        self, engine, two_months_paid, test_actor_id, clock
    ):
        result = engine.apply_edit(
            two_months_paid.id, TermChanges(monthly_payment=Decimal("120")), test_actor_id
        )
        clock.advance_hours(72)

        sweep = engine.reject_expired_payments()

        assert not set(sweep.rejected_ids) & set(result.created_payment_ids)

    def test_compensating_payment_can_be_collected(
        self, engine, session, two_months_paid, test_actor_id, confirmer_id, manager_id, balance_of
    ):
        result = engine.apply_edit(
            two_months_paid.id, TermChanges(monthly_payment=Decimal("120")), test_actor_id
        )
        extra_id = result.created_payment_ids[0]
        before = balance_of(manager_id)

        engine.submit_for_confirmation(extra_id, Decimal("20"), test_actor_id)
        confirmation = engine.confirm(extra_id, confirmer_id)

        assert confirmation.status is PaymentStatus.PAID
        assert session.get(Payment, extra_id).is_attached
        assert balance_of(manager_id) - before == Decimal("20")


class TestValidation:
    """Edits that break a rule change nothing."""

    def test_over_limit_rejected_without_writes(self, engine, session, two_months_paid, test_actor_id):
        with pytest.raises(ContractEditValidationError) as exc_info:
            engine.apply_edit(
                two_months_paid.id, TermChanges(monthly_payment=Decimal("200")), test_actor_id
            )

        assert len(exc_info.value.violations) == 1
        assert two_months_paid.monthly_payment == Decimal("100")
        assert all(p.status is PaymentStatus.PAID for p in _paid_months(engine, two_months_paid))
        assert ContractSelector(session).edit_history(two_months_paid.id) == []

    def test_all_violations_reported(self, engine, two_months_paid, test_actor_id):
        changes = TermChanges(
            monthly_payment=Decimal("10"), initial_payment=Decimal("-1"), total_price=Decimal("50")
        )
        with pytest.raises(ContractEditValidationError) as exc_info:
            engine.apply_edit(two_months_paid.id, changes, test_actor_id)
        # negative initial + 90% monthly change; total still exceeds initial
        assert len(exc_info.value.violations) == 2

    def test_unknown_contract(self, engine, test_actor_id):
        with pytest.raises(ContractNotFoundError):
            engine.apply_edit(uuid4(), TermChanges(total_price=Decimal("1")), test_actor_id)


class TestInitialPaymentChange:
    """Initial payment edits are immediate cash corrections."""

    def test_moves_initial_payment_and_balance(
        self, engine, session, create_contract, manager_id, test_actor_id, balance_of
    ):
        contract = create_contract()
        before = balance_of(manager_id)

        result = engine.apply_edit(
            contract.id, TermChanges(initial_payment=Decimal("150")), test_actor_id
        )

        initial = engine.payments.find_initial(contract.id)
        assert initial.amount == Decimal("150")
        assert initial.actual_amount == Decimal("150")
        assert contract.initial_payment == Decimal("150")
        assert result.initial_delta == Decimal("50")
        assert initial.id in result.affected_payment_ids
        assert balance_of(manager_id) - before == Decimal("50")
        assert engine.ledger.credited_total(f"contract-edit:{result.edit_id}") == Decimal("50")

    def test_decrease_debits_balance(self, engine, create_contract, manager_id, test_actor_id, balance_of):
        contract = create_contract()
        before = balance_of(manager_id)

        engine.apply_edit(contract.id, TermChanges(initial_payment=Decimal("60")), test_actor_id)

        assert balance_of(manager_id) - before == Decimal("-40")


class TestTotalPriceChange:
    """A price change only re-derives the status."""

    def test_raising_price_reopens_completed_contract(
        self, engine, create_contract, pay_months, test_actor_id
    ):
        contract = create_contract()
        pay_months(contract, 12)
        assert contract.status is ContractStatus.COMPLETED

        result = engine.apply_edit(contract.id, TermChanges(total_price=Decimal("1500")), test_actor_id)

        assert result.contract_status is ContractStatus.ACTIVE
        assert contract.status is ContractStatus.ACTIVE

        engine.apply_edit(contract.id, TermChanges(total_price=Decimal("1300")), test_actor_id)
        assert contract.status is ContractStatus.COMPLETED


class TestPreviewAndNoop:

    def test_preview_writes_nothing(self, engine, session, two_months_paid):
        preview = engine.preview_edit(two_months_paid.id, TermChanges(monthly_payment=Decimal("80")))

        assert preview.summary["overpaidCount"] == 2
        assert Decimal(preview.summary["prepaidCredited"]) == Decimal("40")
        assert two_months_paid.monthly_payment == Decimal("100")
        assert two_months_paid.prepaid_balance == 0
        assert all(p.status is PaymentStatus.PAID for p in _paid_months(engine, two_months_paid))
        assert not session.dirty

    def test_preview_validates(self, engine, two_months_paid):
        with pytest.raises(ContractEditValidationError):
            engine.preview_edit(two_months_paid.id, TermChanges(monthly_payment=Decimal("10")))

    def test_unchanged_values_are_noop(self, engine, session, two_months_paid, test_actor_id):
        result = engine.apply_edit(
            two_months_paid.id, TermChanges(monthly_payment=Decimal("100.00")), test_actor_id
        )

        assert result.edit_id is None
        assert result.changes == {}
        assert ContractSelector(session).edit_history(two_months_paid.id) == []
