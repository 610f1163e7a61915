"""
Tests for PaymentIntakeService.

Covers:
- open_contract validation, first due date and the INITIAL payment
- Cash desk path: record_pending_payment, then confirm by a second actor
- Scheduled slots: schedule_installment -> submit -> confirm
- Dashboard path: pay_by_contract confirms in one step
- Rejected inputs raise typed errors and write nothing
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from installment_kernel.domain.enums import (
    BalanceEntryKind,
    ContractStatus,
    PaymentStatus,
    PaymentType,
)
from installment_kernel.exceptions import (
    ContractNotActiveError,
    ContractNotFoundError,
    ContractValidationError,
    InvalidAmountError,
    InvalidPaymentStateError,
    InvalidTargetMonthError,
    NoUnpaidInstallmentError,
)
from installment_kernel.selectors.balance_selector import BalanceSelector


class TestOpenContract:

    def test_defaults(self, engine, create_contract, manager_id, balance_of):
        contract = create_contract()

        assert contract.status is ContractStatus.ACTIVE
        assert contract.next_payment_date == date(2024, 2, 15)
        assert contract.original_payment_day == 15
        assert contract.prepaid_balance == 0
        assert not contract.is_postponed

        initial = engine.payments.find_initial(contract.id)
        assert initial.payment_type is PaymentType.INITIAL
        assert initial.status is PaymentStatus.PAID
        assert initial.is_paid
        assert initial.target_month == 0
        assert initial.paid_on == date(2024, 1, 15)
        assert initial.is_attached
        assert balance_of(manager_id) == Decimal("100")

    def test_initial_payment_credit_entry(self, engine, session, create_contract, manager_id):
        contract = create_contract()

        (entry,) = BalanceSelector(session).entries(manager_id)
        assert entry.kind is BalanceEntryKind.PAYMENT
        assert entry.contract_id == contract.id
        assert entry.amount == Decimal("100")

    def test_zero_initial_creates_no_payment(self, engine, create_contract, manager_id, balance_of):
        contract = create_contract(total_price=Decimal("1200"), initial_payment=Decimal("0"))

        assert engine.payments.find_initial(contract.id) is None
        assert balance_of(manager_id) == 0

    def test_end_of_month_anchor(self, create_contract):
        contract = create_contract(start_date=date(2024, 1, 31))

        assert contract.original_payment_day == 31
        assert contract.next_payment_date == date(2024, 2, 29)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"period": 0},
            {"monthly_payment": Decimal("-1")},
            {"total_price": Decimal("100")},
        ],
        ids=["zero-period", "negative-monthly", "price-not-above-initial"],
    )
    def test_invalid_terms(self, create_contract, overrides):
        with pytest.raises(ContractValidationError) as exc_info:
            create_contract(**overrides)
        assert exc_info.value.code == "CONTRACT_INVALID"
        assert len(exc_info.value.violations) == 1


class TestRecordPending:

    def test_pending_awaits_confirmation(
        self, engine, create_contract, manager_id, test_actor_id, confirmer_id, balance_of, clock
    ):
        contract = create_contract()
        before = balance_of(manager_id)

        payment = engine.record_pending_payment(
            contract.id, Decimal("100"), manager_id, test_actor_id, note="cash desk"
        )

        assert payment.status is PaymentStatus.PENDING
        assert not payment.is_paid
        assert payment.target_month == 1
        assert payment.is_attached
        assert payment.note == "cash desk"
        assert balance_of(manager_id) == before
        assert contract.next_payment_date == date(2024, 2, 15)

        result = engine.confirm(payment.id, confirmer_id)

        assert result.status is PaymentStatus.PAID
        assert payment.confirmed_by_id == confirmer_id
        assert payment.paid_on == clock.today()
        assert balance_of(manager_id) - before == Decimal("100")
        assert contract.next_payment_date == date(2024, 3, 15)

    def test_explicit_target_month(self, engine, create_contract, manager_id, test_actor_id):
        contract = create_contract()

        payment = engine.record_pending_payment(
            contract.id, Decimal("100"), manager_id, test_actor_id, target_month=3
        )

        assert payment.target_month == 3

    @pytest.mark.parametrize("month", [0, 13])
    def test_target_month_out_of_range(self, engine, create_contract, manager_id, test_actor_id, month):
        contract = create_contract()

        with pytest.raises(InvalidTargetMonthError):
            engine.record_pending_payment(
                contract.id, Decimal("100"), manager_id, test_actor_id, target_month=month
            )

    @pytest.mark.parametrize(
        "amount", [Decimal("0"), Decimal("-5"), Decimal("0.01"), Decimal("100000.01")]
    )
    def test_invalid_amount(self, engine, create_contract, manager_id, test_actor_id, amount):
        contract = create_contract()

        with pytest.raises(InvalidAmountError):
            engine.record_pending_payment(contract.id, amount, manager_id, test_actor_id)

    def test_unknown_contract(self, engine, manager_id, test_actor_id):
        with pytest.raises(ContractNotFoundError):
            engine.record_pending_payment(uuid4(), Decimal("100"), manager_id, test_actor_id)

    def test_completed_contract_refuses_payments(
        self, engine, create_contract, pay_months, manager_id, test_actor_id
    ):
        contract = create_contract()
        pay_months(contract, 12)

        with pytest.raises(ContractNotActiveError) as exc_info:
            engine.record_pending_payment(contract.id, Decimal("100"), manager_id, test_actor_id)
        assert exc_info.value.code == "CONTRACT_NOT_ACTIVE"


class TestScheduledSlots:

    def test_schedule_submit_confirm(
        self, engine, create_contract, manager_id, test_actor_id, confirmer_id
    ):
        contract = create_contract()

        slot = engine.schedule_installment(contract.id, 1, manager_id, test_actor_id)
        assert slot.status is PaymentStatus.SCHEDULED
        assert slot.actual_amount is None
        assert not slot.is_attached

        engine.submit_for_confirmation(slot.id, Decimal("60"), test_actor_id)
        assert slot.status is PaymentStatus.PENDING
        assert slot.submitted_at is not None

        result = engine.confirm(slot.id, confirmer_id)
        assert result.status is PaymentStatus.UNDERPAID
        assert result.remaining_amount == Decimal("40")
        assert slot.is_attached

    def test_submit_requires_scheduled(self, engine, create_contract, manager_id, test_actor_id):
        contract = create_contract()
        pending = engine.record_pending_payment(contract.id, Decimal("100"), manager_id, test_actor_id)

        with pytest.raises(InvalidPaymentStateError):
            engine.submit_for_confirmation(pending.id, Decimal("100"), test_actor_id)

    def test_schedule_out_of_range(self, engine, create_contract, manager_id, test_actor_id):
        contract = create_contract()

        with pytest.raises(InvalidTargetMonthError) as exc_info:
            engine.schedule_installment(contract.id, 13, manager_id, test_actor_id)
        assert exc_info.value.code == "INVALID_TARGET_MONTH"


class TestPayByContract:

    def test_confirms_next_month(self, engine, create_contract, manager_id, confirmer_id, balance_of):
        contract = create_contract()

        result = engine.pay_by_contract(contract.id, Decimal("100"), manager_id, confirmer_id)

        assert result.status is PaymentStatus.PAID
        payment = engine.payments.get(result.payment_id)
        assert payment.target_month == 1
        assert payment.is_attached
        assert result.next_payment_date == date(2024, 3, 15)
        assert balance_of(manager_id) == Decimal("200")

    def test_months_fill_in_order(self, engine, create_contract, pay_months):
        contract = create_contract()

        results = pay_months(contract, 3)

        months = [engine.payments.get(r.payment_id).target_month for r in results]
        assert months == [1, 2, 3]

    def test_no_unpaid_month_left(self, engine, create_contract, pay_months, manager_id, confirmer_id):
        contract = create_contract(total_price=Decimal("1500"))
        pay_months(contract, 12)
        assert contract.status is ContractStatus.ACTIVE

        with pytest.raises(NoUnpaidInstallmentError):
            engine.pay_by_contract(contract.id, Decimal("100"), manager_id, confirmer_id)
