"""
Tests for the excess planner (``installment_kernel.domain.excess``).

Covers:
- months are numbered after the already-paid count
- the last covered month may be partial (UNDERPAID), never OVERPAID
- the remainder after the final month goes to prepaid
- conservation: surplus == allocated + to_prepaid, exactly
"""

from decimal import Decimal

import pytest

from installment_kernel.domain.enums import PaymentStatus
from installment_kernel.domain.excess import plan_excess_distribution


class TestPlanExcessDistribution:
    """Tests for plan_excess_distribution()."""

    def test_partial_last_month(self):
        """150 over a 100 installment covers one month and half of the next."""
        plan = plan_excess_distribution(Decimal("150"), 3, 12, Decimal("100"))

        assert [i.month_number for i in plan.installments] == [4, 5]
        assert [i.amount for i in plan.installments] == [Decimal("100"), Decimal("50")]
        assert plan.installments[0].classification.status is PaymentStatus.PAID
        assert plan.installments[1].classification.status is PaymentStatus.UNDERPAID
        assert plan.installments[1].classification.remaining_amount == Decimal("50")
        assert plan.to_prepaid == 0

    def test_whole_months(self):
        plan = plan_excess_distribution(Decimal("200"), 3, 12, Decimal("100"))
        assert [i.month_number for i in plan.installments] == [4, 5]
        assert all(i.classification.status is PaymentStatus.PAID for i in plan.installments)

    def test_remainder_after_last_month_goes_to_prepaid(self):
        """Early pay-off keeps the change as credit."""
        plan = plan_excess_distribution(Decimal("350"), 10, 12, Decimal("100"))
        assert [i.month_number for i in plan.installments] == [11, 12]
        assert plan.to_prepaid == Decimal("150")

    def test_all_months_paid_goes_straight_to_prepaid(self):
        plan = plan_excess_distribution(Decimal("40"), 12, 12, Decimal("100"))
        assert plan.installments == ()
        assert plan.to_prepaid == Decimal("40")

    def test_zero_monthly_payment_goes_to_prepaid(self):
        plan = plan_excess_distribution(Decimal("40"), 0, 12, Decimal("0"))
        assert plan.installments == ()
        assert plan.to_prepaid == Decimal("40")

    def test_sub_tolerance_surplus_is_kept(self):
        """A one-cent surplus is not dropped."""
        plan = plan_excess_distribution(Decimal("0.01"), 2, 12, Decimal("100"))
        assert plan.installments == ()
        assert plan.to_prepaid == Decimal("0.01")

    def test_never_overpaid(self):
        plan = plan_excess_distribution(Decimal("1234.56"), 0, 12, Decimal("100"))
        assert all(
            i.classification.status is not PaymentStatus.OVERPAID for i in plan.installments
        )

    @pytest.mark.parametrize(
        "surplus,paid,period,monthly",
        [
            ("150", 3, 12, "100"),
            ("0.37", 0, 6, "100"),
            ("999.99", 5, 12, "83.33"),
            ("5000", 0, 3, "100"),
            ("100.005", 11, 12, "100"),
        ],
    )
    def test_conservation(self, surplus, paid, period, monthly):
        """No money is created or lost by planning."""
        plan = plan_excess_distribution(Decimal(surplus), paid, period, Decimal(monthly))
        assert plan.allocated + plan.to_prepaid == Decimal(surplus)
