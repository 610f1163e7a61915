"""
Tests for due-date arithmetic (``installment_kernel.domain.schedule``).

Covers:
- month overflow into the next year
- day clamping for short months and the return to the anchor day
- advancement from the current due date vs. from today when postponed
- the schedule never moves backwards
"""

from datetime import date

import pytest

from installment_kernel.domain.schedule import (
    add_months,
    advance_next_payment_date,
    anchored_date,
)


class TestAnchoredDate:
    """Tests for anchored_date()."""

    def test_month_thirteen_rolls_into_next_year(self):
        assert anchored_date(2024, 13, 15) == date(2025, 1, 15)

    def test_clamps_to_short_month(self):
        """Anchor 31 in February of a leap year lands on the 29th."""
        assert anchored_date(2024, 2, 31) == date(2024, 2, 29)
        assert anchored_date(2023, 2, 31) == date(2023, 2, 28)
        assert anchored_date(2024, 4, 31) == date(2024, 4, 30)

    def test_month_zero_is_previous_december(self):
        assert anchored_date(2024, 0, 10) == date(2023, 12, 10)

    @pytest.mark.parametrize("day", [0, 32])
    def test_invalid_anchor_raises(self, day):
        with pytest.raises(ValueError):
            anchored_date(2024, 1, day)


class TestAddMonths:
    """Tests for add_months()."""

    def test_keeps_day(self):
        assert add_months(date(2024, 1, 15), 1) == date(2024, 2, 15)

    def test_returns_to_anchor_after_clamping(self):
        """The anchor survives a short month."""
        feb = add_months(date(2024, 1, 31), 1)
        assert feb == date(2024, 2, 29)
        assert add_months(feb, 1, anchor_day=31) == date(2024, 3, 31)


class TestAdvanceNextPaymentDate:
    """Tests for advance_next_payment_date()."""

    def test_advances_from_current_due_date_not_today(self):
        """A late payment never skips a month."""
        result = advance_next_payment_date(
            current_next=date(2024, 2, 15),
            anchor_day=15,
            today=date(2024, 4, 2),
            postponed=False,
        )
        assert result == date(2024, 3, 15)

    def test_postponed_returns_to_cadence_from_today(self):
        result = advance_next_payment_date(
            current_next=date(2024, 3, 28),
            anchor_day=15,
            today=date(2024, 3, 30),
            postponed=True,
        )
        assert result == date(2024, 4, 15)

    def test_december_rolls_into_january(self):
        result = advance_next_payment_date(date(2024, 12, 31), 31, date(2024, 12, 1), False)
        assert result == date(2025, 1, 31)

    def test_schedule_is_strictly_increasing(self):
        """Consecutive normal advances only move forward."""
        current = date(2024, 1, 31)
        for _ in range(24):
            following = advance_next_payment_date(current, 31, date(2024, 1, 1), False)
            assert following > current
            current = following
