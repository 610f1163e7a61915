"""
Due-date arithmetic for monthly installments.

Every due date is built from a day-of-month anchor fixed when the contract
was opened.  Months shorter than the anchor clamp to their last day, and the
next month returns to the anchor, so the schedule never drifts.
"""

import calendar
from datetime import date


def anchored_date(year: int, month: int, anchor_day: int) -> date:
    """
    Build a date from a possibly out-of-range month and an anchor day.

    ``month`` may be 13 or more (or 0 and below); the year is carried.
    ``anchor_day`` is clamped to the length of the resulting month.
    """
    if not 1 <= anchor_day <= 31:
        raise ValueError(f"anchor_day must be 1-31, got {anchor_day}")
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(anchor_day, last_day))


def add_months(base: date, months: int, anchor_day: int | None = None) -> date:
    """Move ``base`` by ``months`` calendar months, keeping the anchor day."""
    return anchored_date(base.year, base.month + months, anchor_day or base.day)


def advance_next_payment_date(
    current_next: date,
    anchor_day: int,
    today: date,
    postponed: bool,
) -> date:
    """
    Next due date after a monthly installment is confirmed.

    A postponed contract returns to its normal cadence one month after
    today.  Otherwise the due date moves one month on from the current
    due date, not from today, so a late payment never skips a month.
    """
    if postponed:
        return anchored_date(today.year, today.month + 1, anchor_day)
    return anchored_date(current_next.year, current_next.month + 1, anchor_day)
