"""
Clock -- the engine's only source of "now".

Responsibility:
    Services receive a Clock through their constructor and take every
    timestamp they write (confirmed_at, submitted_at, postponed_at,
    edited_at) and every business date (paid_on, the cadence reset after a
    postponement) from it.  Nothing in the kernel calls ``datetime.now()``
    or ``date.today()``.

Architecture position:
    Kernel > Domain.  SystemClock is the single place that reads the real
    time.

Business dates are UTC calendar dates: a payment confirmed at 23:30 UTC on
the 1st is paid on the 1st wherever the cashier sits.
"""

from abc import ABC, abstractmethod
from datetime import UTC, date, datetime, timedelta


class Clock(ABC):
    """``now()`` is always timezone-aware."""

    @abstractmethod
    def now(self) -> datetime: ...

    def now_utc(self) -> datetime:
        return self.now().astimezone(UTC)

    def today(self) -> date:
        """Business date: the UTC calendar date of now()."""
        return self.now_utc().date()


class SystemClock(Clock):
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class DeterministicClock(Clock):
    """
    Frozen clock for tests.

    Time only moves when told to: ``advance``/``advance_hours`` move it
    forward, ``set_time`` jumps, ``tick`` moves one second and returns the
    new time.  The pending-payment timeout is exercised with
    ``advance_hours(policy.pending_timeout_hours + 1)``.
    """

    DEFAULT_START = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

    def __init__(self, fixed_time: datetime | None = None):
        self._current = self._aware(fixed_time or self.DEFAULT_START)

    @staticmethod
    def _aware(value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError(f"DeterministicClock needs an aware datetime, got {value!r}")
        return value

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = self._aware(time)

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def advance_hours(self, hours: int) -> None:
        self._current += timedelta(hours=hours)

    def tick(self) -> datetime:
        self.advance()
        return self._current
