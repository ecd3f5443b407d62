"""Time window value type used by the aggregate checks."""
from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass(frozen=True)
class TimeWindow:
    """
    Half-open time span ``[start, end)``.

    Built once per check invocation from a single ``now`` and passed to
    every query of that check.
    """

    start: datetime
    end: datetime

    def __post_init__(self):
        if self.end < self.start:
            raise ValueError("TimeWindow end must not precede start")

    @classmethod
    def ending_at(cls, end: datetime, duration: timedelta) -> "TimeWindow":
        """Window of ``duration`` that ends at ``end``."""
        return cls(start=end - duration, end=end)

    def preceding(self, duration: timedelta) -> "TimeWindow":
        """Window of ``duration`` that ends where this one starts."""
        return TimeWindow(start=self.start - duration, end=self.start)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def minutes(self) -> float:
        return self.duration.total_seconds() / 60

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end
