from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TriggerKind(Enum):
    """
    Which timer caused a sweep.

    Passed to the submission policy; VARIANCE_CHECK sweeps are gated on price
    movement, FORCED_REFRESH sweeps only on the debounce window.
    """

    VARIANCE_CHECK = "variance_check"
    FORCED_REFRESH = "forced_refresh"


class MissedTickBehavior(Enum):
    """
    What a timer does when the loop observes a deadline late.

    DELAY : fire once now, next deadline is one period from now.
    SKIP  : fire once now, next deadline is the next period boundary in the
            future; boundaries missed in between are dropped.
    """

    DELAY = "delay"
    SKIP = "skip"


# variance checks must not silently stop; a missed forced refresh is not worth catching up
TRIGGER_MISSED_TICK: dict[TriggerKind, MissedTickBehavior] = {
    TriggerKind.VARIANCE_CHECK: MissedTickBehavior.DELAY,
    TriggerKind.FORCED_REFRESH: MissedTickBehavior.SKIP,
}


@dataclass(frozen=True)
class TimerSpec:
    """
    One periodic trigger.

    `first_delay_s` is the offset of the first deadline from start:
    forced refresh fires immediately, variance checks wait one period.
    """

    trigger: TriggerKind
    period_s: float
    first_delay_s: float = 0.0

    @property
    def missed_tick(self) -> MissedTickBehavior:
        return TRIGGER_MISSED_TICK[self.trigger]

    @classmethod
    def variance_check(cls, period_s: float) -> "TimerSpec":
        return cls(TriggerKind.VARIANCE_CHECK, float(period_s), first_delay_s=float(period_s))

    @classmethod
    def forced_refresh(cls, period_s: float) -> "TimerSpec":
        return cls(TriggerKind.FORCED_REFRESH, float(period_s), first_delay_s=0.0)
