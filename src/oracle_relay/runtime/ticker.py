from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Sequence

from oracle_relay.runtime.modes import MissedTickBehavior, TimerSpec, TriggerKind

# deadlines observed later than this count as missed
LATE_TOLERANCE_S = 0.005

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class IntervalTimer:
    """
    Periodic deadline generator with an explicit missed-tick behaviour.

    Time is monotonic seconds from `clock`; `sleep` is injectable so tests can
    drive the timer with a fake clock. The timer never runs callbacks itself:
    the scheduler awaits `wait()` and then runs its sweep.
    """

    def __init__(
        self,
        spec: TimerSpec,
        *,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
        start: float | None = None,
    ):
        if spec.period_s <= 0:
            raise ValueError(f"timer period must be > 0s, got {spec.period_s}")
        self.spec = spec
        self._clock = clock
        self._sleep = sleep
        origin = clock() if start is None else float(start)
        self._deadline = origin + spec.first_delay_s
        self.fired = 0
        self.late = 0

    @property
    def trigger(self) -> TriggerKind:
        return self.spec.trigger

    @property
    def deadline(self) -> float:
        return self._deadline

    def advance(self, deadline: float, now: float) -> float:
        """Next deadline after firing `deadline` at time `now`."""
        period = self.spec.period_s
        if now <= deadline + LATE_TOLERANCE_S:
            return deadline + period
        if self.spec.missed_tick is MissedTickBehavior.DELAY:
            return now + period
        return now + period - ((now - deadline) % period)

    async def wait(self) -> float:
        """Sleep until the current deadline, fire it, schedule the next one.

        Returns the deadline that fired.
        """
        now = self._clock()
        if now < self._deadline:
            await self._sleep(self._deadline - now)
            now = self._clock()
        fired = self._deadline
        if now > fired + LATE_TOLERANCE_S:
            self.late += 1
        self._deadline = self.advance(fired, now)
        self.fired += 1
        return fired


def earliest(timers: Sequence[IntervalTimer]) -> IntervalTimer:
    """Timer with the earliest deadline; ties go to the first in `timers`."""
    if not timers:
        raise ValueError("no timers")
    best = timers[0]
    for t in timers[1:]:
        if t.deadline < best.deadline:
            best = t
    return best
