from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ingestion.contracts.quote import QuotePrice
from oracle_relay.runtime.modes import TriggerKind
from oracle_relay.utils.config import (
    DEFAULT_MIN_TIME_BETWEEN_QUOTES,
    DEFAULT_PRICE_VARIANCE_THRESHOLD,
    RelayConfig,
)

REASON_FIRST = "first_observation"
REASON_VARIANCE = "variance_exceeded"
REASON_FORCED = "forced_refresh"
REASON_BELOW_THRESHOLD = "below_threshold"
REASON_TOO_SOON = "too_soon"


@dataclass(frozen=True)
class Decision:
    accepted: bool
    reason: str

    def __bool__(self) -> bool:
        return self.accepted


class SubmissionPolicy:
    """
    Decides whether a fresh observation is worth writing to the destination.

    Pure: no clock, no I/O, no state. The caller owns the LastSubmitted table
    and passes the previous accepted observation (or None).

        no previous                          -> accept
        variance check, change <= threshold  -> reject
        new.ts - prev.ts < min_time          -> reject (both triggers)
        otherwise                            -> accept

    A zero previous value counts as maximal change instead of dividing by zero.
    """

    def __init__(
        self,
        *,
        price_variance_threshold: float | Decimal | str = DEFAULT_PRICE_VARIANCE_THRESHOLD,
        min_time_between_quotes: int = DEFAULT_MIN_TIME_BETWEEN_QUOTES,
    ):
        # via str so 0.0025 stays 0.0025 rather than its binary expansion
        self.price_variance_threshold = Decimal(str(price_variance_threshold))
        self.min_time_between_quotes = int(min_time_between_quotes)
        if self.price_variance_threshold < 0:
            raise ValueError(f"price_variance_threshold must be >= 0, got {price_variance_threshold}")
        if self.min_time_between_quotes < 0:
            raise ValueError(f"min_time_between_quotes must be >= 0, got {min_time_between_quotes}")

    @classmethod
    def from_config(cls, cfg: RelayConfig) -> "SubmissionPolicy":
        return cls(
            price_variance_threshold=cfg.price_variance_threshold,
            min_time_between_quotes=cfg.min_time_between_quotes,
        )

    def relative_change(self, current: Decimal, previous: Decimal) -> Decimal | None:
        """|current - previous| / previous, or None when previous is zero."""
        if previous == 0:
            return None
        return abs(current - previous) / abs(previous)

    def significant_change(self, current: Decimal, previous: Decimal) -> bool:
        delta = self.relative_change(current, previous)
        if delta is None:
            return True
        return delta > self.price_variance_threshold

    def evaluate(
        self,
        new: QuotePrice,
        previous: QuotePrice | None,
        trigger: TriggerKind,
    ) -> Decision:
        if previous is None:
            return Decision(True, REASON_FIRST)

        if trigger is TriggerKind.VARIANCE_CHECK and not self.significant_change(new.value, previous.value):
            return Decision(False, REASON_BELOW_THRESHOLD)

        # two timers can fire back to back; don't send the same rate twice
        if new.timestamp - previous.timestamp < self.min_time_between_quotes:
            return Decision(False, REASON_TOO_SOON)

        if trigger is TriggerKind.FORCED_REFRESH:
            return Decision(True, REASON_FORCED)
        return Decision(True, REASON_VARIANCE)

    def accept(
        self,
        new: QuotePrice,
        previous: QuotePrice | None,
        trigger: TriggerKind,
    ) -> bool:
        return self.evaluate(new, previous, trigger).accepted
