from __future__ import annotations

import asyncio
import inspect
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable

from ingestion.contracts.quote import Asset, QuotePrice
from ingestion.contracts.source import QuoteSource
from oracle_relay.policy.submission import SubmissionPolicy
from oracle_relay.registry import AssetRegistry
from oracle_relay.runtime.channel import HandoffChannel
from oracle_relay.runtime.modes import TimerSpec, TriggerKind
from oracle_relay.runtime.ticker import Clock, IntervalTimer, Sleep, earliest
from oracle_relay.utils.asyncio import to_thread_limited
from oracle_relay.utils.config import RelayConfig
from oracle_relay.utils.logger import (
    get_logger,
    log_decision,
    log_exception,
    log_heartbeat,
    log_info,
    log_source_error,
)
from oracle_relay.utils.timer import elapsed_ms, unix_now


@dataclass(frozen=True)
class SweepReport:
    trigger: TriggerKind
    assets: int
    accepted: int
    rejected: int
    read_failures: int
    elapsed_ms: int


class Scheduler:
    """
    Producer side of the relay.

    Drives the variance-check and forced-refresh timers from one loop; each
    fire sweeps every tracked asset:

        read (concurrent) -> policy -> put on channel -> record LastSubmitted

    Owns the LastSubmitted table (keyed by the asset's contract reference) and
    is its only writer, so no lock is needed. Sweeps never overlap.
    """

    def __init__(
        self,
        *,
        registry: AssetRegistry,
        source: QuoteSource,
        policy: SubmissionPolicy,
        channel: HandoffChannel,
        check_variance_period: float,
        submission_period: float,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
        now: Callable[[], int] = unix_now,
    ):
        self._registry = registry
        self._source = source
        self._policy = policy
        self._channel = channel
        self._timer_specs = (
            TimerSpec.variance_check(check_variance_period),
            TimerSpec.forced_refresh(submission_period),
        )
        self._clock = clock
        self._sleep = sleep
        self._now = now
        self._read_limiter: asyncio.Semaphore | None = None
        self._async_source = inspect.iscoroutinefunction(getattr(source, "read", None))
        self._logger = get_logger(f"oracle_relay.runtime.{self.__class__.__name__}")
        self.last_submitted: dict[str, QuotePrice] = {}
        self.sweeps = 0

    @classmethod
    def from_config(
        cls,
        cfg: RelayConfig,
        *,
        registry: AssetRegistry,
        source: QuoteSource,
        channel: HandoffChannel,
        **kwargs,
    ) -> "Scheduler":
        return cls(
            registry=registry,
            source=source,
            policy=SubmissionPolicy.from_config(cfg),
            channel=channel,
            check_variance_period=cfg.check_variance_period,
            submission_period=cfg.submission_period,
            **kwargs,
        )

    @property
    def timer_specs(self) -> tuple[TimerSpec, ...]:
        return self._timer_specs

    def build_timers(self, start: float | None = None) -> list[IntervalTimer]:
        origin = self._clock() if start is None else start
        return [
            IntervalTimer(spec, clock=self._clock, sleep=self._sleep, start=origin)
            for spec in self._timer_specs
        ]

    async def run(self) -> None:
        """Run both timers forever. Only a closed channel (fatal) ends the loop."""
        timers = self.build_timers()
        log_info(
            self._logger,
            "relay.scheduler_start",
            assets=len(self._registry),
            timers={t.trigger.value: t.spec.period_s for t in timers},
        )
        stop_reason = "exit"
        try:
            while True:
                timer = earliest(timers)
                await timer.wait()
                await self.sweep(timer.trigger)
        except asyncio.CancelledError:
            stop_reason = "cancelled"
            raise
        except Exception as exc:
            stop_reason = "error"
            log_exception(
                self._logger,
                "relay.scheduler_error",
                err_type=type(exc).__name__,
                err=str(exc),
            )
            raise
        finally:
            log_info(self._logger, "relay.scheduler_stop", stop_reason=stop_reason, sweeps=self.sweeps)

    async def sweep(self, trigger: TriggerKind) -> SweepReport:
        """Read, evaluate and enqueue every tracked asset once."""
        start = time.perf_counter()
        assets = list(self._registry)
        quotes = await asyncio.gather(*(self._read(a) for a in assets))

        accepted = rejected = failures = 0
        for asset, quote in zip(assets, quotes):
            if quote is None:
                failures += 1
                continue
            key = asset.ethereum_contract
            previous = self.last_submitted.get(key)
            decision = self._policy.evaluate(quote, previous, trigger)
            log_decision(
                self._logger,
                "relay.decision",
                asset=asset.pair,
                contract=key,
                trigger=trigger,
                accepted=decision.accepted,
                reason=decision.reason,
                value=quote.value,
                timestamp=quote.timestamp,
                previous_value=previous.value if previous is not None else None,
                previous_timestamp=previous.timestamp if previous is not None else None,
            )
            if not decision.accepted:
                rejected += 1
                continue
            # blocks while the worker is behind; raises ChannelClosedError if it is gone
            await self._channel.put(quote)
            self.last_submitted[key] = quote
            accepted += 1

        self.sweeps += 1
        report = SweepReport(
            trigger=trigger,
            assets=len(assets),
            accepted=accepted,
            rejected=rejected,
            read_failures=failures,
            elapsed_ms=elapsed_ms(start),
        )
        log_heartbeat(
            self._logger,
            "relay.sweep_done",
            trigger=trigger,
            assets=report.assets,
            accepted=accepted,
            rejected=rejected,
            read_failures=failures,
            elapsed_ms=report.elapsed_ms,
            backlog=self._channel.qsize(),
        )
        return report

    async def _read(self, asset: Asset) -> QuotePrice | None:
        try:
            if self._async_source:
                value = await self._source.read(asset)  # type: ignore[misc]
            else:
                value = await to_thread_limited(
                    self._source.read,
                    asset,
                    limiter=self._limiter(),
                    logger=self._logger,
                    context={"asset": asset.pair},
                    op="source.read",
                )
            if not isinstance(value, Decimal):
                value = Decimal(str(value))
        except Exception as exc:
            log_source_error(
                self._logger,
                "relay.read_error",
                asset=asset.pair,
                contract=asset.ethereum_contract,
                err_type=type(exc).__name__,
                err=str(exc),
            )
            return None
        return QuotePrice(asset=asset, value=value, timestamp=int(self._now()))

    def _limiter(self) -> asyncio.Semaphore:
        # created lazily so it binds to the running loop
        if self._read_limiter is None:
            self._read_limiter = asyncio.Semaphore(max(1, len(self._registry)))
        return self._read_limiter
