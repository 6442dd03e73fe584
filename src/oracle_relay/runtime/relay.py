from __future__ import annotations

import asyncio
import time
import traceback
from typing import Any, Callable, Iterable

from ingestion.contracts.source import QuoteSource
from oracle_relay.exceptions.core import FatalError
from oracle_relay.registry import AssetRegistry
from oracle_relay.runtime.channel import HandoffChannel
from oracle_relay.runtime.scheduler import Scheduler
from oracle_relay.runtime.ticker import Clock, Sleep
from oracle_relay.runtime.worker import SubmissionWorker
from oracle_relay.submission.base import TxSubmitter
from oracle_relay.utils.config import RelayConfig
from oracle_relay.utils.logger import get_logger, log_error, log_info, log_warn
from oracle_relay.utils.timer import unix_now


class Relay:
    """
    Owns the pipeline lifecycle.

        Scheduler --(HandoffChannel, capacity = #assets)--> SubmissionWorker

    Both halves run as asyncio tasks and are expected to run forever. When
    either one ends (normally only a closed channel or a bug), the other is
    cancelled, the channel is closed, and run() raises FatalError.
    """

    def __init__(
        self,
        *,
        cfg: RelayConfig,
        source: QuoteSource,
        submitter: TxSubmitter,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
        now: Callable[[], int] = unix_now,
    ):
        self.cfg = cfg
        self.registry = AssetRegistry.from_config(cfg)
        self.channel = HandoffChannel(capacity=len(self.registry))
        self.source = source
        self.submitter = submitter
        self.scheduler = Scheduler.from_config(
            cfg,
            registry=self.registry,
            source=source,
            channel=self.channel,
            clock=clock,
            sleep=sleep,
            now=now,
        )
        self.worker = SubmissionWorker(
            channel=self.channel,
            submitter=submitter,
            contract_map=self.registry.contract_map,
        )
        self._alerted = False
        self._logger = get_logger(f"oracle_relay.runtime.{self.__class__.__name__}")

    async def run(self) -> None:
        log_info(
            self._logger,
            "relay.start",
            assets=[a.pair for a in self.registry],
            price_variance_threshold=self.cfg.price_variance_threshold,
            check_variance_period=self.cfg.check_variance_period,
            submission_period=self.cfg.submission_period,
            min_time_between_quotes=self.cfg.min_time_between_quotes,
        )
        tasks = [
            asyncio.create_task(self.scheduler.run(), name="relay.scheduler"),
            asyncio.create_task(self.worker.run(), name="relay.worker"),
        ]
        try:
            done, _pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            await self._shutdown(tasks)
            raise

        await self._shutdown(tasks)

        exc: BaseException | None = None
        for task in tasks:
            if task in done and not task.cancelled() and task.exception() is not None:
                exc = task.exception()
                break
        if exc is None:
            finished = ", ".join(sorted(t.get_name() for t in done))
            exc = FatalError(f"{finished} stopped unexpectedly")
        self._handle_fatal(exc)

    async def _shutdown(self, tasks: list[asyncio.Task[Any]]) -> None:
        await self.channel.close()
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        for obj in self._iter_shutdown_objects():
            fn = getattr(obj, "close", None)
            if callable(fn):
                try:
                    fn()
                except Exception as exc:
                    log_warn(
                        self._logger,
                        "relay.shutdown_error",
                        component=type(obj).__name__,
                        err_type=type(exc).__name__,
                        err=str(exc),
                    )
        log_info(self._logger, "relay.stop")

    def _iter_shutdown_objects(self) -> Iterable[object]:
        yield self.source
        yield self.submitter

    def _alert_once(self, exc: BaseException) -> None:
        if self._alerted:
            return
        self._alerted = True
        stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        log_error(
            self._logger,
            "relay.fatal_error",
            err_type=type(exc).__name__,
            err=str(exc),
            stack=stack,
        )

    def _handle_fatal(self, exc: BaseException) -> None:
        self._alert_once(exc)
        if isinstance(exc, FatalError):
            raise exc
        raise FatalError(str(exc)) from exc

