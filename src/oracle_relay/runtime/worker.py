from __future__ import annotations

import asyncio
import inspect
import time
from typing import Mapping

from ingestion.contracts.quote import QuotePrice
from oracle_relay.exceptions.core import ChannelClosedError
from oracle_relay.runtime.channel import HandoffChannel
from oracle_relay.submission.base import SubmissionResult, TxSubmitter
from oracle_relay.utils.asyncio import to_thread_limited
from oracle_relay.utils.logger import get_logger, log_error, log_info, log_submission, log_warn
from oracle_relay.utils.timer import elapsed_ms


class SubmissionWorker:
    """
    Consumer side of the relay.

    The only responsibility is:
        channel -> destination contract lookup -> submitter

    Strictly sequential: the next observation is taken only after the
    previous submit() returned or raised, so the signer never has two writes
    in flight. Failures are logged and dropped; no retry, no requeue.
    """

    def __init__(
        self,
        *,
        channel: HandoffChannel,
        submitter: TxSubmitter,
        contract_map: Mapping[str, str],
    ):
        self._channel = channel
        self._submitter = submitter
        self._contract_map = dict(contract_map)
        self._async_submitter = inspect.iscoroutinefunction(getattr(submitter, "submit", None))
        self._logger = get_logger(f"oracle_relay.runtime.{self.__class__.__name__}")
        self.submitted = 0
        self.failed = 0

    async def run(self) -> None:
        log_info(
            self._logger,
            "relay.worker_start",
            submitter=type(self._submitter).__name__,
            capacity=self._channel.capacity,
        )
        stop_reason = "exit"
        try:
            while True:
                try:
                    quote = await self._channel.get()
                except ChannelClosedError:
                    stop_reason = "channel_closed"
                    log_error(self._logger, "relay.channel_closed", err="channel closed unexpectedly")
                    raise
                await self.submit(quote)
        except asyncio.CancelledError:
            stop_reason = "cancelled"
            raise
        finally:
            log_info(
                self._logger,
                "relay.worker_stop",
                stop_reason=stop_reason,
                submitted=self.submitted,
                failed=self.failed,
            )

    async def submit(self, quote: QuotePrice) -> SubmissionResult | None:
        """Submit one observation; returns None when it failed (already logged)."""
        asset = quote.asset
        contract = self._contract_map.get(quote.contract)
        if contract is None:
            self.failed += 1
            log_error(
                self._logger,
                "relay.submit_error",
                asset=asset.pair,
                contract=quote.contract,
                err_type="KeyError",
                err="no destination contract mapped",
            )
            return None

        start = time.perf_counter()
        try:
            if self._async_submitter:
                result = await self._submitter.submit(contract, quote.value, quote.timestamp)  # type: ignore[misc]
            else:
                result = await to_thread_limited(
                    self._submitter.submit,
                    contract,
                    quote.value,
                    quote.timestamp,
                    logger=self._logger,
                    context={"asset": asset.pair, "contract": contract},
                    op="submitter.submit",
                )
        except Exception as exc:
            self.failed += 1
            log_warn(
                self._logger,
                "relay.submit_error",
                asset=asset.pair,
                contract=contract,
                value=quote.value,
                timestamp=quote.timestamp,
                err_type=type(exc).__name__,
                err=str(exc),
            )
            return None

        self.submitted += 1
        log_submission(
            self._logger,
            "relay.submitted",
            asset=asset.pair,
            contract=contract,
            value=quote.value,
            timestamp=quote.timestamp,
            tx_hash=getattr(result, "tx_hash", None),
            latency_ms=elapsed_ms(start),
            backlog=self._channel.qsize(),
        )
        return result
