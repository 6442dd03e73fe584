from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Protocol


@dataclass(frozen=True)
class SubmissionResult:
    """
    Outcome of one committed destination-ledger write.

    Failures are never represented here; submitters raise SubmissionError.
    """

    contract: str
    tx_hash: str
    height: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)


class TxSubmitter(Protocol):
    """
    Transaction submitter contract.

        submit(contract, value, timestamp) -> SubmissionResult

    Builds, signs and broadcasts one set_price write and returns once it is
    committed. Raises on failure; never retries. Implementations may block;
    the submission worker calls them one at a time from a worker thread.
    """

    def submit(self, contract: str, value: Decimal, timestamp: int) -> SubmissionResult:
        ...
