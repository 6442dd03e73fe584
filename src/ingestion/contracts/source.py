from __future__ import annotations

from decimal import Decimal
from typing import Protocol

from ingestion.contracts.quote import Asset


class QuoteSource(Protocol):
    """
    Quote source contract.

        read(asset) -> Decimal

    Must return the reading already normalized with `asset.decimals`.
    Failures are raised (SourceError or transport errors); callers isolate
    them per asset. Implementations may block; the scheduler runs them in
    worker threads.
    """

    def read(self, asset: Asset) -> Decimal:
        ...
