from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class Asset:
    """
    One tracked redemption-rate asset.

    Semantics:
        - `ethereum_contract` : source vault address (lower-case 0x hex); also the
                                key into the destination contract map
        - `decimals`          : share/asset scale used to normalize raw readings
        - `base` / `quote`    : display symbols only

    Equality and hashing use the full tuple.
    """

    ethereum_contract: str
    decimals: int
    base: str
    quote: str

    @property
    def pair(self) -> str:
        return f"{self.quote}/{self.base}"


@dataclass(frozen=True)
class QuotePrice:
    """
    One normalized observation of an asset's redemption rate.

    This is the ONLY object allowed to cross the handoff channel:
        Scheduler -> HandoffChannel -> SubmissionWorker

    `timestamp` is the observation time in epoch seconds (int).
    """

    asset: Asset
    value: Decimal
    timestamp: int

    @property
    def contract(self) -> str:
        return self.asset.ethereum_contract
