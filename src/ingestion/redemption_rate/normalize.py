from __future__ import annotations

from decimal import Decimal, localcontext
from typing import Any

from oracle_relay.exceptions.core import SourceError

"""
ERC-4626 previewRedeem(uint256) encoding helpers.

Raw readings are fixed-point integers scaled by 10**decimals; the relay
works with exact Decimals so that comparisons against the variance
threshold never pick up float rounding.
"""

PREVIEW_REDEEM_SELECTOR = "0x4cdad506"  # keccak("previewRedeem(uint256)")[:4]
_WORD_HEX_LEN = 64
_U128_MAX = (1 << 128) - 1
_U256_MAX = (1 << 256) - 1
_EXACT_PREC = 80  # > digits of uint128 plus max decimals


def encode_preview_redeem(shares: int) -> str:
    """Return hex calldata for previewRedeem(shares)."""
    if isinstance(shares, bool) or not isinstance(shares, int):
        raise TypeError(f"shares must be int, got {type(shares).__name__}")
    if shares < 0 or shares > _U256_MAX:
        raise ValueError(f"shares out of uint256 range: {shares}")
    return PREVIEW_REDEEM_SELECTOR + format(shares, f"0{_WORD_HEX_LEN}x")


def unit_shares(decimals: int) -> int:
    """One whole share expressed in base units."""
    return 10 ** int(decimals)


def decode_uint256(result: Any) -> int:
    """Decode the first 32-byte word of an eth_call result."""
    if not isinstance(result, str) or not result.startswith("0x"):
        raise SourceError(f"unexpected eth_call result: {result!r}")
    body = result[2:]
    if len(body) < _WORD_HEX_LEN:
        raise SourceError(f"eth_call result too short ({len(body)} hex chars): {result!r}")
    try:
        return int(body[:_WORD_HEX_LEN], 16)
    except ValueError as exc:
        raise SourceError(f"eth_call result is not hex: {result!r}") from exc


def normalize_rate(raw: int, decimals: int) -> Decimal:
    """Scale a raw uint reading down by 10**decimals, exactly.

    Readings above uint128 are rejected.
    """
    if raw < 0 or raw > _U128_MAX:
        raise SourceError(f"redemption rate does not fit in uint128: {raw}")
    with localcontext() as ctx:
        ctx.prec = _EXACT_PREC
        return Decimal(raw).scaleb(-int(decimals))
