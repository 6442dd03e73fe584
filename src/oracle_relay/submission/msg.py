from __future__ import annotations

import json
from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal, localcontext
from typing import Any

"""
CosmWasm wire shapes for the destination oracle contract.

ExecuteMsg::SetPrice JSON:
    {"set_price": {"value": "<Decimal256>", "timestamp": "<Timestamp>"}}

Decimal256 serializes as a plain decimal string without exponent or trailing
zeros; Timestamp serializes as a string of nanoseconds since the epoch.
"""

EXECUTE_CONTRACT_TYPE_URL = "/cosmwasm.wasm.v1.MsgExecuteContract"
DECIMAL256_MAX_PLACES = 18
_NANOS_PER_SECOND = 1_000_000_000


@dataclass(frozen=True)
class ChainContext:
    chain_id: str = "osmosis-1"
    prefix: str = "osmo"


@dataclass(frozen=True)
class FeeSpec:
    denom: str = "uosmo"
    amount: int = 20_000
    gas_limit: int = 1_000_000

    def as_dict(self) -> dict[str, Any]:
        return {
            "amount": [{"denom": self.denom, "amount": str(int(self.amount))}],
            "gas_limit": str(int(self.gas_limit)),
        }


def decimal256_str(value: Decimal) -> str:
    """Encode a non-negative Decimal the way cosmwasm Decimal256 serializes it."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    if not value.is_finite() or value < 0:
        raise ValueError(f"Decimal256 must be finite and non-negative, got {value}")
    exp = value.as_tuple().exponent
    if isinstance(exp, int) and -exp > DECIMAL256_MAX_PLACES:
        # Decimal256 keeps 18 places; extra precision is truncated
        with localcontext() as ctx:
            ctx.prec = 80
            value = value.quantize(Decimal(1).scaleb(-DECIMAL256_MAX_PLACES), rounding=ROUND_DOWN)
    s = format(value, "f")
    if "." in s:
        s = s.rstrip("0").rstrip(".")
    return s or "0"


def timestamp_nanos_str(seconds: int) -> str:
    if isinstance(seconds, bool) or int(seconds) < 0:
        raise ValueError(f"timestamp must be a non-negative number of seconds, got {seconds!r}")
    return str(int(seconds) * _NANOS_PER_SECOND)


def set_price_msg(value: Decimal, timestamp: int | None) -> dict[str, Any]:
    inner: dict[str, Any] = {"value": decimal256_str(value)}
    inner["timestamp"] = timestamp_nanos_str(timestamp) if timestamp is not None else None
    return {"set_price": inner}


def execute_contract_msg(*, sender: str, contract: str, msg: dict[str, Any]) -> dict[str, Any]:
    """MsgExecuteContract in its amino-JSON form; funds are always empty."""
    return {
        "type_url": EXECUTE_CONTRACT_TYPE_URL,
        "value": {
            "sender": sender,
            "contract": contract,
            "msg": msg,
            "funds": [],
        },
    }


def encode_msg(msg: dict[str, Any]) -> bytes:
    """Compact JSON bytes, as carried in MsgExecuteContract.msg."""
    return json.dumps(msg, separators=(",", ":"), sort_keys=False).encode("utf-8")
