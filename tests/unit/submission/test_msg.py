from __future__ import annotations

import json
from decimal import Decimal

import pytest

from oracle_relay.submission.msg import (
    EXECUTE_CONTRACT_TYPE_URL,
    FeeSpec,
    decimal256_str,
    encode_msg,
    execute_contract_msg,
    set_price_msg,
    timestamp_nanos_str,
)


@pytest.mark.parametrize(
    "value,expected",
    [
        (Decimal("1.0025"), "1.0025"),
        (Decimal("1.000"), "1"),
        (Decimal("0"), "0"),
        (Decimal("0E-18"), "0"),
        (Decimal("1E+3"), "1000"),
        (Decimal("0.000000000000000001"), "0.000000000000000001"),
        # beyond 18 places is truncated, not rounded
        (Decimal("1.0000000000000000019"), "1.000000000000000001"),
        (Decimal("340282366920938463463.374607431768211455"), "340282366920938463463.374607431768211455"),
    ],
)
def test_decimal256_str(value, expected):
    assert decimal256_str(value) == expected


@pytest.mark.parametrize("bad", [Decimal("-1"), Decimal("NaN"), Decimal("Infinity")])
def test_decimal256_rejects(bad):
    with pytest.raises(ValueError):
        decimal256_str(bad)


def test_timestamp_is_nanoseconds():
    assert timestamp_nanos_str(1_700_000_000) == "1700000000000000000"
    with pytest.raises(ValueError):
        timestamp_nanos_str(-1)


def test_set_price_msg_shape():
    msg = set_price_msg(Decimal("1.0123"), 1_700_000_000)
    assert msg == {"set_price": {"value": "1.0123", "timestamp": "1700000000000000000"}}
    assert encode_msg(msg) == b'{"set_price":{"value":"1.0123","timestamp":"1700000000000000000"}}'


def test_set_price_without_timestamp():
    assert set_price_msg(Decimal("2"), None) == {"set_price": {"value": "2", "timestamp": None}}


def test_execute_contract_msg():
    inner = set_price_msg(Decimal("1"), 1)
    msg = execute_contract_msg(sender="osmo1sender", contract="osmo1oracle", msg=inner)
    assert msg["type_url"] == EXECUTE_CONTRACT_TYPE_URL == "/cosmwasm.wasm.v1.MsgExecuteContract"
    assert msg["value"] == {"sender": "osmo1sender", "contract": "osmo1oracle", "msg": inner, "funds": []}
    json.dumps(msg)


def test_fee_defaults():
    assert FeeSpec().as_dict() == {
        "amount": [{"denom": "uosmo", "amount": "20000"}],
        "gas_limit": "1000000",
    }
