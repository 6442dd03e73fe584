from __future__ import annotations

from decimal import Decimal
from typing import Any

import pytest
import requests

from oracle_relay.exceptions.core import SubmissionError
from oracle_relay.submission.msg import EXECUTE_CONTRACT_TYPE_URL
from oracle_relay.submission.registry import SUBMITTER_REGISTRY
from oracle_relay.submission.remote_signer import RemoteSignerSubmitter


class _FakeResponse:
    def __init__(self, payload: Any, status: int = 200):
        self._payload = payload
        self.status_code = status

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class _SignerSession:
    """Routes requests by (method, path suffix)."""

    def __init__(self, routes: dict[tuple[str, str], Any]):
        self.routes = routes
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    def request(self, method: str, url: str, timeout: float | None = None, **kwargs: Any) -> _FakeResponse:
        self.calls.append({"method": method, "url": url, "timeout": timeout, **kwargs})
        for (m, suffix), reply in self.routes.items():
            if m == method and url.endswith(suffix):
                if isinstance(reply, requests.RequestException):
                    raise reply
                if isinstance(reply, _FakeResponse):
                    return reply
                return _FakeResponse(reply)
        return _FakeResponse({}, status=404)

    def close(self) -> None:
        self.closed = True


ADDRESS = "osmo1relaywallet"


def _submitter(execute_reply: Any = None, address: Any = ADDRESS, **kwargs) -> tuple[RemoteSignerSubmitter, _SignerSession]:
    session = _SignerSession(
        {
            ("GET", "/keys/oracle"): {"address": address},
            ("POST", "/tx/execute"): execute_reply if execute_reply is not None else {"txhash": "ABC", "code": 0, "height": "42"},
        }
    )
    sub = RemoteSignerSubmitter(
        signer_url="http://signer.invalid/",
        key="oracle",
        node_url="http://osmo.invalid",
        session=session,
        **kwargs,
    )
    return sub, session


def test_registered():
    assert SUBMITTER_REGISTRY["REMOTE_SIGNER"] is RemoteSignerSubmitter


def test_address_resolved_once():
    sub, session = _submitter()
    assert sub.address() == ADDRESS
    assert sub.address() == ADDRESS
    assert [c["method"] for c in session.calls] == ["GET"]
    assert session.calls[0]["url"] == "http://signer.invalid/keys/oracle"


def test_address_prefix_checked():
    sub, _ = _submitter(address="cosmos1abc")
    with pytest.raises(SubmissionError, match="prefix"):
        sub.address()


def test_submit_posts_execute_contract():
    sub, session = _submitter()
    result = sub.submit("osmo1oracle", Decimal("1.0123"), 1_700_000_000)

    assert result.tx_hash == "ABC"
    assert result.height == 42
    assert result.contract == "osmo1oracle"

    post = session.calls[-1]
    assert post["method"] == "POST"
    body = post["json"]
    assert body["key"] == "oracle"
    assert body["chain_id"] == "osmosis-1"
    assert body["node"] == "http://osmo.invalid"
    assert body["broadcast_mode"] == "commit"
    assert body["fee"] == {"amount": [{"denom": "uosmo", "amount": "20000"}], "gas_limit": "1000000"}
    (msg,) = body["msgs"]
    assert msg["type_url"] == EXECUTE_CONTRACT_TYPE_URL
    assert msg["value"]["sender"] == ADDRESS
    assert msg["value"]["contract"] == "osmo1oracle"
    assert msg["value"]["funds"] == []
    assert msg["value"]["msg"] == {"set_price": {"value": "1.0123", "timestamp": "1700000000000000000"}}


def test_chain_and_fee_overrides():
    sub, session = _submitter(chain_id="osmo-test-5", fee_amount=5000, gas_limit=400000, address="osmo1x")
    sub.submit("osmo1oracle", Decimal("1"), 1)
    body = session.calls[-1]["json"]
    assert body["chain_id"] == "osmo-test-5"
    assert body["fee"] == {"amount": [{"denom": "uosmo", "amount": "5000"}], "gas_limit": "400000"}


def test_rejected_transaction_raises():
    sub, _ = _submitter(execute_reply={"txhash": "ABC", "code": 5, "raw_log": "insufficient funds"})
    with pytest.raises(SubmissionError, match="code 5.*insufficient funds"):
        sub.submit("osmo1oracle", Decimal("1"), 1)


def test_missing_txhash_raises():
    sub, _ = _submitter(execute_reply={"code": 0})
    with pytest.raises(SubmissionError, match="txhash"):
        sub.submit("osmo1oracle", Decimal("1"), 1)


def test_transport_error_raises_submission_error():
    sub, _ = _submitter(execute_reply=requests.ConnectionError("refused"))
    with pytest.raises(SubmissionError, match="refused"):
        sub.submit("osmo1oracle", Decimal("1"), 1)


def test_invalid_json_raises_submission_error():
    sub, _ = _submitter(execute_reply=_FakeResponse(ValueError("bad json")))
    with pytest.raises(SubmissionError, match="invalid JSON"):
        sub.submit("osmo1oracle", Decimal("1"), 1)


def test_required_params():
    with pytest.raises(ValueError):
        RemoteSignerSubmitter(signer_url="", key="oracle", node_url="http://x")
    with pytest.raises(ValueError):
        RemoteSignerSubmitter(signer_url="http://s", key="", node_url="http://x")


def test_close_closes_session():
    sub, session = _submitter()
    sub.close()
    assert session.closed
