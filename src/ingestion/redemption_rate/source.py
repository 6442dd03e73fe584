from __future__ import annotations

import itertools
import threading
from decimal import Decimal
from typing import Any

import requests

from ingestion.contracts.quote import Asset
from ingestion.contracts.source import QuoteSource
from ingestion.redemption_rate.normalize import (
    decode_uint256,
    encode_preview_redeem,
    normalize_rate,
    unit_shares,
)
from oracle_relay.exceptions.core import SourceError
from oracle_relay.utils.logger import get_logger, log_debug

DEFAULT_TIMEOUT_S = 10.0


class ERC4626RpcSource(QuoteSource):
    """
    Redemption-rate source backed by an EVM JSON-RPC endpoint.

    For each asset, calls previewRedeem(10**decimals) on the vault contract
    via eth_call at the latest block and normalizes the returned amount with
    the same decimals.

    Thread-safe: the scheduler issues reads for different assets concurrently
    from worker threads.
    """

    def __init__(
        self,
        *,
        rpc_url: str,
        timeout: float = DEFAULT_TIMEOUT_S,
        block: str = "latest",
        session: requests.Session | None = None,
    ):
        if not rpc_url:
            raise ValueError("rpc_url must be provided")
        self._rpc_url = rpc_url
        self._timeout = float(timeout)
        self._block = block
        self._session = session or requests.Session()
        self._ids = itertools.count(1)
        self._ids_lock = threading.Lock()
        self._logger = get_logger(f"ingestion.redemption_rate.{self.__class__.__name__}")

    def read(self, asset: Asset) -> Decimal:
        log_debug(
            self._logger,
            "source.preview_redeem",
            asset=asset.pair,
            contract=asset.ethereum_contract,
            decimals=asset.decimals,
        )
        data = encode_preview_redeem(unit_shares(asset.decimals))
        result = self._call({"to": asset.ethereum_contract, "data": data})
        raw = decode_uint256(result)
        return normalize_rate(raw, asset.decimals)

    def _next_id(self) -> int:
        with self._ids_lock:
            return next(self._ids)

    def _call(self, tx: dict[str, str]) -> Any:
        body = {
            "jsonrpc": "2.0",
            "id": self._next_id(),
            "method": "eth_call",
            "params": [tx, self._block],
        }
        try:
            r = self._session.post(self._rpc_url, json=body, timeout=self._timeout)
            r.raise_for_status()
            payload = r.json()
        except requests.RequestException as exc:
            raise SourceError(f"eth_call request failed: {exc}") from exc
        except ValueError as exc:
            raise SourceError("eth_call returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise SourceError(f"Unexpected JSON-RPC response type: {type(payload)!r}")
        err = payload.get("error")
        if err is not None:
            if isinstance(err, dict):
                raise SourceError(f"eth_call failed ({err.get('code')}): {err.get('message')}")
            raise SourceError(f"eth_call failed: {err!r}")
        if "result" not in payload:
            raise SourceError("JSON-RPC response missing 'result'")
        return payload["result"]

    def close(self) -> None:
        self._session.close()
