# submission/remote_signer.py
from __future__ import annotations

from decimal import Decimal
from typing import Any

import requests

from oracle_relay.exceptions.core import SubmissionError
from oracle_relay.submission.base import SubmissionResult, TxSubmitter
from oracle_relay.submission.msg import ChainContext, FeeSpec, execute_contract_msg, set_price_msg
from oracle_relay.submission.registry import register_submitter
from oracle_relay.utils.logger import get_logger, log_debug, log_info

DEFAULT_TIMEOUT_S = 30.0


@register_submitter("REMOTE_SIGNER")
class RemoteSignerSubmitter(TxSubmitter):
    """
    Submitter that keeps the key material out of the relay process.

    Signing is delegated to a signing service over HTTP:
        GET  {signer_url}/keys/{key}   -> {"address": "osmo1..."}
        POST {signer_url}/tx/execute   -> {"txhash": ..., "code": 0, "height": ..., "raw_log": ...}

    The execute request carries the unsigned MsgExecuteContract, fee, gas
    limit and chain context, and asks for a commit broadcast to `node_url`,
    so submit() returns only once the write is in a block.
    """

    def __init__(
        self,
        *,
        signer_url: str,
        key: str,
        node_url: str,
        chain_id: str | None = None,
        prefix: str | None = None,
        fee_denom: str | None = None,
        fee_amount: int | None = None,
        gas_limit: int | None = None,
        timeout: float = DEFAULT_TIMEOUT_S,
        session: requests.Session | None = None,
        **kwargs,
    ):
        if not signer_url:
            raise ValueError("signer_url must be provided")
        if not key:
            raise ValueError("signing key reference must be provided")
        self._signer_url = signer_url.rstrip("/")
        self._key = key
        self._node_url = node_url
        defaults_chain = ChainContext()
        defaults_fee = FeeSpec()
        self.chain = ChainContext(
            chain_id=chain_id or defaults_chain.chain_id,
            prefix=prefix or defaults_chain.prefix,
        )
        self.fee = FeeSpec(
            denom=fee_denom or defaults_fee.denom,
            amount=int(fee_amount) if fee_amount is not None else defaults_fee.amount,
            gas_limit=int(gas_limit) if gas_limit is not None else defaults_fee.gas_limit,
        )
        self._timeout = float(timeout)
        self._session = session or requests.Session()
        self._address: str | None = None
        self._logger = get_logger(__name__)

    def address(self) -> str:
        """Wallet address for the key reference (resolved once, then cached)."""
        if self._address is not None:
            return self._address
        payload = self._request("GET", f"/keys/{self._key}")
        address = payload.get("address")
        if not isinstance(address, str) or not address:
            raise SubmissionError(f"signer returned no address for key {self._key!r}")
        if not address.startswith(self.chain.prefix + "1"):
            raise SubmissionError(
                f"signer address {address!r} does not use bech32 prefix {self.chain.prefix!r}"
            )
        self._address = address
        log_info(self._logger, "relay.oracle_wallet", address=address, chain_id=self.chain.chain_id)
        return address

    def submit(self, contract: str, value: Decimal, timestamp: int) -> SubmissionResult:
        msg = execute_contract_msg(
            sender=self.address(),
            contract=contract,
            msg=set_price_msg(value, timestamp),
        )
        body = {
            "key": self._key,
            "chain_id": self.chain.chain_id,
            "node": self._node_url,
            "msgs": [msg],
            "fee": self.fee.as_dict(),
            "broadcast_mode": "commit",
        }
        log_debug(self._logger, "submission.request", contract=contract, execute_msg=msg["value"]["msg"])
        payload = self._request("POST", "/tx/execute", json=body)

        code = payload.get("code", 0)
        tx_hash = payload.get("txhash")
        if code not in (0, None):
            raise SubmissionError(
                f"transaction rejected (code {code}): {payload.get('raw_log') or 'no log'}"
            )
        if not isinstance(tx_hash, str) or not tx_hash:
            raise SubmissionError("signer response missing txhash")
        height = payload.get("height")
        return SubmissionResult(
            contract=contract,
            tx_hash=tx_hash,
            height=int(height) if height is not None else None,
        )

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        url = self._signer_url + path
        try:
            r = self._session.request(method, url, timeout=self._timeout, **kwargs)
            r.raise_for_status()
            payload = r.json()
        except requests.RequestException as exc:
            raise SubmissionError(f"signer request {method} {path} failed: {exc}") from exc
        except ValueError as exc:
            raise SubmissionError(f"signer returned invalid JSON for {method} {path}") from exc
        if not isinstance(payload, dict):
            raise SubmissionError(f"Unexpected signer response type: {type(payload)!r}")
        return payload

    def close(self) -> None:
        self._session.close()
