# submission/dry_run.py
from __future__ import annotations

import hashlib
from collections import deque
from decimal import Decimal

from oracle_relay.submission.base import SubmissionResult, TxSubmitter
from oracle_relay.submission.msg import ChainContext, encode_msg, execute_contract_msg, set_price_msg
from oracle_relay.submission.registry import register_submitter
from oracle_relay.utils.logger import get_logger, log_info

# recent messages kept for inspection; older ones live only in the log
DEFAULT_HISTORY = 256


@register_submitter("DRY_RUN")
class DryRunSubmitter(TxSubmitter):
    """Builds the set_price message and logs it; nothing is signed or broadcast."""

    def __init__(
        self,
        sender: str = "dry-run",
        chain: ChainContext | None = None,
        history: int = DEFAULT_HISTORY,
        **kwargs,
    ):
        self.sender = sender
        self.chain = chain or ChainContext()
        self.submitted: deque[dict] = deque(maxlen=max(1, int(history)))
        self._logger = get_logger(__name__)

    def submit(self, contract: str, value: Decimal, timestamp: int) -> SubmissionResult:
        msg = execute_contract_msg(sender=self.sender, contract=contract, msg=set_price_msg(value, timestamp))
        self.submitted.append(msg)
        tx_hash = hashlib.sha256(encode_msg(msg)).hexdigest().upper()
        log_info(
            self._logger,
            "submission.dry_run",
            chain_id=self.chain.chain_id,
            contract=contract,
            execute_msg=msg["value"]["msg"],
            tx_hash=tx_hash,
        )
        return SubmissionResult(contract=contract, tx_hash=tx_hash, extra={"dry_run": True})
