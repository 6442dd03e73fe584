# submission/loader.py

from oracle_relay.exceptions.core import ConfigError
from oracle_relay.submission.base import TxSubmitter
from oracle_relay.submission.registry import build_submitter
from oracle_relay.utils.config import RelayConfig, resolve_signing_key

# imported for their @register_submitter side effect
import oracle_relay.submission.dry_run  # noqa: F401
import oracle_relay.submission.remote_signer  # noqa: F401


class SubmitterLoader:
    @staticmethod
    def from_config(cfg: RelayConfig, *, dry_run: bool = False) -> TxSubmitter:
        """
        cfg.submitter example:
        {
            "type": "REMOTE_SIGNER",
            "params": {"signer_url": "http://127.0.0.1:9090", "chain_id": "osmosis-1"}
        }

        The signing key reference and destination node come from the top-level
        config (the environment may override the key).
        """
        name = "DRY_RUN" if dry_run else cfg.submitter.type
        params = dict(cfg.submitter.params)
        key = resolve_signing_key(cfg)
        if name == "REMOTE_SIGNER" and not key:
            raise ConfigError("a signing key reference is required (signing_key, ORACLE_SIGNING_KEY or COSMOS_WALLET)")
        try:
            return build_submitter(name, key=key, node_url=cfg.destination_url, **params)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"cannot build submitter {name!r}: {exc}") from exc
