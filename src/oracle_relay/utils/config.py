from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Any, Dict, List

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from oracle_relay.exceptions.core import ConfigError

DEFAULT_PRICE_VARIANCE_THRESHOLD = 0.0025
DEFAULT_CHECK_VARIANCE_PERIOD = 15
DEFAULT_SUBMISSION_PERIOD = 300
DEFAULT_MIN_TIME_BETWEEN_QUOTES = 6

SIGNING_KEY_ENV = "ORACLE_SIGNING_KEY"
# older deployments export the credential under this name
LEGACY_SIGNING_KEY_ENV = "COSMOS_WALLET"

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_MAX_DECIMALS = 38


def _normalize_address(value: Any) -> str:
    s = str(value).strip()
    if not _ADDRESS_RE.match(s):
        raise ValueError(f"invalid EVM address: {value!r}")
    return s.lower()


class AssetConfig(BaseModel):
    ethereum_contract: str
    decimals: int = Field(..., ge=0, le=_MAX_DECIMALS)
    base: str
    quote: str

    @field_validator("ethereum_contract", mode="before")
    @classmethod
    def _address(cls, v: Any) -> str:
        return _normalize_address(v)


class SubmitterConfig(BaseModel):
    type: str = Field("REMOTE_SIGNER", description="Name of the registered submitter.")
    params: Dict[str, Any] = Field(default_factory=dict)


class RelayConfig(BaseModel):
    """
    Relay configuration.

    Tunables set to 0 (or null) fall back to their defaults, so deployment
    files that write unset numbers as 0 still run with sane cadences.
    """

    ethereum_rpc_url: str = Field(..., min_length=1)
    destination_url: str = Field(..., min_length=1, alias="osmosis_grpc_url")
    signing_key: str = ""
    contract_map: Dict[str, str]
    assets: List[AssetConfig]
    submitter: SubmitterConfig = Field(default_factory=SubmitterConfig)

    price_variance_threshold: float = DEFAULT_PRICE_VARIANCE_THRESHOLD
    check_variance_period: int = DEFAULT_CHECK_VARIANCE_PERIOD
    submission_period: int = DEFAULT_SUBMISSION_PERIOD
    min_time_between_quotes: int = DEFAULT_MIN_TIME_BETWEEN_QUOTES

    model_config = {"populate_by_name": True}

    @field_validator("contract_map", mode="before")
    @classmethod
    def _contract_map(cls, v: Any) -> Dict[str, str]:
        if not isinstance(v, dict):
            raise ValueError("contract_map must be an object")
        out: Dict[str, str] = {}
        for k, dest in v.items():
            key = _normalize_address(k)
            if key in out:
                raise ValueError(f"contract_map has duplicate entries for {key}")
            if not isinstance(dest, str) or not dest.strip():
                raise ValueError(f"contract_map entry for {key} must be a non-empty string")
            out[key] = dest.strip()
        return out

    @field_validator("price_variance_threshold", mode="before")
    @classmethod
    def _threshold_default(cls, v: Any) -> Any:
        if v is None or v == 0:
            return DEFAULT_PRICE_VARIANCE_THRESHOLD
        return v

    @field_validator("check_variance_period", mode="before")
    @classmethod
    def _variance_period_default(cls, v: Any) -> Any:
        return DEFAULT_CHECK_VARIANCE_PERIOD if v is None or v == 0 else v

    @field_validator("submission_period", mode="before")
    @classmethod
    def _submission_period_default(cls, v: Any) -> Any:
        return DEFAULT_SUBMISSION_PERIOD if v is None or v == 0 else v

    @field_validator("min_time_between_quotes", mode="before")
    @classmethod
    def _min_time_default(cls, v: Any) -> Any:
        return DEFAULT_MIN_TIME_BETWEEN_QUOTES if v is None or v == 0 else v

    @field_validator(
        "price_variance_threshold",
        "check_variance_period",
        "submission_period",
        "min_time_between_quotes",
    )
    @classmethod
    def _positive(cls, v: Any) -> Any:
        if v < 0:
            raise ValueError(f"must be >= 0, got {v}")
        return v

    @model_validator(mode="after")
    def _check_assets(self) -> "RelayConfig":
        if not self.assets:
            raise ValueError("assets is required")
        # exact duplicates are collapsed by AssetRegistry
        seen: Dict[str, AssetConfig] = {}
        for a in self.assets:
            first = seen.setdefault(a.ethereum_contract, a)
            if first != a:
                raise ValueError(f"assets has conflicting entries for {a.ethereum_contract}")
            if a.ethereum_contract not in self.contract_map:
                raise ValueError(f"contract_map is missing entry for {a.ethereum_contract}")
        return self


def load_config(path: str | Path) -> RelayConfig:
    """Load and validate a JSON relay config; raises ConfigError on any problem."""
    p = Path(path)
    try:
        with p.open("r", encoding="utf-8") as f:
            raw = json.load(f)
    except FileNotFoundError as exc:
        raise ConfigError(f"config file not found: {p}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"config file is not valid JSON: {p}: {exc}") from exc
    return parse_config(raw)


def parse_config(raw: Any) -> RelayConfig:
    if not isinstance(raw, dict):
        raise ConfigError(f"config root must be an object, got {type(raw).__name__}")
    try:
        return RelayConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc


def resolve_signing_key(cfg: RelayConfig, environ: Dict[str, str] | None = None) -> str:
    """Signing credential reference.

    ORACLE_SIGNING_KEY wins, then COSMOS_WALLET, then the config file.
    """
    env = os.environ if environ is None else environ
    return str(env.get(SIGNING_KEY_ENV) or env.get(LEGACY_SIGNING_KEY_ENV) or cfg.signing_key or "")
