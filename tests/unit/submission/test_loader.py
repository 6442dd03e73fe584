from __future__ import annotations

import pytest

from oracle_relay.exceptions.core import ConfigError
from oracle_relay.submission.dry_run import DryRunSubmitter
from oracle_relay.submission.loader import SubmitterLoader
from oracle_relay.submission.registry import build_submitter
from oracle_relay.submission.remote_signer import RemoteSignerSubmitter
from oracle_relay.utils.config import LEGACY_SIGNING_KEY_ENV, SIGNING_KEY_ENV

from tests.helpers.fakes_relay import make_config


def _remote_cfg(**overrides):
    submitter = {"type": "REMOTE_SIGNER", "params": {"signer_url": "http://signer.invalid"}}
    return make_config(submitter=submitter, **overrides)


def test_remote_signer_built_from_config(monkeypatch):
    monkeypatch.delenv(SIGNING_KEY_ENV, raising=False)
    monkeypatch.delenv(LEGACY_SIGNING_KEY_ENV, raising=False)
    sub = SubmitterLoader.from_config(_remote_cfg(signing_key="oracle"))
    assert isinstance(sub, RemoteSignerSubmitter)
    assert sub.chain.chain_id == "osmosis-1"


def test_env_key_is_enough(monkeypatch):
    monkeypatch.setenv(SIGNING_KEY_ENV, "from-env")
    sub = SubmitterLoader.from_config(_remote_cfg())
    assert isinstance(sub, RemoteSignerSubmitter)


def test_remote_signer_requires_key(monkeypatch):
    monkeypatch.delenv(SIGNING_KEY_ENV, raising=False)
    monkeypatch.delenv(LEGACY_SIGNING_KEY_ENV, raising=False)
    with pytest.raises(ConfigError, match="signing key"):
        SubmitterLoader.from_config(_remote_cfg())


def test_remote_signer_requires_signer_url(monkeypatch):
    monkeypatch.delenv(SIGNING_KEY_ENV, raising=False)
    monkeypatch.delenv(LEGACY_SIGNING_KEY_ENV, raising=False)
    cfg = make_config(submitter={"type": "REMOTE_SIGNER", "params": {}}, signing_key="oracle")
    with pytest.raises(ConfigError):
        SubmitterLoader.from_config(cfg)


def test_dry_run_flag_overrides_type(monkeypatch):
    monkeypatch.delenv(SIGNING_KEY_ENV, raising=False)
    monkeypatch.delenv(LEGACY_SIGNING_KEY_ENV, raising=False)
    sub = SubmitterLoader.from_config(_remote_cfg(), dry_run=True)
    assert isinstance(sub, DryRunSubmitter)


def test_unknown_submitter_is_config_error():
    cfg = make_config(submitter={"type": "NOPE", "params": {}})
    with pytest.raises(ConfigError, match="NOPE"):
        SubmitterLoader.from_config(cfg)
    with pytest.raises(ValueError):
        build_submitter("NOPE")


def test_legacy_wallet_env_is_accepted(monkeypatch):
    monkeypatch.delenv(SIGNING_KEY_ENV, raising=False)
    monkeypatch.setenv(LEGACY_SIGNING_KEY_ENV, "legacy-key")
    sub = SubmitterLoader.from_config(_remote_cfg())
    assert isinstance(sub, RemoteSignerSubmitter)
    assert sub._key == "legacy-key"
