from __future__ import annotations

import json
from pathlib import Path

import pytest

from apps import run_relay
from oracle_relay.exceptions.core import SubmissionError
from oracle_relay.runtime.relay import Relay
from oracle_relay.submission.dry_run import DryRunSubmitter
from oracle_relay.submission.remote_signer import RemoteSignerSubmitter
from oracle_relay.utils.config import LEGACY_SIGNING_KEY_ENV, SIGNING_KEY_ENV

from tests.helpers.fakes_relay import ADDR_A, DEST, make_config

ROOT = Path(__file__).resolve().parents[2]
LOGGING = str(ROOT / "configs" / "logging.json")


def _write(tmp_path: Path, payload) -> str:
    path = tmp_path / "relay.json"
    path.write_text(payload if isinstance(payload, str) else json.dumps(payload), encoding="utf-8")
    return str(path)


def _raw_config(**overrides):
    raw = {
        "ethereum_rpc_url": "http://eth.invalid",
        "destination_url": "http://osmo.invalid",
        "signing_key": "oracle",
        "contract_map": {ADDR_A: DEST[ADDR_A]},
        "assets": [{"ethereum_contract": ADDR_A, "decimals": 18, "base": "WETH", "quote": "RYETH"}],
        "submitter": {"type": "REMOTE_SIGNER", "params": {"signer_url": "http://signer.invalid"}},
    }
    raw.update(overrides)
    return raw


def test_config_flag_required():
    with pytest.raises(SystemExit):
        run_relay.build_parser().parse_args([])


def test_empty_config_path_is_config_error():
    assert run_relay.main(["--config", "", "--logging", LOGGING]) == run_relay.EXIT_CONFIG


def test_missing_config_file(tmp_path: Path):
    code = run_relay.main(["--config", str(tmp_path / "nope.json"), "--logging", LOGGING])
    assert code == run_relay.EXIT_CONFIG == 2


def test_invalid_config_file(tmp_path: Path):
    path = _write(tmp_path, _raw_config(contract_map={}))
    assert run_relay.main(["--config", path, "--logging", LOGGING]) == run_relay.EXIT_CONFIG


def test_missing_signing_key_is_config_error(tmp_path: Path, monkeypatch):
    monkeypatch.delenv(SIGNING_KEY_ENV, raising=False)
    monkeypatch.delenv(LEGACY_SIGNING_KEY_ENV, raising=False)
    path = _write(tmp_path, _raw_config(signing_key=""))
    assert run_relay.main(["--config", path, "--logging", LOGGING]) == run_relay.EXIT_CONFIG


def test_unreachable_signer_is_fatal(tmp_path: Path, monkeypatch):
    def refuse(self):
        raise SubmissionError("signer unreachable")

    monkeypatch.setattr(RemoteSignerSubmitter, "address", refuse)
    path = _write(tmp_path, _raw_config())
    assert run_relay.main(["--config", path, "--logging", LOGGING]) == run_relay.EXIT_FATAL


def test_build_relay_dry_run():
    relay = run_relay.build_relay(make_config(), dry_run=True)
    assert isinstance(relay, Relay)
    assert isinstance(relay.submitter, DryRunSubmitter)
    assert relay.channel.capacity == 1
