from __future__ import annotations

import json
from pathlib import Path

import pytest

import hc_config


def test_deep_merge_overrides_nested_keys_and_replaces_scalars() -> None:
    base = {"a": {"x": 1, "y": 2}, "b": [1, 2], "c": "keep"}
    merged = hc_config.deep_merge(base, {"a": {"y": 3}, "b": [9]})
    assert merged == {"a": {"x": 1, "y": 3}, "b": [9], "c": "keep"}
    # The defaults are left untouched.
    assert base["a"]["y"] == 2


def test_resolve_config_falls_back_to_defaults(tmp_path: Path) -> None:
    config = hc_config.resolve_config(user={"rootPath": str(tmp_path)})
    assert config.gateway.port == 18789
    assert config.gateway.base_url == "http://127.0.0.1:18789"
    assert config.thresholds.token_critical_pct == 92
    assert config.thresholds.max_restarts_per_window == 3
    assert config.escalation.via_primary_channel is True
    assert config.gateway.token == ""


def test_resolve_config_reads_token_from_gateway_settings(tmp_path: Path) -> None:
    (tmp_path / "openclaw.json").write_text(
        json.dumps({"gateway": {"auth": {"token": "from-gateway"}}}), encoding="utf-8"
    )
    config = hc_config.resolve_config(user={"rootPath": str(tmp_path)})
    assert config.gateway.token == "from-gateway"


def test_explicit_token_wins_over_gateway_settings(tmp_path: Path) -> None:
    (tmp_path / "openclaw.json").write_text(
        json.dumps({"gateway": {"auth": {"token": "from-gateway"}}}), encoding="utf-8"
    )
    config = hc_config.resolve_config(user={"rootPath": str(tmp_path), "gateway": {"token": "explicit"}})
    assert config.gateway.token == "explicit"


def test_malformed_gateway_settings_leave_token_empty(tmp_path: Path) -> None:
    (tmp_path / "openclaw.json").write_text("{not json", encoding="utf-8")
    config = hc_config.resolve_config(user={"rootPath": str(tmp_path)})
    assert config.gateway.token == ""


def test_read_user_config_skips_malformed_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    bad = tmp_path / "bad.json"
    bad.write_text("{oops", encoding="utf-8")
    monkeypatch.setattr(hc_config, "config_search_paths", lambda explicit=None: [str(bad)])
    assert hc_config.read_user_config() == {}


def test_read_user_config_uses_explicit_path(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"thresholds": {"fdWarningPct": 70}}), encoding="utf-8")
    config = hc_config.resolve_config(config_path=str(path))
    assert config.thresholds.fd_warning_pct == 70
    assert config.thresholds.fd_soft_cap == 10000


def test_config_is_frozen(tmp_path: Path) -> None:
    config = hc_config.resolve_config(user={"rootPath": str(tmp_path)})
    with pytest.raises(AttributeError):
        config.gateway.port = 1  # type: ignore[misc]


@pytest.mark.parametrize(
    "override",
    [
        {"thresholds": {"tokenWarningPct": 120}},
        {"thresholds": {"fdWarningPct": -1}},
        {"thresholds": {"restartWindowMinutes": 0}},
        {"escalation": {"cooldownMinutes": -5}},
    ],
)
def test_out_of_range_values_are_rejected(tmp_path: Path, override: dict) -> None:
    with pytest.raises(hc_config.ConfigError):
        hc_config.resolve_config(user={"rootPath": str(tmp_path), **override})


@pytest.mark.parametrize(
    "override",
    [
        {"gateway": None},
        {"thresholds": "x"},
        {"thresholds": {"fdWarningPct": "80"}},
        {"gateway": {"port": "18789"}},
        {"escalation": {"viaPrimaryChannel": "false"}},
        {"escalation": {"cooldownMinutes": True}},
        {"paths": ["logs"]},
    ],
)
def test_wrongly_typed_values_fall_back_to_defaults(tmp_path: Path, override: dict) -> None:
    config = hc_config.resolve_config(user={"rootPath": str(tmp_path), **override})
    assert config.gateway.port == 18789
    assert config.thresholds.fd_warning_pct == 80
    assert config.escalation.via_primary_channel is True
    assert config.escalation.cooldown_minutes == 15
    assert config.paths.log_dir.endswith("logs")


def test_wrongly_typed_value_keeps_sibling_overrides(tmp_path: Path) -> None:
    config = hc_config.resolve_config(
        user={"rootPath": str(tmp_path), "thresholds": {"fdWarningPct": "70", "tokenWarningPct": 75}}
    )
    assert config.thresholds.fd_warning_pct == 80
    assert config.thresholds.token_warning_pct == 75


def test_real_boolean_disables_primary_channel(tmp_path: Path) -> None:
    config = hc_config.resolve_config(user={"rootPath": str(tmp_path), "escalation": {"viaPrimaryChannel": False}})
    assert config.escalation.via_primary_channel is False


def test_numeric_values_accept_int_or_float(tmp_path: Path) -> None:
    config = hc_config.resolve_config(user={"rootPath": str(tmp_path), "thresholds": {"restartWindowMinutes": 7.5}})
    assert config.thresholds.restart_window_minutes == 7.5
