from __future__ import annotations

from pathlib import Path

import hc_state


def test_missing_state_file_gives_fresh_state(tmp_path: Path) -> None:
    state = hc_state.load_state(str(tmp_path / "nope.json"))
    assert state == hc_state.State()


def test_corrupt_state_file_gives_fresh_state(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    path.write_text("{{{ broken", encoding="utf-8")
    assert hc_state.load_state(str(path)) == hc_state.State()


def test_state_round_trips_through_save_and_load(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "state.json"
    state = hc_state.State(
        restarts=[1000.0, 2000.5],
        consecutive_failures=2,
        last_check="2026-10-19T10:00:00.000+00:00",
        last_escalation=1500.0,
        last_usage_warning=None,
    )
    hc_state.save_state(str(path), state)
    assert hc_state.load_state(str(path)) == state
    assert not (tmp_path / "nested" / "state.json.tmp").exists()


def test_state_file_uses_documented_keys(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    hc_state.save_state(str(path), hc_state.State(last_usage_warning=5.0))
    text = path.read_text(encoding="utf-8")
    for key in ("restarts", "consecutiveFailures", "lastCheck", "lastEscalation", "lastTokenWarning"):
        assert f'"{key}"' in text


def test_recent_restarts_filters_without_pruning() -> None:
    state = hc_state.State(restarts=[0.0, 10.0, 950.0])
    assert state.recent_restarts(now=1000.0, window_seconds=100) == [950.0]
    assert state.restarts == [0.0, 10.0, 950.0]
