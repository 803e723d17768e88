from __future__ import annotations

import logging

import pytest

import hc_config


class FakeChannel:
    def __init__(self, name: str = "fake", ok: bool = True, error: str | None = None) -> None:
        self.name = name
        self.ok = ok
        self.error = error
        self.sent: list[str] = []

    def send(self, message: str):
        self.sent.append(message)
        return self.ok, (None if self.ok else self.error or "down")

    def wrap(self, alert: str) -> str:
        return alert


@pytest.fixture
def make_config(tmp_path):
    def _make(**overrides):
        user = {
            "rootPath": str(tmp_path / "openclaw"),
            "gateway": {"token": "secret"},
            "paths": {
                "logDir": str(tmp_path / "logs"),
                "stateFile": str(tmp_path / "state.json"),
                "backupScript": str(tmp_path / "backup.sh"),
            },
        }
        return hc_config.resolve_config(user=hc_config.deep_merge(user, overrides))

    return _make


@pytest.fixture
def config(make_config):
    return make_config()


@pytest.fixture(autouse=True)
def restore_root_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
