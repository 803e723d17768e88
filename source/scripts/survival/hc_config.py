#!/usr/bin/env python3
import copy
import json
import os
import logging
from dataclasses import dataclass
from typing import Dict, Optional

# --- oc-healthcheck: configuration resolver ---

SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
OPENCLAW_HOME = os.environ.get("OPENCLAW_HOME") or os.path.expanduser("~/.openclaw")

DEFAULTS = {
    "gateway": {
        "host": "127.0.0.1",
        "port": 18789,
        "token": "",               # auto-loaded from openclaw.json if empty
        "restartIdentifier": "",   # platform default when empty
        "processPattern": "openclaw-gateway",
        "model": "openclaw",
    },
    "thresholds": {
        "fdWarningPct": 80,
        "fdSoftCap": 10000,        # used when the fd limit is unlimited
        "tokenWarningPct": 80,
        "tokenCriticalPct": 92,
        "maxRestartsPerWindow": 3,
        "restartWindowMinutes": 15,
        "probeTimeoutMs": 5000,
        "sessionActiveMinutes": 30,  # ignore sessions idle longer than this
    },
    "escalation": {
        "contact": "",             # iMessage address for the direct fallback
        "viaPrimaryChannel": True,
        "cooldownMinutes": 15,
    },
    "rootPath": OPENCLAW_HOME,
    "paths": {
        "backupScript": os.path.join(SCRIPT_DIR, "backup.sh"),
        "logDir": os.path.join(SCRIPT_DIR, "logs"),
        "stateFile": os.path.join(SCRIPT_DIR, "state.json"),
    },
}

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Resolved configuration violates a range invariant."""


@dataclass(frozen=True)
class GatewayConfig:
    host: str
    port: int
    token: str
    restart_identifier: str
    process_pattern: str
    model: str

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


@dataclass(frozen=True)
class Thresholds:
    fd_warning_pct: int
    fd_soft_cap: int
    token_warning_pct: int
    token_critical_pct: int
    max_restarts_per_window: int
    restart_window_minutes: float
    probe_timeout_ms: int
    session_active_minutes: int


@dataclass(frozen=True)
class EscalationConfig:
    contact: str
    via_primary_channel: bool
    cooldown_minutes: float


@dataclass(frozen=True)
class PathsConfig:
    backup_script: str
    log_dir: str
    state_file: str


@dataclass(frozen=True)
class Config:
    gateway: GatewayConfig
    thresholds: Thresholds
    escalation: EscalationConfig
    root_path: str
    paths: PathsConfig


def _same_kind(default, value) -> bool:
    # bool is an int subclass, so it is checked first.
    if isinstance(default, bool) or isinstance(value, bool):
        return isinstance(default, bool) and isinstance(value, bool)
    if isinstance(default, (int, float)):
        return isinstance(value, (int, float))
    return isinstance(value, type(default))


def deep_merge(target: Dict, source: Dict, prefix: str = "") -> Dict:
    """Nested dicts merge key by key; scalars and lists replace wholesale.

    A value whose type differs from the one it overrides is dropped with a
    warning, so the default stays in place.
    """
    result = copy.deepcopy(target)
    for key, value in source.items():
        current = result.get(key)
        if current is not None and not _same_kind(current, value):
            logger.warning(
                f"Ignoring config key {prefix}{key}: expected {type(current).__name__}, "
                f"got {type(value).__name__}"
            )
            continue
        if isinstance(value, dict) and isinstance(current, dict):
            result[key] = deep_merge(current, value, prefix=f"{prefix}{key}.")
        else:
            result[key] = copy.deepcopy(value)
    return result


def config_search_paths(explicit: Optional[str] = None):
    paths = []
    if explicit:
        paths.append(explicit)
    paths.append(os.path.join(SCRIPT_DIR, "config.json"))
    paths.append(os.path.join(OPENCLAW_HOME, "wip-healthcheck", "config.json"))
    return paths


def read_user_config(explicit: Optional[str] = None) -> Dict:
    """First readable config document wins. Malformed files are skipped."""
    for path in config_search_paths(explicit):
        if not os.path.exists(path):
            continue
        try:
            with open(path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable config {path}: {e}")
            continue
        if isinstance(data, dict):
            return data
        logger.warning(f"Ignoring config {path}: top level is not an object")
    return {}


def load_gateway_token(root_path: str) -> str:
    """Reads gateway.auth.token from the gateway's own openclaw.json."""
    try:
        with open(os.path.join(root_path, "openclaw.json"), "r") as f:
            data = json.load(f)
        return data.get("gateway", {}).get("auth", {}).get("token") or ""
    except (OSError, json.JSONDecodeError, AttributeError):
        return ""


def _check_pct(name, value):
    if not 0 <= value <= 100:
        raise ConfigError(f"{name} must be within [0, 100], got {value}")


def _check_positive(name, value):
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")


def build_config(raw: Dict) -> Config:
    gw = raw["gateway"]
    th = raw["thresholds"]
    esc = raw["escalation"]
    paths = raw.get("paths", {})

    thresholds = Thresholds(
        fd_warning_pct=th["fdWarningPct"],
        fd_soft_cap=int(th["fdSoftCap"]),
        token_warning_pct=th["tokenWarningPct"],
        token_critical_pct=th["tokenCriticalPct"],
        max_restarts_per_window=int(th["maxRestartsPerWindow"]),
        restart_window_minutes=th["restartWindowMinutes"],
        probe_timeout_ms=int(th["probeTimeoutMs"]),
        session_active_minutes=int(th["sessionActiveMinutes"]),
    )
    for name in ("fd_warning_pct", "token_warning_pct", "token_critical_pct"):
        _check_pct(name, getattr(thresholds, name))
    _check_positive("restart_window_minutes", thresholds.restart_window_minutes)
    _check_positive("probe_timeout_ms", thresholds.probe_timeout_ms)
    _check_positive("session_active_minutes", thresholds.session_active_minutes)
    _check_positive("cooldown_minutes", esc["cooldownMinutes"])

    return Config(
        gateway=GatewayConfig(
            host=gw["host"],
            port=int(gw["port"]),
            token=gw.get("token") or "",
            restart_identifier=gw.get("restartIdentifier") or "",
            process_pattern=gw["processPattern"],
            model=gw["model"],
        ),
        thresholds=thresholds,
        escalation=EscalationConfig(
            contact=esc.get("contact") or "",
            via_primary_channel=esc["viaPrimaryChannel"],
            cooldown_minutes=esc["cooldownMinutes"],
        ),
        root_path=raw["rootPath"],
        paths=PathsConfig(
            backup_script=paths["backupScript"],
            log_dir=paths["logDir"],
            state_file=paths["stateFile"],
        ),
    )


def resolve_config(user: Optional[Dict] = None, config_path: Optional[str] = None) -> Config:
    """Defaults, then file overrides, then the secondary token source."""
    if user is None:
        user = read_user_config(config_path)
    raw = deep_merge(DEFAULTS, user)

    if not raw["gateway"].get("token"):
        raw["gateway"]["token"] = load_gateway_token(raw["rootPath"])

    return build_config(raw)
