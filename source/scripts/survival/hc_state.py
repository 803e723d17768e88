#!/usr/bin/env python3
import json
import os
import logging
from dataclasses import dataclass, field
from typing import List, Optional

logger = logging.getLogger(__name__)


@dataclass
class State:
    """Durable record carried between healthcheck runs."""
    restarts: List[float] = field(default_factory=list)
    consecutive_failures: int = 0
    last_check: Optional[str] = None
    last_escalation: Optional[float] = None
    last_usage_warning: Optional[float] = None

    def recent_restarts(self, now: float, window_seconds: float) -> List[float]:
        # Read-only view; stale entries stay in storage.
        return [t for t in self.restarts if now - t < window_seconds]

    def to_dict(self):
        return {
            "restarts": list(self.restarts),
            "consecutiveFailures": self.consecutive_failures,
            "lastCheck": self.last_check,
            "lastEscalation": self.last_escalation,
            "lastTokenWarning": self.last_usage_warning,
        }

    @classmethod
    def from_dict(cls, data):
        restarts = data.get("restarts") or []
        return cls(
            restarts=[float(t) for t in restarts],
            consecutive_failures=max(0, int(data.get("consecutiveFailures") or 0)),
            last_check=data.get("lastCheck"),
            last_escalation=_optional_float(data.get("lastEscalation")),
            last_usage_warning=_optional_float(data.get("lastTokenWarning")),
        )


def _optional_float(value):
    return None if value is None else float(value)


def load_state(path: str) -> State:
    if not os.path.exists(path):
        return State()
    try:
        with open(path, "r") as f:
            return State.from_dict(json.load(f))
    except (OSError, ValueError, TypeError, AttributeError) as e:
        logger.warning(f"State file {path} unreadable, starting fresh: {e}")
        return State()


def save_state(path: str, state: State):
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    tmp_path = f"{path}.tmp"
    with open(tmp_path, "w") as f:
        json.dump(state.to_dict(), f, indent=2)
    os.replace(tmp_path, path)
