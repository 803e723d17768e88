#!/usr/bin/env python3
import os
import sys
import time
import subprocess
import logging
from dataclasses import dataclass
from typing import List, Optional

RESTART_TIMEOUT = 15
SETTLE_SECONDS = 3
LAUNCHD_LABEL = "ai.openclaw.gateway"
SYSTEMD_UNIT = "openclaw-gateway.service"

logger = logging.getLogger(__name__)


@dataclass
class RestartResult:
    success: bool
    reason: Optional[str] = None

    def to_dict(self):
        data = {"success": self.success}
        if self.reason is not None:
            data["reason"] = self.reason
        return data


def restart_command(config, platform=None) -> List[str]:
    platform = platform or sys.platform
    identifier = config.gateway.restart_identifier
    if platform == "darwin":
        return ["launchctl", "kickstart", "-k", f"gui/{os.getuid()}/{identifier or LAUNCHD_LABEL}"]
    return ["systemctl", "--user", "restart", identifier or SYSTEMD_UNIT]


def attempt_restart(config, state, now=None, settle_seconds=SETTLE_SECONDS) -> RestartResult:
    """Restart the gateway unless the sliding window is already full.

    Only successful restarts are recorded; failed attempts never count
    against the window.
    """
    now = time.time() if now is None else now
    th = config.thresholds
    window = th.restart_window_minutes * 60
    recent = state.recent_restarts(now, window)
    # Entries outside the window are dropped once a restart is considered.
    state.restarts = recent

    if len(recent) >= th.max_restarts_per_window:
        logger.error(
            f"Restart rate exceeded ({len(recent)}/{th.max_restarts_per_window} "
            f"in {th.restart_window_minutes}m)"
        )
        return RestartResult(success=False, reason="rate-limited")

    cmd = restart_command(config)
    logger.warning(f"Restarting gateway (attempt {len(recent) + 1}/{th.max_restarts_per_window})")
    try:
        subprocess.run(cmd, capture_output=True, text=True, timeout=RESTART_TIMEOUT, check=True)
    except subprocess.CalledProcessError as e:
        reason = (e.stderr or "").strip() or str(e)
        logger.error(f"Gateway restart failed: {reason}")
        return RestartResult(success=False, reason=reason)
    except (subprocess.SubprocessError, OSError) as e:
        logger.error(f"Gateway restart failed: {e}")
        return RestartResult(success=False, reason=str(e))

    state.restarts.append(now)
    if settle_seconds:
        time.sleep(settle_seconds)
    return RestartResult(success=True)
