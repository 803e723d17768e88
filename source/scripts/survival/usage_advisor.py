#!/usr/bin/env python3
import time
import logging

from escalator import ALERT_PREFIX, GatewayChatChannel

# One warning per 10 minutes across all sessions.
WARNING_COOLDOWN = 10 * 60

logger = logging.getLogger(__name__)


def usage_message(config, session_key, percent):
    msg = f'{ALERT_PREFIX} Your session "{session_key}" is at {percent}% token capacity. '
    if percent >= config.thresholds.token_critical_pct:
        return msg + (
            "CRITICAL: finish your current task immediately and let compaction run. "
            "Message the operator if stuck."
        )
    return msg + "Consider wrapping up soon to avoid hitting the wall."


def warn_session(config, state, session_key, percent, now=None, channel=None) -> bool:
    now = time.time() if now is None else now
    if state.last_usage_warning is not None and now - state.last_usage_warning < WARNING_COOLDOWN:
        logger.info(f"Usage warning for {session_key} skipped (cooldown)")
        return False

    channel = channel or GatewayChatChannel(config)
    ok, error = channel.send(usage_message(config, session_key, percent))
    if ok:
        state.last_usage_warning = now
        logger.info(f"Token warning sent to agent ({percent}%)")
        return True
    logger.warning(f"Token warning failed: {error}")
    return False
