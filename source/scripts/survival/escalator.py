#!/usr/bin/env python3
import time
import subprocess
import logging
from typing import List, Optional, Tuple

import requests

# --- oc-healthcheck: escalation path ---
# Channels are tried in order until one delivers. Each channel owns its
# timeout and decides what counts as delivered.

ALERT_PREFIX = "[oc-healthcheck]"
CHAT_TIMEOUT = 30
OSASCRIPT_TIMEOUT = 10

logger = logging.getLogger(__name__)


class GatewayChatChannel:
    """Posts a message to the gateway's chat-completions endpoint."""

    name = "gateway-chat"

    def __init__(self, config, timeout=CHAT_TIMEOUT):
        self.config = config
        self.timeout = timeout

    def send(self, message: str) -> Tuple[bool, Optional[str]]:
        gw = self.config.gateway
        payload = {
            "model": gw.model,
            "messages": [{"role": "user", "content": message}],
            "user": "healthcheck",
        }
        headers = {"Authorization": f"Bearer {gw.token}"}
        try:
            response = requests.post(
                f"{gw.base_url}/v1/chat/completions",
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            return False, "timeout"
        except requests.exceptions.RequestException as e:
            return False, str(e)
        if response.status_code < 400:
            return True, None
        return False, f"HTTP {response.status_code}"

    def wrap(self, alert: str) -> str:
        return f"URGENT health monitor alert. Send the operator a direct message immediately:\n\n{alert}"


def escape_applescript(text: str) -> str:
    return text.replace('\\', '\\\\').replace('"', '\\"')


class DirectMessageChannel:
    """Sends an iMessage to the operator through Messages.app."""

    name = "direct-message"

    def __init__(self, contact, timeout=OSASCRIPT_TIMEOUT):
        self.contact = contact
        self.timeout = timeout

    def send(self, message: str) -> Tuple[bool, Optional[str]]:
        script = (
            f'tell application "Messages" to send "{escape_applescript(message)}" '
            f'to participant "{escape_applescript(self.contact)}" of service "iMessage"'
        )
        try:
            subprocess.run(["osascript", "-e", script], capture_output=True, timeout=self.timeout, check=True)
        except (subprocess.SubprocessError, OSError) as e:
            return False, str(e)
        return True, None

    def wrap(self, alert: str) -> str:
        return alert


def build_channels(config) -> List:
    channels = []
    if config.escalation.via_primary_channel:
        channels.append(GatewayChatChannel(config))
    if config.escalation.contact:
        channels.append(DirectMessageChannel(config.escalation.contact))
    return channels


def format_alert(subject, details):
    return f"{ALERT_PREFIX} {subject}\n\n{details}"


def escalate(config, state, subject, details, now=None, channels=None) -> bool:
    """Notify the operator unless an escalation went out within the cooldown."""
    now = time.time() if now is None else now
    cooldown = config.escalation.cooldown_minutes * 60
    if state.last_escalation is not None and now - state.last_escalation < cooldown:
        logger.warning(f"Escalation suppressed (cooldown): {subject}")
        return False

    if channels is None:
        channels = build_channels(config)
    if not channels:
        logger.error("No escalation path: primary channel disabled, no contact configured")
        return False

    alert = format_alert(subject, details)
    for channel in channels:
        logger.info(f"Escalating via {channel.name}: {subject}")
        ok, error = channel.send(channel.wrap(alert))
        if ok:
            state.last_escalation = now
            logger.info(f"Escalation sent via {channel.name}")
            return True
        logger.warning(f"{channel.name} escalation failed ({error})")

    logger.error(f"All escalation channels failed: {subject}")
    return False
