#!/usr/bin/env python3
"""oc-healthcheck: external watchdog for the OpenClaw gateway.

Meant to be run by a scheduler every few minutes. Each run walks the checks
in order and stops at the first fatal one:

1. gateway process alive
2. gateway answers HTTP
3. file descriptor pressure (preemptive restart)
4. per-session token usage (warn the agent, escalate when critical)

Restarts are capped per sliding window and escalations share a cooldown;
both limits live in the state file so they hold across runs.
"""
import sys
import json
import time
import argparse
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List

import hc_config
import hc_logging
import hc_state
import probes
import remediator
import escalator
import usage_advisor

logger = logging.getLogger("healthcheck")


@dataclass
class RunReport:
    ts: str
    checks: Dict = field(default_factory=dict)
    actions: List[Dict] = field(default_factory=list)

    def to_dict(self):
        return {"ts": self.ts, "checks": self.checks, "actions": self.actions}


def _iso(now):
    return datetime.fromtimestamp(now, timezone.utc).isoformat(timespec="milliseconds")


def _restart_and_escalate(config, state, report, now, trigger, subject, details):
    """Shared handling for the two fatal checks. Returns nothing; mutates state."""
    restart = remediator.attempt_restart(config, state, now=now)
    report.actions.append({"type": "restart", "trigger": trigger, **restart.to_dict()})
    if restart.success:
        logger.info(f"Gateway restarted ({trigger})")
        state.consecutive_failures = 0
    else:
        escalator.escalate(config, state, subject, details(restart.reason), now=now)
        state.consecutive_failures += 1


def _finish_early(state, state_path, report):
    state.last_check = report.ts
    hc_state.save_state(state_path, state)
    logger.info(f"Check done: {json.dumps(report.to_dict())}")
    return report


def run_healthcheck(config, state_path=None, now=None) -> RunReport:
    state_path = state_path or config.paths.state_file
    now = time.time() if now is None else now
    state = hc_state.load_state(state_path)
    report = RunReport(ts=_iso(now))
    th = config.thresholds

    # Check 1: gateway process
    pid = probes.get_gateway_pid(config)
    report.checks["process"] = {"pid": pid}
    if not pid:
        logger.error("Gateway process not found, attempting restart")
        _restart_and_escalate(
            config, state, report, now, "no-process",
            "Gateway down — restart failed",
            lambda reason: f"No gateway process found. Restart failed ({reason}). Manual intervention needed.",
        )
        return _finish_early(state, state_path, report)

    # Check 2: HTTP probe
    probe = probes.http_probe(config)
    report.checks["http"] = probe.to_dict()
    if not probe.ok:
        failure = probe.error or f"status {probe.status_code}"
        logger.error(f"HTTP probe failed: {failure} ({probe.ms}ms)")
        _restart_and_escalate(
            config, state, report, now, "http-probe",
            "Gateway unresponsive — restart failed",
            lambda reason: (
                f"Gateway process alive (pid {pid}) but HTTP probe failed: {failure}. "
                f"Restart failed ({reason})."
            ),
        )
        return _finish_early(state, state_path, report)

    # Check 3: file descriptors. A failed restart here does not end the run.
    fds = probes.get_fd_usage(pid, config)
    report.checks["fds"] = fds.to_dict()
    if fds.percent >= th.fd_warning_pct:
        logger.warning(f"FD usage high: {fds.count}/{fds.cap} ({fds.percent}%), preemptive restart")
        restart = remediator.attempt_restart(config, state, now=now)
        report.actions.append({"type": "restart", "trigger": "fd-high", **restart.to_dict()})
        if not restart.success:
            escalator.escalate(
                config, state,
                "File descriptors critical",
                f"FD count at {fds.count}/{fds.cap} ({fds.percent}%). EMFILE crash imminent. "
                f"Restart failed ({restart.reason}).",
                now=now,
            )

    # Check 4: token usage
    sessions = probes.get_token_usage(config)
    report.checks["tokens"] = [s.to_dict() for s in sessions]
    for session in sessions:
        if session.percent >= th.token_critical_pct:
            logger.error(f"Session {session.key} at {session.percent}%: CRITICAL")
            usage_advisor.warn_session(config, state, session.key, session.percent, now=now)
            escalator.escalate(
                config, state,
                f"Agent at {session.percent}% context",
                f'Session "{session.key}" at {session.tokens:,}/{session.context_window:,} tokens. '
                "May become unresponsive.",
                now=now,
            )
            report.actions.append({"type": "token-alert", "session": session.key, "percent": session.percent})
        elif session.percent >= th.token_warning_pct:
            logger.warning(f"Session {session.key} at {session.percent}%")
            usage_advisor.warn_session(config, state, session.key, session.percent, now=now)
            report.actions.append({"type": "token-warn", "session": session.key, "percent": session.percent})

    state.consecutive_failures = 0
    state.last_check = report.ts
    hc_state.save_state(state_path, state)

    summary = f"pid={pid} probe={probe.ms}ms fds={fds.count}/{fds.cap} sessions={len(sessions)}"
    if sessions:
        summary += f" max-tokens={max(s.percent for s in sessions)}%"
    logger.info(f"OK: {summary}")
    return report


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="One healthcheck pass over the OpenClaw gateway.")
    parser.add_argument("--config", help="config.json overriding the built-in defaults")
    parser.add_argument("--state", help="state file (default: paths.stateFile)")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    try:
        config = hc_config.resolve_config(config_path=args.config)
    except Exception as e:
        hc_logging.setup_logging(hc_config.DEFAULTS["paths"]["logDir"])
        logger.exception(f"Healthcheck crashed: {e}")
        return 1

    hc_logging.setup_logging(config.paths.log_dir)
    try:
        run_healthcheck(config, args.state)
    except Exception as e:
        logger.exception(f"Healthcheck crashed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
