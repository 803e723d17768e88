#!/usr/bin/env python3
import os
import re
import math
import time
import resource
import subprocess
import logging
from dataclasses import dataclass, asdict
from typing import Iterator, List, Optional

import psutil
import requests

# --- oc-healthcheck: probe set ---
# Every probe returns a plain result and never raises on a failed check.

SESSION_LIST_TIMEOUT = 15
# "123k/200k (61%)"
TOKEN_PATTERN = re.compile(r'(\d+)k/(\d+)k\s+\((\d+)%\)')
KEY_PATTERN = re.compile(r'^\s*\S+\s+(\S+)')
# Scheduled and delegated sessions finish on their own.
EXCLUDED_KEY_MARKERS = ("cron:", "subagent:")

logger = logging.getLogger(__name__)


@dataclass
class HttpProbeResult:
    ok: bool
    ms: int
    status_code: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self):
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class FdUsage:
    count: int
    limit: Optional[int]
    cap: int
    percent: int

    def to_dict(self):
        return {"count": self.count, "cap": self.cap, "percent": self.percent}


@dataclass
class Session:
    key: str
    tokens: int
    context_window: int
    percent: int

    def to_dict(self):
        return asdict(self)


def get_gateway_pid(config) -> Optional[int]:
    pattern = config.gateway.process_pattern
    own_pid = os.getpid()
    pids = []
    try:
        for proc in psutil.process_iter(['pid', 'cmdline']):
            try:
                cmdline = ' '.join(proc.info['cmdline'] or [])
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
            if pattern in cmdline and proc.info['pid'] != own_pid:
                pids.append(proc.info['pid'])
    except (psutil.Error, OSError) as e:
        logger.warning(f"Process scan failed: {e}")
        return None
    return min(pids) if pids else None


def http_probe(config) -> HttpProbeResult:
    timeout = config.thresholds.probe_timeout_ms / 1000
    start = time.monotonic()

    def elapsed():
        return int((time.monotonic() - start) * 1000)

    try:
        response = requests.get(f"{config.gateway.base_url}/", timeout=timeout)
    except requests.exceptions.Timeout:
        return HttpProbeResult(ok=False, ms=elapsed(), error="timeout")
    except requests.exceptions.RequestException as e:
        return HttpProbeResult(ok=False, ms=elapsed(), error=str(e))
    return HttpProbeResult(ok=response.status_code < 500, ms=elapsed(), status_code=response.status_code)


def fd_percent(count, cap) -> int:
    if cap <= 0:
        return 0
    # Half rounds up.
    return int(math.floor(count / cap * 100 + 0.5))


def _fd_limit(proc) -> Optional[int]:
    try:
        soft, _hard = proc.rlimit(psutil.RLIMIT_NOFILE)
        infinity = psutil.RLIM_INFINITY
    except (AttributeError, psutil.Error, OSError):
        # psutil has no rlimit() on macOS; fall back to our own limit.
        soft, _hard = resource.getrlimit(resource.RLIMIT_NOFILE)
        infinity = resource.RLIM_INFINITY
    if soft == infinity or soft < 0:
        return None
    return soft


def get_fd_usage(pid, config) -> FdUsage:
    soft_cap = config.thresholds.fd_soft_cap
    count, limit = 0, None
    if pid:
        try:
            proc = psutil.Process(pid)
            count = proc.num_fds()
            limit = _fd_limit(proc)
        except (psutil.Error, OSError) as e:
            logger.warning(f"FD count for pid {pid} failed: {e}")
            count, limit = 0, None
    cap = limit or soft_cap
    return FdUsage(count=count, limit=limit, cap=cap, percent=fd_percent(count, cap))


def parse_sessions(text: str) -> Iterator[Session]:
    """Yields sessions from `openclaw sessions` output.

    A usable line carries `<used>k/<capacity>k (<percent>%)` somewhere and the
    session key in its second column. Anything else is skipped.
    """
    for line in text.splitlines():
        match = TOKEN_PATTERN.search(line)
        if not match:
            continue
        key_match = KEY_PATTERN.match(line)
        key = key_match.group(1) if key_match else "unknown"
        if any(marker in key for marker in EXCLUDED_KEY_MARKERS):
            continue
        yield Session(
            key=key,
            tokens=int(match.group(1)) * 1000,
            context_window=int(match.group(2)) * 1000,
            percent=int(match.group(3)),
        )


def session_list_command(config) -> List[str]:
    return ["openclaw", "sessions", "--active", str(config.thresholds.session_active_minutes)]


def get_token_usage(config) -> List[Session]:
    try:
        result = subprocess.run(
            session_list_command(config),
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            timeout=SESSION_LIST_TIMEOUT,
            check=True,
        )
    except (subprocess.SubprocessError, OSError) as e:
        logger.info(f"Session listing unavailable: {e}")
        return []
    return list(parse_sessions(result.stdout))
