#!/usr/bin/env python3
import os
import sys
import logging
from datetime import datetime, timezone

LOG_FORMAT = '%(asctime)s [%(levelname)-5s] %(message)s'


class IsoFormatter(logging.Formatter):
    def formatTime(self, record, datefmt=None):
        return datetime.fromtimestamp(record.created, timezone.utc).isoformat(timespec="milliseconds")


def log_file_for(log_dir, prefix="healthcheck", when=None):
    date = (when or datetime.now(timezone.utc)).strftime('%Y-%m-%d')
    return os.path.join(log_dir, f"{prefix}-{date}.log")


def setup_logging(log_dir, prefix="healthcheck", level=logging.INFO):
    """One file per day, warnings and errors mirrored to stderr."""
    os.makedirs(log_dir, exist_ok=True)
    formatter = IsoFormatter(LOG_FORMAT)

    file_handler = logging.FileHandler(log_file_for(log_dir, prefix))
    file_handler.setFormatter(formatter)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.WARNING)
    stderr_handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=[file_handler, stderr_handler], force=True)
    return logging.getLogger()
