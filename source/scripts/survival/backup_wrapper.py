#!/usr/bin/env python3
import os
import sys
import argparse
import subprocess
import logging

import hc_config
from hc_logging import IsoFormatter

# --- Daily backup wrapper ---
# Runs from the scheduler; invokes the backup shell script with a fixed PATH.

BACKUP_TIMEOUT = 300
BACKUP_PATH = "/opt/homebrew/bin:/usr/local/bin:/usr/bin:/bin"

logger = logging.getLogger("backup")


def setup_backup_logging(root_path):
    log_dir = os.path.join(root_path, "logs")
    os.makedirs(log_dir, exist_ok=True)
    formatter = IsoFormatter('%(asctime)s %(message)s')
    handlers = [
        logging.FileHandler(os.path.join(log_dir, "daily-backup.log")),
        logging.StreamHandler(sys.stdout),
    ]
    for handler in handlers:
        handler.setFormatter(formatter)
    logging.basicConfig(level=logging.INFO, handlers=handlers, force=True)


def backup_env(root_path):
    env = dict(os.environ)
    env.update({
        "HOME": os.environ.get("HOME", ""),
        "OPENCLAW_HOME": root_path,
        "PATH": BACKUP_PATH,
    })
    return env


def run_backup(config) -> bool:
    script = config.paths.backup_script
    logger.info("Starting daily backup")
    try:
        result = subprocess.run(
            ["/bin/bash", script],
            capture_output=True,
            text=True,
            timeout=BACKUP_TIMEOUT,
            env=backup_env(config.root_path),
            check=True,
        )
    except subprocess.CalledProcessError as e:
        logger.error(f"Backup FAILED: {e}")
        if e.stdout:
            logger.error(f"stdout: {e.stdout}")
        if e.stderr:
            logger.error(f"stderr: {e.stderr}")
        return False
    except subprocess.TimeoutExpired as e:
        logger.error(f"Backup FAILED: timed out after {BACKUP_TIMEOUT}s")
        if e.stdout:
            logger.error(f"stdout: {e.stdout}")
        return False
    except OSError as e:
        logger.error(f"Backup FAILED: {e}")
        return False

    logger.info("Backup output:\n" + result.stdout)
    logger.info("Backup completed successfully")
    return True


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run the daily backup script.")
    parser.add_argument("--config", help="config.json with paths.backupScript")
    args = parser.parse_args(argv)

    config = hc_config.resolve_config(config_path=args.config)
    setup_backup_logging(config.root_path)
    return 0 if run_backup(config) else 1


if __name__ == "__main__":
    sys.exit(main())
