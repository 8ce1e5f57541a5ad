# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

#src/firstboot/logging/log.py

from __future__ import annotations

import logging
from pathlib import Path
from datetime import datetime, timezone
import uuid

def init_logging(
    *,
    base_dir: Path | None = None,
    name: str = "firstboot",
    prefix: str | None = None,
    verbose: bool = False,
) -> tuple[logging.Logger, str, Path | None]:
    """
    Initializes:
      - human readable log file (set -x style)
      - returns run_id so observers can reuse it

    *name* is the logger every module writes to; *prefix* only names the
    log file (defaults to *name*).

    Falls back to console-only logging when the log directory
    cannot be created (e.g. an unprivileged dry run).
    """
    run_id = str(uuid.uuid4())

    if base_dir is None:
        base_dir = Path("/var/log/firstboot")

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()
    logger.propagate = False

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    log_path: Path | None = None
    try:
        base_dir.mkdir(parents=True, exist_ok=True)
        ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
        log_path = base_dir / f"{prefix or name}-{ts}-{run_id}.log"

        # File = FULL TRACE
        fh = logging.FileHandler(log_path)
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(formatter)
        logger.addHandler(fh)
    except OSError:
        log_path = None

    # Console = INFO by default, DEBUG when --verbose is passed
    ch = logging.StreamHandler()
    ch.setLevel(logging.DEBUG if verbose else logging.INFO)
    ch.setFormatter(formatter)
    logger.addHandler(ch)

    logger.info("=== firstboot run started ===")
    logger.info(f"run_id={run_id}")
    if log_path is None:
        logger.warning(f"log_dir={base_dir} not writable, logging to console only")
    else:
        logger.info(f"log_file={log_path}")

    return logger, run_id, log_path
