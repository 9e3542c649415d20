"""
Per-run file logging for study sessions.

Each run writes to its own file under the configured log_dir, named after
a ULID run id so files sort by start time.
"""

import logging
import logging.handlers
from pathlib import Path

from ulid import ULID

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
MAX_LOG_BYTES = 5 * 1024 * 1024


def verbosity_level(verbose: int) -> int:
    if verbose <= 0:
        return logging.WARNING
    if verbose == 1:
        return logging.INFO
    return logging.DEBUG


def setup_logging(log_dir: Path, verbose: int = 1) -> tuple[logging.Logger, Path, str]:
    """
    Attach a file handler for this run to the `smartcards` logger.

    Handlers from an earlier run in the same process are replaced.

    Returns:
        (logger, log_path, run_id)
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    run_id = str(ULID())
    log_path = log_dir / f"study_{run_id}.log"

    logger = logging.getLogger("smartcards")
    logger.setLevel(verbosity_level(verbose))
    for handler in list(logger.handlers):
        if isinstance(handler, logging.FileHandler):
            logger.removeHandler(handler)
            handler.close()

    handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=MAX_LOG_BYTES, backupCount=2, encoding="utf-8"
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)

    logger.info(f"Run {run_id} logging to {log_path}")
    return logger, log_path, run_id
