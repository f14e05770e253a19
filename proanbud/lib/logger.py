"""
Centralized logging for Proanbud.
Console output plus an optional daily log file, shared by every module.

Usage:
    from proanbud.lib.logger import setup_logger
    logger = setup_logger(__name__)
    logger.info("Analytics recomputed for %s", account_id)

Environment:
    LOG_DIR      Directory for daily log files (default: <project>/logs)
    LOG_TO_FILE  "false" disables the file handler (tests, containers)
"""
import logging
import os
import sys
from datetime import datetime
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
LOG_DIR = Path(os.environ.get("LOG_DIR", PROJECT_ROOT / "logs"))


def _file_logging_enabled() -> bool:
    return os.environ.get("LOG_TO_FILE", "true").lower() != "false"


def setup_logger(
    name: str,
    level: str = None,
    log_to_file: bool = None,
    log_dir: Path = None,
) -> logging.Logger:
    """
    Configure and return a logger instance.

    Args:
        name: Logger name (typically __name__ from calling module).
        level: Logging level name; defaults to LOG_LEVEL or INFO.
        log_to_file: Also write to the daily file (default from LOG_TO_FILE).
        log_dir: Directory for log files (default: LOG_DIR).

    Returns:
        Configured logger instance.
    """
    logger = logging.getLogger(name)

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    level = level or os.environ.get("LOG_LEVEL", "INFO")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.DEBUG)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_to_file is None:
        log_to_file = _file_logging_enabled()

    if log_to_file:
        target_dir = Path(log_dir) if log_dir else LOG_DIR
        target_dir.mkdir(parents=True, exist_ok=True)

        log_file = target_dir / f"{datetime.now().strftime('%Y%m%d')}_proanbud.log"
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
