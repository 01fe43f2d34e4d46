# Logging setup and structured log lines for the onboarding automation

import logging
import logging.handlers
import os
from datetime import date
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-20s | %(funcName)-15s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

MAIN_LOG = "onboarding.log"
ERROR_LOG = "onboarding_errors.log"

NOISY_LOGGERS = ("httpx", "httpcore", "urllib3")

_RESULT_LEVELS = {
    "SUCCESS": logging.INFO,
    "FAILED": logging.ERROR,
}

log = logging.getLogger(__name__)


def _rotating(path: Path, level: int, max_bytes: int, backups: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backups, encoding="utf-8")
    handler.setLevel(level)
    return handler


def setup_logging(log_level: str = "INFO",
                  log_to_file: bool = True,
                  log_dir: str = "logs",
                  max_file_size: int = 50 * 1024 * 1024,
                  backup_count: int = 10) -> logging.Logger:
    """
    Configure the root logger for a CLI run.

    Console output is INFO and up. With log_to_file, three files are written
    under log_dir: a rotating main log, a rotating error-only log and a
    per-day log named after the run date.

    Returns:
        The root logger
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handlers = [logging.StreamHandler()]
    handlers[0].setLevel(logging.INFO)

    if log_to_file:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        handlers.append(_rotating(directory / MAIN_LOG, level, max_file_size, backup_count))
        handlers.append(_rotating(directory / ERROR_LOG, logging.ERROR, max_file_size, backup_count))
        daily = logging.FileHandler(directory / f"onboarding_{date.today():%Y-%m-%d}.log", encoding="utf-8")
        daily.setLevel(level)
        handlers.append(daily)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    destination = os.path.abspath(log_dir) if log_to_file else "console only"
    log.info(f"Logging initialized at {logging.getLevelName(level)} ({destination})")
    return root


def log_onboarding_action(username: str, action: str, result: str,
                          ticket_id: str = "", details: Optional[str] = None):
    """
    One greppable line per action taken for a hire.

    ``result`` is SUCCESS (INFO), FAILED (ERROR) or anything else, e.g.
    SKIPPED (WARNING). Never pass a credential in ``details``.
    """
    parts = ["ONBOARDING_ACTION", username, action, result]
    if ticket_id:
        parts.append(f"Ticket: {ticket_id}")
    if details:
        parts.append(details)
    log.log(_RESULT_LEVELS.get(result, logging.WARNING), " | ".join(parts))


def log_system_event(event_type: str, message: str, level: str = "INFO"):
    """Run-level events such as STARTUP or BARRIER."""
    level_no = logging.getLevelName(level.upper())
    log.log(level_no if isinstance(level_no, int) else logging.INFO, f"SYSTEM_EVENT | {event_type} | {message}")


def log_performance_metric(operation: str, duration_seconds: float,
                           user_count: int = 0, success_count: int = 0):
    """
    Duration of a run, with throughput when users were processed.

    Args:
        operation: e.g. "EXPORT" or "PROVISIONING_RUN"
        duration_seconds: Wall time of the operation
        user_count: Hires or tickets handled
        success_count: How many of them succeeded
    """
    line = f"PERFORMANCE | {operation} | Duration: {duration_seconds:.2f}s"
    if user_count:
        line += f" | Users: {user_count} | Success Rate: {100.0 * success_count / user_count:.1f}%"
    log.info(line)
