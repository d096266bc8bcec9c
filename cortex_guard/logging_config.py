"""Centralized logging configuration for Cortex Guard."""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

_APP_LOG_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"
_APP_LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_configured = False


def setup_logging(log_dir: Path | str | None = None, level: int = logging.INFO) -> None:
    """Configure logging for the entire application.

    Safe to call more than once; only the first call installs handlers.
    The audit trail itself is not written through logging; this is the
    operational log.
    """
    global _configured
    if _configured:
        return
    if log_dir is None:
        from cortex_guard.config import get_config

        log_dir = get_config().log.dir
    base_dir = Path(log_dir).expanduser()
    base_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(level)

    # Daily rotating file handler — all application logs
    app_handler = logging.handlers.TimedRotatingFileHandler(
        filename=str(base_dir / "cortex_guard.log"),
        when="midnight",
        interval=1,
        backupCount=14,
        encoding="utf-8",
    )
    app_handler.setLevel(level)
    app_handler.setFormatter(
        logging.Formatter(_APP_LOG_FORMAT, datefmt=_APP_LOG_DATE_FORMAT)
    )
    root.addHandler(app_handler)
    _configured = True
