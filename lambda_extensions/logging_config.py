"""Centralized logging configuration for the extension process."""

import logging
import logging.handlers
from pathlib import Path
from typing import Any


def _file_handler(log_path: Path, cfg: dict[str, Any], level: int) -> logging.Handler:
    max_bytes = int(cfg.get("max_bytes", 10 * 1024 * 1024))
    backup_count = int(cfg.get("backup_count", 3))
    log_path.parent.mkdir(parents=True, exist_ok=True)
    h = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    h.setLevel(level)
    return h


def _console_handler(level: int) -> logging.Handler:
    h = logging.StreamHandler()
    h.setLevel(level)
    return h


def setup_logging(settings: dict[str, Any], project_root: Path | None = None) -> None:
    """Configure the root logger: console output with an optional log file.

    Reads config from settings.get("logging", {}). Lambda forwards the
    extension's stderr to CloudWatch, so console logging is on by default;
    a file is written only when logging.file is set (relative paths resolve
    against project_root, or the working directory).
    """
    cfg = settings.get("logging", {})
    level_name = str(cfg.get("level", "INFO")).upper()
    log_to_console = cfg.get("log_to_console", True)
    level = getattr(logging, level_name, logging.INFO)
    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    root = logging.getLogger()
    root.setLevel(level)
    for h in root.handlers[:]:
        root.removeHandler(h)
    log_file = cfg.get("file")
    if log_file:
        log_path = Path(log_file)
        if not log_path.is_absolute():
            log_path = (project_root or Path.cwd()) / log_path
        file_handler = _file_handler(log_path, cfg, level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
    if log_to_console or not log_file:
        console_handler = _console_handler(level)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)
    # httpx logs every request at INFO; the long poll would flood the log
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
