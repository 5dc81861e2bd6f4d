from __future__ import annotations

import logging
from pathlib import Path
from tempfile import gettempdir
from typing import Any

from pythonjsonlogger import jsonlogger

from .settings import settings

LOGGER_NAME = "mapserver"
LOG_FILE_NAME = "mapserver.log.jsonl"


def _level_from_name(name: str) -> int:
    resolved = logging.getLevelName(str(name).upper())
    if isinstance(resolved, int):
        return resolved
    return logging.INFO


def _writable_log_dir(out_dir: str) -> Path | None:
    """First of out_dir/logs, ./out/logs and the temp dir that accepts a probe file."""
    for base in (Path(out_dir), Path.cwd() / "out", Path(gettempdir()) / LOGGER_NAME):
        target = base / "logs"
        probe = target / ".probe"
        try:
            target.mkdir(parents=True, exist_ok=True)
            probe.write_bytes(b"")
            probe.unlink()
        except OSError:
            continue
        return target
    return None


def configure_logging(*, level: str | None = None, out_dir: str | None = None) -> logging.Logger:
    """Attach JSON handlers to the ``mapserver`` logger once per process.

    Records go to stderr and, when a log directory is writable, to
    ``<out_dir>/logs/mapserver.log.jsonl``.
    """
    logger = logging.getLogger(LOGGER_NAME)
    if logger.handlers:
        return logger

    logger.setLevel(_level_from_name(level or settings.log_level))
    logger.propagate = False
    formatter = jsonlogger.JsonFormatter("%(asctime)s %(levelname)s %(message)s", timestamp=True)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    log_dir = _writable_log_dir(out_dir or settings.out_dir)
    if log_dir is not None:
        try:
            handlers.append(logging.FileHandler(log_dir / LOG_FILE_NAME, encoding="utf-8"))
        except OSError:
            pass
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger


def log_event(event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """One structured record; `event` is both the message and a field."""
    logger = configure_logging()
    if not logger.isEnabledFor(level):
        return
    logger.log(level, event, extra={"event": event, **fields})
