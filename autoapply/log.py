"""Logging for autoapply: stdout on import, plus a dated file once settings are known."""
from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from pathlib import Path

_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
_DATE_FMT = "%Y-%m-%d %H:%M:%S"
_configured = False
_file_handler: logging.FileHandler | None = None


def _level(name: str | None) -> int:
    return getattr(logging, (name or "INFO").upper(), logging.INFO)


def get_logger(name: str) -> logging.Logger:
    """Return a named logger; installs the console handler on first call."""
    global _configured
    if not _configured:
        _configure_console()
        _configured = True
    return logging.getLogger(name)


def _configure_console() -> None:
    level = _level(os.environ.get("LOG_LEVEL"))
    root = logging.getLogger()
    root.setLevel(level)
    if root.handlers:
        return

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FMT))
    root.addHandler(console)


def setup_file_logging(log_dir: Path, level: str | None = None) -> Path | None:
    """Send DEBUG and above to ``autoapply_YYYY-MM-DD.log`` under *log_dir*.

    Replaces a handler installed by an earlier call. Returns the log file
    path, or None when the directory is not writable.
    """
    global _file_handler
    root = logging.getLogger()
    if level:
        root.setLevel(_level(level))

    log_file = Path(log_dir) / f"autoapply_{datetime.now().strftime('%Y-%m-%d')}.log"
    if _file_handler is not None:
        if _file_handler.baseFilename == os.path.abspath(log_file):
            return log_file
        root.removeHandler(_file_handler)
        _file_handler.close()
        _file_handler = None

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file, encoding="utf-8")
    except OSError as exc:
        logging.getLogger(__name__).warning("File logging disabled (%s)", exc)
        return None
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FMT))
    root.addHandler(fh)
    _file_handler = fh
    return log_file
