# sbuild1.0/sbuild/logging.py
# -*- coding: utf-8 -*-
"""
sbuild diagnostic logging

Features:
 - Console color formatter on stderr
 - Optional rotating file handler
 - Module-tagged records through LoggerAdapter ('sbuild_module')

Per-package command output is not routed here; the execution layer appends
it to logs/<name>-<version>.log directly.
"""

from __future__ import annotations
import sys
import logging
import logging.handlers
from pathlib import Path
from typing import Optional

from .config import LoggingSettings

ROOT_LOGGER = "sbuild"
DEFAULT_FORMAT = "%(asctime)s %(levelname)s [%(sbuild_module)s] %(message)s"
DATE_FORMAT = "%H:%M:%S"


# ----------------------
# Color formatter
# ----------------------
class ColorFormatter(logging.Formatter):
    COLORS = {
        logging.DEBUG: "\033[37m",    # light gray
        logging.INFO: "\033[36m",     # cyan
        logging.WARNING: "\033[33m",  # yellow
        logging.ERROR: "\033[31m",    # red
        logging.CRITICAL: "\033[41;37m",  # white on red
    }
    RESET = "\033[0m"

    def __init__(self, fmt: Optional[str] = None, datefmt: Optional[str] = None, color: bool = True):
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.color = color

    def format(self, record):
        if not hasattr(record, "sbuild_module"):
            record.sbuild_module = record.name
        msg = super().format(record)
        if self.color:
            color = self.COLORS.get(record.levelno, "")
            return f"{color}{msg}{self.RESET}"
        return msg


class _ModuleDefault(logging.Filter):
    """Records from plain loggers (e.g. sbuild.config) get a module tag too."""

    def filter(self, record):
        if not hasattr(record, "sbuild_module"):
            record.sbuild_module = record.name.rsplit(".", 1)[-1]
        return True


def configure(settings: LoggingSettings, verbosity: int = 0) -> logging.Logger:
    """
    (Re)install handlers on the 'sbuild' logger from the logging settings.

    verbosity bumps the console level: 1 -> INFO, 2+ -> DEBUG.
    """
    base = logging.getLogger(ROOT_LOGGER)
    for h in list(base.handlers):
        base.removeHandler(h)
        h.close()
    base.propagate = False

    level = getattr(logging, settings.level.upper(), logging.WARNING)
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = min(level, logging.INFO)
    base.setLevel(logging.DEBUG)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.addFilter(_ModuleDefault())
    color = settings.color and sys.stderr.isatty()
    console.setFormatter(ColorFormatter(DEFAULT_FORMAT, DATE_FORMAT, color=color))
    base.addHandler(console)

    if settings.file:
        file_path = Path(settings.file)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.handlers.RotatingFileHandler(
            str(file_path),
            maxBytes=settings.max_size_bytes,
            backupCount=settings.backups,
            encoding="utf-8",
        )
        fh.setLevel(logging.DEBUG)
        fh.addFilter(_ModuleDefault())
        fh.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(sbuild_module)s] %(message)s"))
        base.addHandler(fh)
    return base


def get_logger(module_name: str) -> logging.LoggerAdapter:
    """Return a LoggerAdapter that injects 'sbuild_module' into records."""
    base = logging.getLogger(f"{ROOT_LOGGER}.{module_name}")
    return logging.LoggerAdapter(base, {"sbuild_module": module_name})
