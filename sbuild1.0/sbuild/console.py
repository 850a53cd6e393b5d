# sbuild1.0/sbuild/console.py
"""
Terminal status lines and the build spinner (rich).

Status lines carry a fixed tag so they stay readable when piped:
[INFO], [ OK ], [WARN], [FAIL].
"""

from __future__ import annotations

import sys
from contextlib import contextmanager
from typing import Iterator, Optional, TextIO

from rich.console import Console
from rich.text import Text

from .config import UISettings

TAGS = {
    "info": ("[INFO]", "bold blue"),
    "ok": ("[ OK ]", "bold green"),
    "warn": ("[WARN]", "bold yellow"),
    "fail": ("[FAIL]", "bold red"),
}


class StatusConsole:
    def __init__(self, ui: Optional[UISettings] = None, file: Optional[TextIO] = None):
        ui = ui or UISettings()
        self.spinner_enabled = ui.spinner
        self.console = Console(
            file=file or sys.stdout,
            highlight=False,
            no_color=not ui.color,
            soft_wrap=True,
        )

    def _line(self, kind: str, msg: str) -> None:
        tag, style = TAGS[kind]
        self.console.print(Text.assemble((tag, style), " ", msg))

    def print_info(self, msg: str) -> None:
        self._line("info", msg)

    def print_ok(self, msg: str) -> None:
        self._line("ok", msg)

    def print_warn(self, msg: str) -> None:
        self._line("warn", msg)

    def print_err(self, msg: str) -> None:
        self._line("fail", msg)

    def print_plain(self, msg: str) -> None:
        self.console.print(Text(msg))

    @contextmanager
    def spinner(self, text: str) -> Iterator[None]:
        """Animate while the body runs; the animation stops on every exit path."""
        if not self.spinner_enabled or not self.console.is_terminal:
            yield
            return
        with self.console.status(Text(text), spinner="line", speed=1.0):
            yield
