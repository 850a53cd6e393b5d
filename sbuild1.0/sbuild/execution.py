# sbuild1.0/sbuild/execution.py
"""
External command execution.

A Command is a plain value (program, args, cwd, env overlay). The Runner is
the only place that spawns processes: run() streams combined output into a
package log under a spinner, capture() returns the output for tools whose
answer is interpreted (file, ldd, git ls-files).
"""

from __future__ import annotations

import os
import shlex
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional, Sequence, Tuple

from .config import Config
from .console import StatusConsole
from .logging import get_logger

logger = get_logger("execution")

NOT_FOUND = 127


@dataclass(frozen=True)
class Command:
    program: str
    args: Tuple[str, ...] = ()
    cwd: Optional[Path] = None
    env: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def of(cls, program: str, *args, cwd: Optional[Path] = None, env: Optional[Mapping[str, str]] = None) -> "Command":
        return cls(program, tuple(str(a) for a in args), cwd, dict(env or {}))

    @classmethod
    def shell(cls, script: str, cwd: Optional[Path] = None, env: Optional[Mapping[str, str]] = None,
              sh: str = "sh", wrapper: Sequence[str] = ()) -> "Command":
        """`sh -c "set -e; <script>"`, optionally behind a wrapper program such as fakeroot."""
        argv = list(wrapper) + [sh, "-c", f"set -e; {script}"]
        return cls(argv[0], tuple(argv[1:]), cwd, dict(env or {}))

    @property
    def argv(self) -> list:
        return [self.program, *self.args]

    def display(self) -> str:
        return " ".join(shlex.quote(a) for a in self.argv)

    def environment(self) -> Dict[str, str]:
        merged = dict(os.environ)
        merged.update(self.env)
        return merged


@dataclass(frozen=True)
class RunResult:
    returncode: int
    label: str = ""
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class Runner:
    def __init__(self, config: Config, console: StatusConsole):
        self.config = config
        self.console = console

    def run(self, command: Command, label: str, logfile: Path) -> RunResult:
        """
        Run command with stdout and stderr appended to logfile.

        Never raises on a non-zero exit; a program that cannot be started
        reports code 127.
        """
        logfile.parent.mkdir(parents=True, exist_ok=True)
        logger.debug("RUN: %s (cwd=%s)", command.display(), command.cwd)
        started = time.monotonic()
        with open(logfile, "a", encoding="utf-8") as log:
            log.write(f"==> {label}: {command.display()}\n")
            log.flush()
            with self.console.spinner(label):
                try:
                    proc = subprocess.Popen(
                        command.argv,
                        cwd=str(command.cwd) if command.cwd else None,
                        env=command.environment(),
                        stdin=subprocess.DEVNULL,
                        stdout=log,
                        stderr=subprocess.STDOUT,
                    )
                    rc = proc.wait()
                except OSError as e:
                    log.write(f"{command.program}: {e}\n")
                    rc = NOT_FOUND
        logger.debug("%s exited %d after %.1fs", label, rc, time.monotonic() - started)
        if rc == 0:
            self.console.print_ok(f"{label}: done")
        else:
            self.console.print_err(f"{label}: error (code {rc})")
        return RunResult(rc, label)

    def capture(self, command: Command) -> RunResult:
        logger.debug("CAPTURE: %s", command.display())
        try:
            proc = subprocess.run(
                command.argv,
                cwd=str(command.cwd) if command.cwd else None,
                env=command.environment(),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
            )
        except OSError as e:
            logger.debug("cannot start %s: %s", command.program, e)
            return RunResult(NOT_FOUND, command.program, str(e))
        return RunResult(proc.returncode, command.program, proc.stdout or "")
