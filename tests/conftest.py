import io
from pathlib import Path

import pytest

from sbuild import config as config_mod
from sbuild.config import UISettings
from sbuild.console import StatusConsole
from sbuild.execution import Command, RunResult, Runner


class FakeRunner(Runner):
    """Records every command; behaviour per program comes from `handlers`.

    A handler receives the Command and returns an int (exit code) or an
    (exit code, output) tuple. Programs without a handler succeed silently.
    """

    def __init__(self, config, console):
        super().__init__(config, console)
        self.calls = []
        self.handlers = {}

    def _dispatch(self, command: Command) -> RunResult:
        self.calls.append(command)
        handler = self.handlers.get(command.program)
        if handler is None:
            return RunResult(0)
        res = handler(command)
        if isinstance(res, tuple):
            return RunResult(res[0], command.program, res[1])
        return RunResult(res, command.program)

    def run(self, command, label, logfile):
        logfile.parent.mkdir(parents=True, exist_ok=True)
        with open(logfile, "a", encoding="utf-8") as log:
            log.write(f"==> {label}: {command.display()}\n")
        res = self._dispatch(command)
        return RunResult(res.returncode, label, res.output)

    def capture(self, command):
        return self._dispatch(command)

    def programs(self):
        return [c.program for c in self.calls]


@pytest.fixture
def project(tmp_path, monkeypatch):
    """An empty project root with a Config pointing at it."""
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    root = tmp_path / "proj"
    root.mkdir()
    cfg = config_mod.load(root=str(root), environ={})
    cfg.paths.ensure_dirs()
    return cfg


@pytest.fixture
def out():
    return io.StringIO()


@pytest.fixture
def console(out):
    return StatusConsole(UISettings(spinner=False, color=False), file=out)


@pytest.fixture
def runner(project, console):
    return FakeRunner(project, console)


def write_recipe(cfg, name, body, subdir=None):
    d = cfg.paths.recipes / (subdir or name)
    d.mkdir(parents=True, exist_ok=True)
    path = d / f"{name}.ini"
    path.write_text(body, encoding="utf-8")
    return path


@pytest.fixture
def make_recipe(project):
    def _make(name, body, subdir=None) -> Path:
        return write_recipe(project, name, body, subdir)
    return _make
