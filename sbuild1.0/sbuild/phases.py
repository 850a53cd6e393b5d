# sbuild1.0/sbuild/phases.py
"""
Build phases and recipe hooks.

Every phase and hook runs as `sh -c "set -e; <cmd>"` in its working directory
with this environment contract:

    DESTDIR    staging root of the package
    PREFIX     install prefix (build.prefix, default /usr)
    JOBS       parallelism hint (build.jobs, default CPU count)
    MAKEFLAGS  -j<JOBS>
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

from .config import Config
from .errors import PhaseFailed
from .execution import Command, Runner
from .logging import get_logger
from .recipe import Recipe

logger = get_logger("phases")

PHASES = ("preconfig", "config", "build", "install", "postinstall")
DEFAULT_INSTALL = 'make DESTDIR="$DESTDIR" install'


class PhaseRunner:
    def __init__(self, config: Config, runner: Runner):
        self.config = config
        self.runner = runner

    def environment(self, staging: Path) -> Dict[str, str]:
        jobs = str(self.config.build.jobs)
        return {
            "DESTDIR": str(staging),
            "PREFIX": self.config.build.prefix,
            "JOBS": jobs,
            "MAKEFLAGS": f"-j{jobs}",
        }

    def command_for(self, phase: str, recipe: Recipe, workdir: Path, staging: Path) -> Optional[Command]:
        """None when the phase has nothing to do."""
        script = recipe.phase_command(phase).strip()
        wrapper = ()
        if phase == "install":
            script = script or DEFAULT_INSTALL
            if recipe.fakeroot:
                wrapper = (self.config.tools.fakeroot,)
        if not script:
            return None
        return Command.shell(script, cwd=workdir, env=self.environment(staging),
                             sh=self.config.tools.sh, wrapper=wrapper)

    def run_phase(self, phase: str, recipe: Recipe, workdir: Path, staging: Path, logfile: Path) -> bool:
        """Run one phase; False means skipped. Raises PhaseFailed."""
        cmd = self.command_for(phase, recipe, workdir, staging)
        if cmd is None:
            self.runner.console.print_info(f"skip {phase}")
            return False
        result = self.runner.run(cmd, phase, logfile)
        if not result.ok:
            raise PhaseFailed(phase, result.returncode)
        return True

    def run_all(self, recipe: Recipe, workdir: Path, staging: Path, logfile: Path) -> list:
        """Run the phases in order; returns the names of phases that actually ran."""
        ran = []
        for phase in PHASES:
            if self.run_phase(phase, recipe, workdir, staging, logfile):
                ran.append(phase)
        return ran

    def run_hook(self, event: str, recipe: Recipe, cwd: Path, staging: Path, logfile: Path) -> bool:
        """Run a recipe hook; a failure is a warning, reported as False."""
        script = recipe.hook_command(event).strip()
        if not script:
            return True
        cmd = Command.shell(script, cwd=cwd, env=self.environment(staging), sh=self.config.tools.sh)
        result = self.runner.run(cmd, event, logfile)
        if not result.ok:
            logger.warning("%s hook of %s exited %d", event, recipe.name, result.returncode)
            self.runner.console.print_warn(f"{event} hook failed (see {logfile})")
        return result.ok
