# sbuild1.0/sbuild/builder.py
"""
Pipeline orchestration for one package.

    prepare:        fetch -> extract -> patch
    build_install:  prepare -> reset staging -> phases -> [strip] -> manifest/registry -> [revdep]
    package:        staging root -> packages/<ident>.tar.<ext>
    remove:         registry entry -> manifest-driven delete -> postremove hook

Every stage of a package logs to logs/<name>-<version>.log.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from .config import Config
from .console import StatusConsole
from .errors import NotInstalled
from .execution import Runner
from .extract import Extractor
from .fetcher import Fetcher
from .logging import get_logger
from .packager import Packager
from .patches import PatchManager
from .phases import PhaseRunner
from .recipe import Recipe, find_recipe, parse, search_recipes
from .remover import RemovalReport, Remover
from .revdep import RevdepChecker, RevdepReport
from .staging import Registry, StripReport, capture_manifest, reset_staging, strip_binaries

logger = get_logger("builder")


@dataclass
class InstallReport:
    recipe: Recipe
    workdir: Path
    staging: Path
    manifest: List[str] = field(default_factory=list)
    phases: List[str] = field(default_factory=list)
    strip: Optional[StripReport] = None
    revdep: Optional[RevdepReport] = None


class Builder:
    def __init__(self, config: Config, console: Optional[StatusConsole] = None, runner: Optional[Runner] = None):
        self.config = config
        self.paths = config.paths
        self.console = console or StatusConsole(config.settings.ui)
        self.runner = runner or Runner(config, self.console)
        self.fetcher = Fetcher(config, self.runner)
        self.extractor = Extractor(config, self.console)
        self.patches = PatchManager(config, self.runner)
        self.phases = PhaseRunner(config, self.runner)
        self.registry = Registry(config)
        self.packager = Packager(config, self.console)
        self.remover = Remover(config, self.phases, self.registry)
        self.revdep_checker = RevdepChecker(config, self.runner)
        self.paths.ensure_dirs()

    def load(self, name: str) -> Recipe:
        return parse(find_recipe(self.paths.recipes, name))

    def logfile(self, recipe: Recipe) -> Path:
        return self.paths.log_for(recipe.ident)

    def staging_root(self, recipe: Recipe) -> Path:
        return self.paths.destdir / recipe.ident

    # ----------------------
    # commands
    # ----------------------
    def info(self, name: str) -> Recipe:
        return self.load(name)

    def search(self, term: str) -> List[Path]:
        return search_recipes(self.paths.recipes, term)

    def prepare(self, name: str) -> Tuple[Recipe, Path]:
        recipe = self.load(name)
        logfile = self.logfile(recipe)
        logger.info("prepare %s (log %s)", recipe.ident, logfile)
        fetched = self.fetcher.fetch(recipe, logfile)
        workdir = self.extractor.extract(recipe, fetched, logfile)
        self.patches.apply_all(recipe, workdir, logfile)
        return recipe, workdir

    def build_install(self, name: str, strip: Optional[bool] = None, revdep: bool = False) -> InstallReport:
        recipe, workdir = self.prepare(name)
        logfile = self.logfile(recipe)
        staging = reset_staging(self.config, recipe)
        report = InstallReport(recipe, workdir, staging)
        report.phases = self.phases.run_all(recipe, workdir, staging, logfile)

        do_strip = strip if strip is not None else (self.config.build.strip or recipe.strip)
        if do_strip:
            report.strip = strip_binaries(self.config, self.runner, staging, logfile)

        report.manifest = capture_manifest(staging)
        self.registry.save(recipe, report.manifest)

        if revdep:
            report.revdep = self.revdep_checker.check(staging, logfile)
            if not report.revdep.ok:
                self.console.print_warn("revdep found issues (see log)")

        self.console.print_ok(f"Installed to DESTDIR: {staging}")
        return report

    def package(self, name: str) -> Path:
        recipe = self.load(name)
        return self.packager.pack(recipe, self.staging_root(recipe), self.logfile(recipe))

    def remove(self, identifier: str) -> RemovalReport:
        return self.remover.remove(identifier)

    def revdep(self, name: str) -> RevdepReport:
        recipe = self.load(name)
        staging = self.staging_root(recipe)
        if not staging.is_dir():
            raise NotInstalled(staging)
        return self.revdep_checker.check(staging, self.logfile(recipe))
