# sbuild1.0/sbuild/remover.py
"""
Manifest-driven removal of a staged installation.

Order: resolve the registry entry, delete the manifest's files from the
staging root, drop the staging root, run the recipe's postremove hook,
forget the registry entry.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config import Config
from .errors import RecipeNotFound, InvalidRecipe
from .logging import get_logger
from .phases import PhaseRunner
from .recipe import Recipe, find_recipe, parse
from .staging import Registry

logger = get_logger("remover")


@dataclass(frozen=True)
class RemovalReport:
    ident: str
    removed: int
    hook_ok: bool = True
    recipe: Optional[Path] = None


def _inside(root: Path, path: Path) -> bool:
    try:
        path.resolve().relative_to(root.resolve())
        return True
    except ValueError:
        return False


class Remover:
    def __init__(self, config: Config, phases: PhaseRunner, registry: Registry):
        self.config = config
        self.phases = phases
        self.registry = registry
        self.console = phases.runner.console
        self.paths = config.paths

    def remove_files(self, staging: Path, manifest) -> int:
        removed = 0
        for entry in manifest:
            target = staging / entry.lstrip("/")
            if not _inside(staging, target.parent):
                logger.warning("refusing to remove %s: outside %s", entry, staging)
                continue
            if target.is_file() or target.is_symlink():
                target.unlink()
                removed += 1
        return removed

    def _recipe_for(self, ident: str) -> Optional[Recipe]:
        name = self.registry.meta(ident).get("name") or ident.rsplit("-", 1)[0]
        try:
            return parse(find_recipe(self.paths.recipes, name))
        except (RecipeNotFound, InvalidRecipe) as e:
            logger.info("no recipe for %s: %s", ident, e)
            return None

    def remove(self, identifier: str) -> RemovalReport:
        ident = self.registry.find(identifier)
        manifest = self.registry.manifest(ident)

        staging = self.paths.destdir / ident
        removed = self.remove_files(staging, manifest)
        if staging.is_symlink():
            staging.unlink()
        elif staging.exists():
            shutil.rmtree(staging)
        self.console.print_ok(f"Removed files from DESTDIR for {ident}: {removed}")

        hook_ok = True
        recipe = self._recipe_for(ident)
        if recipe is not None:
            logfile = self.paths.log_for(ident)
            hook_ok = self.phases.run_hook("postremove", recipe, self.paths.root, staging, logfile)

        self.registry.delete(ident)
        return RemovalReport(ident, removed, hook_ok, recipe.path if recipe else None)
