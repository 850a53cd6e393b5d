# sbuild1.0/sbuild/patches.py
"""
patches.py - patch acquisition and ordered application

Patch entries, in recipe order:
- git+<url>           repository cloned (or pulled) into .sbuild/cache/patch-<key>;
                      every '*.patch' file it tracks is applied, in git's listing order
- http(s)://...       downloaded once to .sbuild/cache/patch-<key>.patch
- file://<path>, path local file; relative paths are tried against the recipe
                      directory, then the project root

<key> is derived from the entry string only, so the cache is shared
across packages and runs and never invalidated automatically.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import List, Optional

from .config import Config
from .errors import PatchApplicationFailed, PatchUnresolvable
from .execution import Command, Runner
from .fetcher import download
from .logging import get_logger
from .recipe import Recipe

logger = get_logger("patches")

GIT_PREFIX = "git+"
FILE_PREFIX = "file://"


def cache_key(spec: str) -> str:
    return hashlib.sha256(spec.encode("utf-8")).hexdigest()[:16]


class PatchManager:
    def __init__(self, config: Config, runner: Runner):
        self.config = config
        self.runner = runner
        self.paths = config.paths

    # -----------------------------
    # acquisition
    # -----------------------------
    def acquire(self, spec: str, logfile: Path, base_dir: Optional[Path] = None) -> List[Path]:
        """Resolve one patch entry to the files it stands for, in apply order."""
        if spec.startswith(GIT_PREFIX):
            return self._acquire_git(spec, logfile)
        if spec.startswith(("http://", "https://")):
            return [self._acquire_http(spec, logfile)]
        return [self._acquire_local(spec, base_dir)]

    def _acquire_git(self, spec: str, logfile: Path) -> List[Path]:
        git = self.config.tools.git
        url = spec[len(GIT_PREFIX):]
        checkout = self.paths.cache / f"patch-{cache_key(spec)}"
        if checkout.exists():
            cmd, label = Command.of(git, "-C", checkout, "pull", "--rebase"), "patch repo pull"
        else:
            checkout.parent.mkdir(parents=True, exist_ok=True)
            cmd, label = Command.of(git, "clone", url, checkout), "patch repo clone"
        if not self.runner.run(cmd, label, logfile).ok:
            raise PatchUnresolvable(spec, f"{label} failed")
        listing = self.runner.capture(Command.of(git, "-C", checkout, "ls-files", "*.patch"))
        if not listing.ok:
            raise PatchUnresolvable(spec, "git ls-files failed")
        files = [checkout / line.strip() for line in listing.output.splitlines() if line.strip()]
        if not files:
            logger.warning("patch repository %s tracks no *.patch files", url)
        return files

    def _acquire_http(self, spec: str, logfile: Path) -> Path:
        cached = self.paths.cache / f"patch-{cache_key(spec)}.patch"
        if cached.exists():
            logger.debug("patch cache hit for %s", spec)
            return cached
        if not download(self.runner, self.config, spec, cached, "patch download", logfile):
            raise PatchUnresolvable(spec, "download failed")
        return cached

    def _acquire_local(self, spec: str, base_dir: Optional[Path]) -> Path:
        raw = Path(spec[len(FILE_PREFIX):] if spec.startswith(FILE_PREFIX) else spec).expanduser()
        if raw.is_absolute():
            candidates = [raw]
        else:
            candidates = [d / raw for d in (base_dir, self.paths.root) if d is not None]
        for c in candidates:
            if c.is_file():
                return c
        raise PatchUnresolvable(spec, "file not found")

    # -----------------------------
    # application
    # -----------------------------
    def apply_file(self, patch_file: Path, workdir: Path, logfile: Path) -> bool:
        cmd = Command.of(self.config.tools.patch, "-p1", "-i", patch_file.resolve(), cwd=workdir)
        return self.runner.run(cmd, f"patch {patch_file.name}", logfile).ok

    def apply_all(self, recipe: Recipe, workdir: Path, logfile: Path) -> int:
        """Apply recipe.patches in order; the first failure aborts the rest. Returns files applied."""
        applied = 0
        for spec in recipe.patches:
            for patch_file in self.acquire(spec, logfile, recipe.directory):
                applied += 1
                if not self.apply_file(patch_file, workdir, logfile):
                    raise PatchApplicationFailed(spec, patch_file, applied)
        if not recipe.patches:
            self.runner.console.print_info("no patches")
        return applied
