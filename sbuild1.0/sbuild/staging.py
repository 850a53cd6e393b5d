# sbuild1.0/sbuild/staging.py
"""
Staging roots, the strip pass, manifests and the installed-package registry.

Registry layout:

    .sbuild/installed/<name>-<version>/manifest.txt   one '/path' per regular file
    .sbuild/installed/<name>-<version>/meta.json      name, version, time, files
"""

from __future__ import annotations

import json
import os
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List

from .config import Config
from .errors import NotRegistered
from .execution import Command, Runner
from .logging import get_logger
from .recipe import Recipe

logger = get_logger("staging")

MANIFEST = "manifest.txt"
META = "meta.json"
TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def _safe_write_json(path: Path, obj: Dict[str, Any]) -> None:
    tmp = path.with_name(path.name + ".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(obj, f, indent=2, ensure_ascii=False)
        f.write("\n")
    os.replace(tmp, path)


def regular_files(staging: Path) -> Iterator[Path]:
    """Sorted depth-first walk; symlinks to regular files count as files."""
    for root, dirs, files in os.walk(staging):
        dirs.sort()
        for f in sorted(files):
            full = Path(root) / f
            if full.is_file():
                yield full


def capture_manifest(staging: Path) -> List[str]:
    return ["/" + p.relative_to(staging).as_posix() for p in regular_files(staging)]


def reset_staging(config: Config, recipe: Recipe) -> Path:
    staging = config.paths.destdir / recipe.ident
    if staging.is_symlink():
        staging.unlink()
    elif staging.exists():
        shutil.rmtree(staging)
    staging.mkdir(parents=True)
    return staging


@dataclass
class StripReport:
    stripped: List[Path] = field(default_factory=list)
    failed: List[Path] = field(default_factory=list)
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return not self.failed


def is_elf(runner: Runner, config: Config, path: Path) -> str:
    """`file -b` description when it names an ELF object, else ''."""
    res = runner.capture(Command.of(config.tools.file, "-b", path))
    return res.output.strip() if res.ok and "ELF" in res.output else ""


def strip_binaries(config: Config, runner: Runner, staging: Path, logfile: Path) -> StripReport:
    report = StripReport()
    if shutil.which(config.tools.strip) is None:
        runner.console.print_warn(f"strip: {config.tools.strip} not found, skipping")
        report.skipped = True
        return report
    with open(logfile, "a", encoding="utf-8") as log, runner.console.spinner("strip"):
        log.write(f"==> strip: {staging}\n")
        for path in regular_files(staging):
            if path.is_symlink() or not is_elf(runner, config, path):
                continue
            res = runner.capture(Command.of(config.tools.strip, "-s", path))
            if res.ok:
                report.stripped.append(path)
            else:
                report.failed.append(path)
                log.write(f"strip failed: {path}\n{res.output}")
    if report.failed:
        runner.console.print_warn(f"strip: {len(report.failed)} file(s) could not be stripped (see log)")
    else:
        runner.console.print_ok(f"strip: {len(report.stripped)} file(s)")
    return report


class Registry:
    def __init__(self, config: Config):
        self.config = config
        self.base = config.paths.installed

    def entry_dir(self, ident: str) -> Path:
        return self.base / ident

    def save(self, recipe: Recipe, manifest: List[str]) -> Path:
        """Replace the entry for recipe.ident wholesale."""
        self.base.mkdir(parents=True, exist_ok=True)
        final = self.entry_dir(recipe.ident)
        tmp = self.base / f".{recipe.ident}.tmp"
        if tmp.exists():
            shutil.rmtree(tmp)
        tmp.mkdir()
        (tmp / MANIFEST).write_text("".join(line + "\n" for line in manifest), encoding="utf-8")
        _safe_write_json(tmp / META, {
            "name": recipe.name,
            "version": recipe.version,
            "time": time.strftime(TIME_FORMAT, time.localtime()),
            "files": len(manifest),
        })
        if final.exists():
            shutil.rmtree(final)
        tmp.rename(final)
        logger.debug("registry: saved %s (%d files)", recipe.ident, len(manifest))
        return final

    def entries(self) -> List[str]:
        if not self.base.is_dir():
            return []
        return sorted(p.name for p in self.base.iterdir() if p.is_dir() and not p.name.startswith("."))

    def find(self, identifier: str) -> str:
        """Exact '<name>-<version>' first, then the first entry named '<identifier>-*'."""
        names = self.entries()
        if identifier in names:
            return identifier
        for name in names:
            if name.startswith(identifier + "-"):
                return name
        raise NotRegistered(identifier)

    def manifest(self, ident: str) -> List[str]:
        path = self.entry_dir(ident) / MANIFEST
        if not path.is_file():
            raise NotRegistered(ident, "manifest missing")
        return [line for line in path.read_text(encoding="utf-8").splitlines() if line.strip()]

    def meta(self, ident: str) -> Dict[str, Any]:
        path = self.entry_dir(ident) / META
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.debug("registry: no readable meta for %s", ident)
            return {}

    def delete(self, ident: str) -> None:
        shutil.rmtree(self.entry_dir(ident), ignore_errors=True)
