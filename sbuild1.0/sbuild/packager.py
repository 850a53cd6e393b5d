# sbuild1.0/sbuild/packager.py
"""
packager.py - turn a staging root into packages/<name>-<version>.tar.<ext>

Supported compressions:
- zst: zstandard (python binding)
- xz: lzma
- anything else: gzip
Members are relative to the staging root, so the archive unpacks straight onto /.
"""

from __future__ import annotations

import tarfile
from pathlib import Path

import zstandard as zstd

from .config import Config
from .console import StatusConsole
from .errors import NothingToPackage, PackagingFailed
from .logging import get_logger
from .recipe import Recipe

logger = get_logger("packager")

ZSTD_LEVEL = 19


def extension_for(pack: str) -> str:
    pack = (pack or "").lower()
    if pack == "zst":
        return "tar.zst"
    if pack == "xz":
        return "tar.xz"
    return "tar.gz"


def _add_contents(tar: tarfile.TarFile, staging: Path) -> None:
    for child in sorted(staging.iterdir()):
        tar.add(str(child), arcname=child.name)


def _compress_tar(staging: Path, out_path: Path, ext: str) -> None:
    if ext == "tar.zst":
        cctx = zstd.ZstdCompressor(level=ZSTD_LEVEL)
        with open(out_path, "wb") as raw, cctx.stream_writer(raw) as zout:
            with tarfile.open(fileobj=zout, mode="w|") as tar:
                _add_contents(tar, staging)
        return
    mode = "w:xz" if ext == "tar.xz" else "w:gz"
    with tarfile.open(out_path, mode) as tar:
        _add_contents(tar, staging)


class Packager:
    def __init__(self, config: Config, console: StatusConsole):
        self.config = config
        self.console = console
        self.paths = config.paths

    def output_path(self, recipe: Recipe) -> Path:
        return self.paths.packages / f"{recipe.ident}.{extension_for(recipe.pack)}"

    def pack(self, recipe: Recipe, staging: Path, logfile: Path) -> Path:
        if not staging.is_dir():
            raise NothingToPackage(staging)
        out = self.output_path(recipe)
        out.parent.mkdir(parents=True, exist_ok=True)
        part = out.with_name(out.name + ".part")
        logfile.parent.mkdir(parents=True, exist_ok=True)
        with open(logfile, "a", encoding="utf-8") as log:
            log.write(f"==> package: {staging} -> {out}\n")
        try:
            with self.console.spinner(f"package {out.name}"):
                _compress_tar(staging, part, extension_for(recipe.pack))
            part.replace(out)
        except (OSError, tarfile.TarError, zstd.ZstdError) as e:
            part.unlink(missing_ok=True)
            logger.debug("packaging %s failed", recipe.ident, exc_info=True)
            raise PackagingFailed(f"cannot create {out.name}: {e}") from e
        self.console.print_ok(f"Package: {out}")
        return out
