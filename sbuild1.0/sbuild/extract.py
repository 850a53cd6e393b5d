# sbuild1.0/sbuild/extract.py
"""
Extraction of a fetched source into work/<name>-<version>/.

Archives are unpacked with exactly one leading path component removed, so
work/<ident>/ holds the project tree directly whatever the archive's top
directory was called. Git sources are used in place.
"""

from __future__ import annotations

import os
import shutil
import stat
import tarfile
import tempfile
import zipfile
from pathlib import Path
from typing import Iterator, Optional

import zstandard as zstd

from .config import Config
from .console import StatusConsole
from .errors import ExtractionFailed, UnsupportedArchiveFormat
from .fetcher import FetchResult
from .logging import get_logger
from .recipe import Recipe

logger = get_logger("extract")

# suffix -> tarfile mode; None marks the zstd path
TAR_SUFFIXES = (
    (".tar.zst", None),
    (".tzst", None),
    (".tar.xz", "r:xz"),
    (".txz", "r:xz"),
    (".tar.bz2", "r:bz2"),
    (".tbz2", "r:bz2"),
    (".tar.gz", "r:gz"),
    (".tgz", "r:gz"),
)


def archive_kind(path: Path) -> str:
    name = path.name.lower()
    for suffix, _ in TAR_SUFFIXES:
        if name.endswith(suffix):
            return suffix
    if name.endswith(".zip"):
        return ".zip"
    raise UnsupportedArchiveFormat(path)


def strip_component(name: str) -> Optional[str]:
    """'pkg-1.0/src/a.c' -> 'src/a.c'; None for the top entry itself."""
    parts = [p for p in name.replace("\\", "/").split("/") if p not in ("", ".")]
    if len(parts) <= 1:
        return None
    return "/".join(parts[1:])


def _stripped_members(tar: tarfile.TarFile) -> Iterator[tarfile.TarInfo]:
    for member in tar.getmembers():
        name = strip_component(member.name)
        if name is None:
            continue
        if member.islnk():
            target = strip_component(member.linkname)
            if target is None:
                logger.debug("skipping hard link to top entry: %s", member.name)
                continue
            member.linkname = target
        member.name = name
        yield member


def _extract_tar(path: Path, mode: str, dest: Path) -> None:
    with tarfile.open(path, mode) as tar:
        tar.extractall(dest, members=_stripped_members(tar), filter="data")


def _extract_tar_zst(path: Path, dest: Path) -> None:
    # decompress to temp file then extract
    with tempfile.NamedTemporaryFile(dir=dest.parent, suffix=".tar", delete=False) as tfile:
        tmp = Path(tfile.name)
        try:
            dctx = zstd.ZstdDecompressor()
            with open(path, "rb") as inf:
                dctx.copy_stream(inf, tfile)
            tfile.flush()
            _extract_tar(tmp, "r:", dest)
        finally:
            tmp.unlink(missing_ok=True)


def _extract_zip(path: Path, dest: Path) -> None:
    root = dest.resolve()
    with zipfile.ZipFile(path) as zf:
        for info in zf.infolist():
            name = strip_component(info.filename)
            if name is None:
                continue
            target = (dest / name).resolve()
            if root != target and root not in target.parents:
                raise ExtractionFailed(f"{path.name}: member escapes destination: {info.filename}")
            if info.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            mode = info.external_attr >> 16
            if stat.S_ISLNK(mode):
                link = zf.read(info).decode("utf-8")
                pointee = (target.parent / link).resolve()
                if os.path.isabs(link) or (root != pointee and root not in pointee.parents):
                    raise ExtractionFailed(f"{path.name}: symlink escapes destination: {info.filename} -> {link}")
                os.symlink(link, target)
                continue
            with zf.open(info) as src, open(target, "wb") as out:
                shutil.copyfileobj(src, out)
            if mode & 0o777:
                os.chmod(target, mode & 0o777)


class Extractor:
    def __init__(self, config: Config, console: StatusConsole):
        self.config = config
        self.console = console
        self.paths = config.paths

    def extract(self, recipe: Recipe, fetched: FetchResult, logfile: Path) -> Path:
        if fetched.srcdir is not None:
            if not fetched.srcdir.is_dir():
                raise ExtractionFailed(f"git source missing: {fetched.srcdir}")
            self.console.print_ok(f"Using git source at {fetched.srcdir}")
            return fetched.srcdir

        archive = fetched.archive
        if archive is None or not archive.is_file():
            raise ExtractionFailed(f"source archive missing: {archive}")
        kind = archive_kind(archive)

        workdir = self.paths.work / recipe.ident
        if workdir.exists():
            shutil.rmtree(workdir)
        workdir.mkdir(parents=True)

        logfile.parent.mkdir(parents=True, exist_ok=True)
        with open(logfile, "a", encoding="utf-8") as log:
            log.write(f"==> extract: {archive} -> {workdir}\n")

        try:
            with self.console.spinner(f"extract {archive.name}"):
                if kind == ".zip":
                    _extract_zip(archive, workdir)
                elif dict(TAR_SUFFIXES)[kind] is None:
                    _extract_tar_zst(archive, workdir)
                else:
                    _extract_tar(archive, dict(TAR_SUFFIXES)[kind], workdir)
        except ExtractionFailed:
            raise
        except (tarfile.TarError, zipfile.BadZipFile, zstd.ZstdError, EOFError, OSError) as e:
            logger.debug("extraction of %s failed", archive, exc_info=True)
            raise ExtractionFailed(f"cannot extract {archive.name}: {e}") from e
        self.console.print_ok(f"Extracted to {workdir}")
        return workdir
