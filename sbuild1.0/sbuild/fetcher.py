# sbuild1.0/sbuild/fetcher.py
"""
Source acquisition: archive download (curl) or git clone/pull, then the
checksum gate for archives.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple
from urllib.parse import urlsplit

from .config import Config
from .errors import ChecksumMismatch, InvalidRecipe, SourceUnresolved, TransferFailed
from .execution import Command, Runner
from .logging import get_logger
from .recipe import Recipe

logger = get_logger("fetcher")

_ALGOS = {"sha256": hashlib.sha256, "sha512": hashlib.sha512}


@dataclass(frozen=True)
class FetchResult:
    archive: Optional[Path] = None
    srcdir: Optional[Path] = None


def _digest_of_file(path: Path, algo: str = "sha256") -> str:
    h = _ALGOS[algo]()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            h.update(chunk)
    return h.hexdigest()


# canonicalize checksum field: accepts "hex" (sha256) or "algo:hex"
def _normalize_checksum(checksum: str, origin: Optional[Path] = None) -> Tuple[str, str]:
    s = checksum.strip()
    if ":" in s:
        alg, val = s.split(":", 1)
        alg = alg.strip().lower()
        if alg not in _ALGOS:
            raise InvalidRecipe(origin, f"unsupported checksum algorithm: {alg}")
        return alg, val.strip().lower()
    return "sha256", s.lower()


def filename_from_url(url: str) -> str:
    """Last path segment of the URL, query string and fragment dropped."""
    path = urlsplit(url).path if "://" in url else url.split("?", 1)[0]
    name = path.rstrip("/").rsplit("/", 1)[-1]
    if not name:
        raise SourceUnresolved(f"cannot derive a file name from {url}")
    return name


def download(runner: Runner, config: Config, url: str, dest: Path, label: str, logfile: Path) -> bool:
    """curl into dest.part and rename on success; no partial file survives a failure."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    part = dest.with_name(dest.name + ".part")
    cmd = Command.of(config.tools.curl, "-L", "--fail", "-o", part, url)
    result = runner.run(cmd, label, logfile)
    if not result.ok or not part.exists():
        part.unlink(missing_ok=True)
        return False
    part.replace(dest)
    return True


class Fetcher:
    def __init__(self, config: Config, runner: Runner):
        self.config = config
        self.runner = runner
        self.paths = config.paths

    def fetch(self, recipe: Recipe, logfile: Path) -> FetchResult:
        logger.debug("fetch %s (git=%s source=%s)", recipe.ident, recipe.git_url or "-", recipe.source_url or "-")
        if recipe.git_url:
            return FetchResult(srcdir=self._fetch_git(recipe, logfile))
        if not recipe.source_url:
            raise SourceUnresolved(f"{recipe.ident}: recipe has neither source nor git")
        archive = self._fetch_archive(recipe, logfile)
        if recipe.checksum:
            self.verify(archive, recipe.checksum, recipe.path)
        return FetchResult(archive=archive)

    def _fetch_git(self, recipe: Recipe, logfile: Path) -> Path:
        git = self.config.tools.git
        checkout = self.paths.sources / recipe.ident
        if checkout.exists():
            self.runner.console.print_info(f"Git source exists, pulling: {checkout}")
            cmd = Command.of(git, "-C", checkout, "pull", "--rebase")
            label = "git pull"
        else:
            checkout.parent.mkdir(parents=True, exist_ok=True)
            cmd = Command.of(git, "clone", recipe.git_url, checkout)
            label = "git clone"
        if not self.runner.run(cmd, label, logfile).ok:
            raise TransferFailed(f"{label} failed for {recipe.git_url}")
        return checkout

    def _fetch_archive(self, recipe: Recipe, logfile: Path) -> Path:
        dest = self.paths.sources / filename_from_url(recipe.source_url)
        if dest.exists():
            self.runner.console.print_info(f"Source exists: {dest}")
            return dest
        if not download(self.runner, self.config, recipe.source_url, dest, f"download {dest.name}", logfile):
            raise TransferFailed(f"download failed: {recipe.source_url}")
        return dest

    def verify(self, archive: Path, checksum: str, origin: Optional[Path] = None) -> str:
        algo, expected = _normalize_checksum(checksum, origin)
        actual = _digest_of_file(archive, algo)
        if actual != expected:
            raise ChecksumMismatch(archive, expected, actual)
        self.runner.console.print_ok(f"{algo} verified: {actual}")
        return actual

