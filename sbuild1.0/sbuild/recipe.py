# sbuild1.0/sbuild/recipe.py
"""
Recipe model, INI-style parser and recipe lookup.

A recipe file looks like:

    [package]
    name=zlib
    version=1.3.1
    source=https://zlib.net/zlib-1.3.1.tar.xz
    checksum=...
    patches=fix-a.patch, git+https://example.org/zlib-patches.git

    [build]
    config=./configure --prefix=$PREFIX
    build=make -j$JOBS

    [hooks]
    postremove=ldconfig
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from .errors import InvalidRecipe, RecipeNotFound
from .logging import get_logger

logger = get_logger("recipe")

RECIPE_SUFFIX = ".ini"
_TRUE = ("1", "true", "yes")
_FALSE = ("0", "false", "no")


@dataclass
class Recipe:
    name: str = ""
    version: str = ""
    homepage: str = ""
    desc: str = ""
    license: str = ""
    source_url: str = ""
    git_url: str = ""
    checksum: str = ""
    patches: List[str] = field(default_factory=list)
    strip: bool = False
    fakeroot: bool = True
    pack: str = "zst"
    # [build]
    preconfig: str = ""
    config: str = ""
    build: str = ""
    install: str = ""
    postinstall: str = ""
    # [hooks]
    postremove: str = ""
    postsync: str = ""
    path: Optional[Path] = field(default=None, compare=False)

    @property
    def ident(self) -> str:
        return f"{self.name}-{self.version}"

    @property
    def directory(self) -> Optional[Path]:
        return self.path.parent if self.path else None

    def phase_command(self, phase: str) -> str:
        return getattr(self, phase)

    def hook_command(self, event: str) -> str:
        return getattr(self, event, "") if event in HOOK_KEYS else ""


_PACKAGE_TEXT = {
    "name": "name",
    "version": "version",
    "homepage": "homepage",
    "desc": "desc",
    "license": "license",
    "source": "source_url",
    "git": "git_url",
    "checksum": "checksum",
    "pack": "pack",
}
BUILD_KEYS = ("preconfig", "config", "build", "install", "postinstall")
HOOK_KEYS = ("postremove", "postsync")


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == '"' and value[-1] == '"':
        return value[1:-1]
    return value


def _split_line(line: str) -> Optional[Tuple[str, str]]:
    if "=" not in line:
        return None
    key, value = line.split("=", 1)
    return key.strip(), _unquote(value.strip())


def _apply(recipe: Recipe, section: str, key: str, value: str) -> None:
    if section == "package":
        if key in _PACKAGE_TEXT:
            setattr(recipe, _PACKAGE_TEXT[key], value)
        elif key == "strip":
            recipe.strip = value.lower() in _TRUE
        elif key == "fakeroot":
            recipe.fakeroot = value.lower() not in _FALSE
        elif key == "patches":
            recipe.patches = [p.strip() for p in value.split(",") if p.strip()]
    elif section == "build" and key in BUILD_KEYS:
        setattr(recipe, key, value)
    elif section == "hooks" and key in HOOK_KEYS:
        setattr(recipe, key, value)


def parse_text(text: str, path: Optional[Path] = None) -> Recipe:
    """Parse recipe text; unknown sections and keys are ignored."""
    recipe = Recipe(path=path)
    section = ""
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line[0] in "#;":
            continue
        if line.startswith("[") and line.endswith("]"):
            section = line[1:-1].strip()
            continue
        pair = _split_line(line)
        if pair is None:
            continue
        _apply(recipe, section, *pair)
    if not recipe.name:
        raise InvalidRecipe(path)
    return recipe


def parse(path: Path) -> Recipe:
    try:
        text = Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise InvalidRecipe(Path(path), str(e)) from e
    return parse_text(text, Path(path))


def _walk_recipes(recipes_dir: Path) -> List[Path]:
    """Every *.ini under recipes_dir in a stable (sorted, depth-first) order."""
    found: List[Path] = []
    for root, dirs, files in os.walk(recipes_dir):
        dirs.sort()
        for f in sorted(files):
            if f.endswith(RECIPE_SUFFIX):
                found.append(Path(root) / f)
    return found


def find_recipe(recipes_dir: Path, name: str) -> Path:
    """recipes/<name>/<name>.ini, else the first recipe file whose name contains `name`."""
    exact = recipes_dir / name / f"{name}{RECIPE_SUFFIX}"
    if exact.is_file():
        return exact
    for candidate in _walk_recipes(recipes_dir):
        if name in candidate.name:
            logger.info("recipe %s resolved by substring to %s", name, candidate)
            return candidate
    raise RecipeNotFound(name)


def search_recipes(recipes_dir: Path, term: str) -> List[Path]:
    return [p for p in _walk_recipes(recipes_dir) if term in p.name]
