# sbuild1.0/sbuild/config.py
# -*- coding: utf-8 -*-
"""
sbuild configuration loader

Features:
- Read YAML/JSON config from multiple locations (explicit, env override, project root, user, system)
- Merge with authoritative DEFAULTS, normalize/coerce types (human sizes to bytes)
- Validate with pydantic models; unknown top-level keys only warn
- Environment overrides (SBUILD_ROOT, SB_STRIP, SBUILD_JOBS) are read here and nowhere else
- The resulting Config is passed explicitly to every component
"""

from __future__ import annotations
import os
import json
import logging
from pathlib import Path
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, List, Mapping, Union

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .errors import ConfigError

logger = logging.getLogger("sbuild.config")

# ----------------------------
# DEFAULT configuration (authoritative base)
# ----------------------------
DEFAULTS: Dict[str, Any] = {
    "root": None,  # None -> current working directory
    "logging": {
        "level": "WARNING",
        "file": None,
        "color": True,
        "max_size": "10M",  # human readable
        "backups": 3,
    },
    "build": {
        "jobs": None,  # None -> os.cpu_count()
        "prefix": "/usr",
        "strip": False,
        "revdep": True,  # run revdep after `bi`
    },
    "tools": {
        "sh": "sh",
        "curl": "curl",
        "git": "git",
        "patch": "patch",
        "file": "file",
        "ldd": "ldd",
        "strip": "strip",
        "fakeroot": "fakeroot",
    },
    "ui": {
        "spinner": True,
        "color": True,
    },
}

_OFF = ("0", "false", "no", "off")


# ----------------------------
# Typed settings (pydantic)
# ----------------------------
class _Section(BaseModel):
    model_config = ConfigDict(extra="ignore")


class LoggingSettings(_Section):
    level: str = "WARNING"
    file: Optional[str] = None
    color: bool = True
    max_size_bytes: int = 10 * 1024 * 1024
    backups: int = 3

    @field_validator("level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        v = v.upper()
        if not isinstance(logging.getLevelName(v), int):
            raise ValueError(f"unknown log level {v}")
        return v


class BuildSettings(_Section):
    jobs: int = 1
    prefix: str = "/usr"
    strip: bool = False
    revdep: bool = True

    @field_validator("jobs")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("build.jobs must be integer >= 1")
        return v


class ToolSettings(_Section):
    sh: str = "sh"
    curl: str = "curl"
    git: str = "git"
    patch: str = "patch"
    file: str = "file"
    ldd: str = "ldd"
    strip: str = "strip"
    fakeroot: str = "fakeroot"


class UISettings(_Section):
    spinner: bool = True
    color: bool = True


class Settings(_Section):
    root: str
    logging: LoggingSettings = LoggingSettings()
    build: BuildSettings = BuildSettings()
    tools: ToolSettings = ToolSettings()
    ui: UISettings = UISettings()


# ----------------------------
# On-disk layout
# ----------------------------
@dataclass(frozen=True)
class Paths:
    root: Path

    @property
    def recipes(self) -> Path:
        return self.root / "recipes"

    @property
    def sources(self) -> Path:
        return self.root / "sources"

    @property
    def work(self) -> Path:
        return self.root / "work"

    @property
    def destdir(self) -> Path:
        return self.root / "destdir"

    @property
    def packages(self) -> Path:
        return self.root / "packages"

    @property
    def logs(self) -> Path:
        return self.root / "logs"

    @property
    def state(self) -> Path:
        return self.root / ".sbuild"

    @property
    def installed(self) -> Path:
        return self.state / "installed"

    @property
    def cache(self) -> Path:
        return self.state / "cache"

    def log_for(self, ident: str) -> Path:
        return self.logs / f"{ident}.log"

    def ensure_dirs(self) -> None:
        for d in (self.recipes, self.sources, self.work, self.destdir,
                  self.packages, self.logs, self.installed, self.cache):
            d.mkdir(parents=True, exist_ok=True)


# ----------------------------
# Dataclass to hold config
# ----------------------------
@dataclass
class Config:
    raw: Dict[str, Any] = field(default_factory=dict)     # values loaded from file (if any)
    merged: Dict[str, Any] = field(default_factory=dict)  # merged with DEFAULTS and env
    settings: Optional[Settings] = None
    source: Optional[Path] = None

    def get(self, path: str, default: Any = None) -> Any:
        """Dot-separated getter for merged config."""
        parts = path.split(".") if path else []
        cur: Any = self.merged
        for p in parts:
            if isinstance(cur, dict) and p in cur:
                cur = cur[p]
            else:
                return default
        return cur

    def as_dict(self) -> Dict[str, Any]:
        return deepcopy(self.merged)

    @property
    def paths(self) -> Paths:
        return Paths(Path(self.settings.root))

    @property
    def tools(self) -> ToolSettings:
        return self.settings.tools

    @property
    def build(self) -> BuildSettings:
        return self.settings.build


# ----------------------------
# Utilities
# ----------------------------
def _human_size_to_bytes(val: Union[str, int, None]) -> Optional[int]:
    if val is None:
        return None
    if isinstance(val, int):
        return val
    s = str(val).strip().upper()
    units = {"KB": 1024, "MB": 1024**2, "GB": 1024**3, "K": 1024, "M": 1024**2, "G": 1024**3}
    try:
        for suffix, mul in units.items():
            if s.endswith(suffix):
                return int(float(s[: -len(suffix)].strip()) * mul)
        return int(float(s))
    except ValueError:
        logger.warning("config: cannot parse human size '%s'", val)
        return None


def _expand_path(val: Optional[str]) -> Optional[str]:
    if val is None:
        return None
    return os.path.abspath(os.path.expanduser(os.path.expandvars(str(val))))


def _deep_merge(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    res = deepcopy(a)
    for k, v in b.items():
        if k in res and isinstance(res[k], dict) and isinstance(v, dict):
            res[k] = _deep_merge(res[k], v)
        else:
            res[k] = deepcopy(v)
    return res


def _find_candidates(explicit: Optional[str], root: Path, environ: Mapping[str, str]) -> List[Path]:
    candidates: List[Path] = []
    if explicit:
        candidates.append(Path(explicit))
    env = environ.get("SBUILD_CONFIG")
    if env:
        candidates.append(Path(env))
    candidates.extend([
        root / "sbuild.yaml",
        root / "sbuild.yml",
        root / "sbuild.json",
        root / ".sbuild" / "config.yaml",
        Path.home() / ".config" / "sbuild" / "config.yaml",
        Path("/etc") / "sbuild" / "config.yaml",
    ])
    return candidates


def _load_file(path: Path) -> Dict[str, Any]:
    try:
        txt = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"config: failed reading {path}: {e}") from e
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(txt)
        else:
            data = yaml.safe_load(txt)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(f"config: cannot parse {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"config: {path} must contain a mapping")
    return data


def _apply_env(cfg: Dict[str, Any], environ: Mapping[str, str]) -> Dict[str, Any]:
    out = deepcopy(cfg)
    if environ.get("SBUILD_ROOT"):
        out["root"] = environ["SBUILD_ROOT"]
    if "SB_STRIP" in environ and environ["SB_STRIP"].strip().lower() not in _OFF:
        out.setdefault("build", {})["strip"] = True
    if environ.get("SBUILD_JOBS"):
        out.setdefault("build", {})["jobs"] = environ["SBUILD_JOBS"]
    return out


def _normalize_and_coerce(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Normalize path fields, convert human sizes and fill computed defaults."""
    out = deepcopy(cfg)
    out["root"] = _expand_path(out.get("root") or os.getcwd())
    log = out.setdefault("logging", {})
    if log.get("file"):
        log["file"] = _expand_path(log["file"])
    ms = _human_size_to_bytes(log.get("max_size"))
    if ms is not None:
        log["max_size_bytes"] = ms
    build = out.setdefault("build", {})
    if build.get("jobs") in (None, "", 0, "0"):
        build["jobs"] = os.cpu_count() or 1
    return out


def _validate_structure(cfg: Dict[str, Any]) -> List[str]:
    """Return non-fatal warnings for the merged tree."""
    return [f"Unknown top-level config key: {k}" for k in cfg if k not in DEFAULTS]


# ----------------------------
# Loading
# ----------------------------
def load(explicit_path: Optional[str] = None,
         root: Optional[str] = None,
         environ: Optional[Mapping[str, str]] = None) -> Config:
    """
    Build the Config value: DEFAULTS < config file < environment < explicit root.

    Raises ConfigError when the explicit file is missing, a file cannot be
    parsed, or the merged tree fails validation.
    """
    environ = os.environ if environ is None else environ
    if explicit_path and not Path(explicit_path).exists():
        raise ConfigError(f"config: file not found: {explicit_path}")

    base_root = Path(_expand_path(root or environ.get("SBUILD_ROOT") or os.getcwd()))
    cfg_path = next((p for p in _find_candidates(explicit_path, base_root, environ) if p.is_file()), None)
    raw: Dict[str, Any] = _load_file(cfg_path) if cfg_path else {}

    merged = _apply_env(_deep_merge(DEFAULTS, raw), environ)
    if root:
        merged["root"] = root
    normalized = _normalize_and_coerce(merged)

    for issue in _validate_structure(normalized):
        logger.warning("config: %s", issue)
    try:
        settings = Settings.model_validate(normalized)
    except ValidationError as e:
        raise ConfigError(f"config: validation failed: {e}") from e

    logger.debug("config: loaded merged config (from=%s)", str(cfg_path) if cfg_path else "<defaults>")
    return Config(raw=raw, merged=normalized, settings=settings, source=cfg_path)
