# sbuild1.0/sbuild/errors.py
"""
Error taxonomy for sbuild.

Every pipeline stage raises a subclass of SbuildError; the CLI prints a single
[FAIL] line and exits with the error's exit_code.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class SbuildError(Exception):
    exit_code = 1

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ConfigError(SbuildError):
    exit_code = 1


# recipe
class RecipeNotFound(SbuildError):
    exit_code = 1

    def __init__(self, name: str):
        super().__init__(f"recipe not found: {name}")
        self.name = name


class InvalidRecipe(SbuildError):
    exit_code = 1

    def __init__(self, path: Optional[Path], reason: str = "missing name"):
        where = str(path) if path else "<text>"
        super().__init__(f"invalid recipe {where}: {reason}")
        self.path = path
        self.reason = reason


# fetch
class SourceUnresolved(SbuildError):
    exit_code = 2


class TransferFailed(SbuildError):
    exit_code = 2


class ChecksumMismatch(SbuildError):
    exit_code = 2

    def __init__(self, path: Path, expected: str, actual: str):
        super().__init__(f"checksum mismatch for {path.name}: expected {expected}, got {actual}")
        self.path = path
        self.expected = expected
        self.actual = actual


# extract
class UnsupportedArchiveFormat(SbuildError):
    exit_code = 3

    def __init__(self, path: Path):
        super().__init__(f"Unknown archive type: {path.name}")
        self.path = path


class ExtractionFailed(SbuildError):
    exit_code = 3


# patch
class PatchUnresolvable(SbuildError):
    exit_code = 4

    def __init__(self, spec: str, reason: str):
        super().__init__(f"cannot obtain patch {spec}: {reason}")
        self.spec = spec
        self.reason = reason


class PatchApplicationFailed(SbuildError):
    exit_code = 4

    def __init__(self, spec: str, patch_file: Path, index: int):
        super().__init__(f"patch #{index} failed: {patch_file.name} (from {spec})")
        self.spec = spec
        self.patch_file = patch_file
        self.index = index


# phases
PHASE_EXIT_CODES = {
    "preconfig": 5,
    "config": 6,
    "build": 7,
    "install": 8,
    "postinstall": 9,
}


class PhaseFailed(SbuildError):
    def __init__(self, phase: str, returncode: int):
        super().__init__(f"phase {phase} failed (code {returncode})")
        self.phase = phase
        self.returncode = returncode
        self.exit_code = PHASE_EXIT_CODES.get(phase, 1)


# package / registry
class NothingToPackage(SbuildError):
    exit_code = 11

    def __init__(self, staging: Path):
        super().__init__(f"nothing to package: {staging} does not exist")
        self.staging = staging


class NotInstalled(SbuildError):
    exit_code = 11

    def __init__(self, staging: Path):
        super().__init__(f"not installed: {staging} does not exist")
        self.staging = staging


class PackagingFailed(SbuildError):
    exit_code = 12


class NotRegistered(SbuildError):
    exit_code = 13

    def __init__(self, identifier: str, reason: str = "not installed"):
        super().__init__(f"{identifier}: {reason}")
        self.identifier = identifier
        self.reason = reason
