# sbuild1.0/sbuild/revdep.py
"""
Broken shared library check over a staging root.

Dynamically linked ELF files (executables and shared objects) are run through ldd; a non-zero exit or any
'=> not found' line marks the file broken. Advisory only.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

from .config import Config
from .execution import Command, Runner
from .logging import get_logger
from .staging import regular_files, is_elf

logger = get_logger("revdep")


@dataclass
class RevdepReport:
    scanned: int = 0
    broken: Dict[Path, List[str]] = field(default_factory=dict)
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return not self.broken


def missing_libraries(ldd_output: str) -> List[str]:
    missing = []
    for line in ldd_output.splitlines():
        if "not found" in line:
            missing.append(line.split("=>", 1)[0].strip())
    return missing


class RevdepChecker:
    def __init__(self, config: Config, runner: Runner):
        self.config = config
        self.runner = runner

    def check(self, staging: Path, logfile: Path) -> RevdepReport:
        report = RevdepReport()
        console = self.runner.console
        if shutil.which(self.config.tools.ldd) is None:
            console.print_warn(f"revdep: {self.config.tools.ldd} not found, skipping")
            report.skipped = True
            return report
        logfile.parent.mkdir(parents=True, exist_ok=True)
        with open(logfile, "a", encoding="utf-8") as log, console.spinner("revdep"):
            log.write(f"==> revdep: {staging}\n")
            for path in regular_files(staging):
                desc = is_elf(self.runner, self.config, path)
                if not desc or "dynamically linked" not in desc:
                    continue
                report.scanned += 1
                res = self.runner.capture(Command.of(self.config.tools.ldd, path))
                missing = missing_libraries(res.output)
                if not res.ok or missing:
                    report.broken[path] = missing
                    log.write(f"Broken: {path}\n")
                    for lib in missing:
                        log.write(f"    missing {lib}\n")
        if report.broken:
            for path, missing in report.broken.items():
                detail = f" ({', '.join(missing)})" if missing else ""
                console.print_warn(f"Broken: {path}{detail}")
        else:
            console.print_ok(f"revdep: {report.scanned} ELF file(s), no broken libraries")
        logger.debug("revdep: scanned=%d broken=%d", report.scanned, len(report.broken))
        return report
