#!/usr/bin/env python3
# sbuild1.0/sbuild/cli.py
"""
sbuild CLI - thin front-end over Builder

Each subcommand delegates to one Builder operation; failures print a single
[FAIL] line and exit with the error's stage code.
"""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from rich.text import Text

from . import __version__
from . import config as config_mod
from .builder import Builder
from .console import StatusConsole
from .errors import SbuildError
from .logging import configure, get_logger

logger = get_logger("cli")


# -----------------------
# command handlers
# -----------------------
def cmd_info(builder: Builder, args) -> int:
    r = builder.info(args.name)
    out = builder.console
    out.console.print(Text.assemble((r.name, "bold"), " ", r.version))
    if r.desc:
        out.print_plain(r.desc)
    if r.homepage:
        out.print_plain(f"homepage: {r.homepage}")
    if r.license:
        out.print_plain(f"license:  {r.license}")
    if r.source_url:
        out.print_plain(f"source:   {r.source_url}")
    if r.git_url:
        out.print_plain(f"git:      {r.git_url}")
    if r.patches:
        out.print_plain(f"patches:  {', '.join(r.patches)}")
    out.print_plain(
        f"strip:    {'yes' if r.strip else 'no'}, fakeroot: {'yes' if r.fakeroot else 'no'}, pack: {r.pack}"
    )
    out.print_plain(f"recipe:   {r.path}")
    return 0


def cmd_search(builder: Builder, args) -> int:
    found = builder.search(args.term)
    for path in found:
        builder.console.print_plain(path.name)
    if not found:
        builder.console.print_warn("No matches.")
    return 0


def cmd_prepare(builder: Builder, args) -> int:
    _, workdir = builder.prepare(args.name)
    builder.console.print_ok(f"fetch+extract+patch complete: {workdir}")
    return 0


def cmd_build_install(builder: Builder, args) -> int:
    revdep = args.command == "bi" and builder.config.build.revdep
    builder.build_install(args.name, strip=True if args.strip else None, revdep=revdep)
    return 0


def cmd_package(builder: Builder, args) -> int:
    builder.package(args.name)
    return 0


def cmd_remove(builder: Builder, args) -> int:
    report = builder.remove(args.name)
    if not report.hook_ok:
        builder.console.print_warn(f"{report.ident}: postremove hook failed")
    return 0


def cmd_revdep(builder: Builder, args) -> int:
    report = builder.revdep(args.name)
    return 0 if report.ok else 1


# -----------------------
# Argparse wiring
# -----------------------
def make_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="sbuild", description="Source-based package build helper (LFS)")
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    ap.add_argument("--root", help="project root (default: current directory)")
    ap.add_argument("--config", help="configuration file (YAML or JSON)")
    ap.add_argument("--no-spinner", action="store_true", help="Disable spinner animations")
    ap.add_argument("-v", "--verbose", action="count", default=0, help="more diagnostics (repeatable)")
    sub = ap.add_subparsers(dest="cmd", metavar="<command>")

    def add(name, handler, help_text, aliases=(), arg="name", arg_help="recipe name"):
        p = sub.add_parser(name, aliases=list(aliases), help=help_text)
        p.add_argument(arg, help=arg_help)
        p.set_defaults(func=handler, command=name)
        return p

    add("info", cmd_info, "show recipe information")
    add("search", cmd_search, "search recipes by file name", aliases=["srch"], arg="term", arg_help="search term")
    add("fetch", cmd_prepare, "download the source (then extract and patch)", aliases=["dl"])
    add("extract", cmd_prepare, "extract the source into work/", aliases=["ex"])
    add("patch", cmd_prepare, "apply the recipe's patches", aliases=["pt"])
    for name, aliases, text in (
        ("build", ["b"], "run preconfig, config, build"),
        ("install", ["i"], "install into DESTDIR (fakeroot optional)"),
        ("bi", [], "fetch, patch, build and install in one step, then revdep"),
    ):
        p = add(name, cmd_build_install, text, aliases=aliases)
        p.add_argument("--strip", action="store_true", help="strip ELF files after install")
    add("package", cmd_package, "pack DESTDIR into packages/*.tar.{zst,xz,gz}", aliases=["pkg"])
    add("remove", cmd_remove, "undo a DESTDIR installation using its manifest", aliases=["rm"],
        arg_help="name or name-version")
    add("revdep", cmd_revdep, "check the package's DESTDIR for broken libraries")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    argv = argv if argv is not None else sys.argv[1:]
    parser = make_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 0

    console = StatusConsole()
    try:
        cfg = config_mod.load(explicit_path=args.config, root=args.root)
        configure(cfg.settings.logging, verbosity=args.verbose)
        ui = cfg.settings.ui.model_copy(update={"spinner": cfg.settings.ui.spinner and not args.no_spinner})
        console = StatusConsole(ui)
        builder = Builder(cfg, console)
        return args.func(builder, args)
    except SbuildError as e:
        logger.debug("%s failed", args.command, exc_info=True)
        console.print_err(str(e))
        return e.exit_code
    except OSError as e:
        logger.debug("%s failed", args.command, exc_info=True)
        console.print_err(str(e))
        return 1
    except KeyboardInterrupt:
        console.print_err("interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
