from pathlib import Path

import pytest

from sbuild.errors import PatchApplicationFailed, PatchUnresolvable
from sbuild.patches import PatchManager, cache_key
from sbuild.recipe import parse_text


def _recipe(patches, path=None):
    r = parse_text(f"[package]\nname=foo\nversion=1\npatches={patches}\n")
    r.path = path
    return r


def test_cache_key_is_stable_and_short():
    assert cache_key("https://x.org/a.patch") == cache_key("https://x.org/a.patch")
    assert cache_key("a") != cache_key("b")
    assert len(cache_key("a")) == 16


def test_local_patch_relative_to_recipe_dir(project, runner, make_recipe, tmp_path):
    recipe_path = make_recipe("foo", "[package]\nname=foo\n")
    (recipe_path.parent / "fix.patch").write_text("--- a\n")
    work = tmp_path / "work"
    work.mkdir()
    applied = PatchManager(project, runner).apply_all(_recipe("fix.patch", recipe_path), work, tmp_path / "l.log")
    assert applied == 1
    call = runner.calls[0]
    assert call.program == "patch"
    assert call.args[:2] == ("-p1", "-i")
    assert call.args[2] == str((recipe_path.parent / "fix.patch").resolve())
    assert call.cwd == work


def test_file_url_and_project_root_fallback(project, runner, tmp_path):
    (project.paths.root / "root.patch").write_text("x")
    abs_patch = tmp_path / "abs.patch"
    abs_patch.write_text("y")
    PatchManager(project, runner).apply_all(_recipe(f"root.patch, file://{abs_patch}"), tmp_path, tmp_path / "l.log")
    assert [Path(c.args[2]).name for c in runner.calls] == ["root.patch", "abs.patch"]


def test_missing_local_patch(project, runner, tmp_path):
    with pytest.raises(PatchUnresolvable):
        PatchManager(project, runner).apply_all(_recipe("nope.patch"), tmp_path, tmp_path / "l.log")


def test_http_patch_downloaded_once(project, runner, tmp_path):
    def curl(cmd):
        Path(cmd.args[cmd.args.index("-o") + 1]).write_text("patch")
        return 0
    runner.handlers["curl"] = curl
    mgr = PatchManager(project, runner)
    spec = "https://x.org/fix.patch"
    mgr.apply_all(_recipe(spec), tmp_path, tmp_path / "l.log")
    mgr.apply_all(_recipe(spec), tmp_path, tmp_path / "l.log")
    assert runner.programs() == ["curl", "patch", "patch"]
    assert (project.paths.cache / f"patch-{cache_key(spec)}.patch").read_text() == "patch"


def test_http_patch_failure(project, runner, tmp_path):
    runner.handlers["curl"] = lambda cmd: 22
    with pytest.raises(PatchUnresolvable):
        PatchManager(project, runner).apply_all(_recipe("https://x.org/fix.patch"), tmp_path, tmp_path / "l.log")


def test_git_patch_repository(project, runner, tmp_path):
    spec = "git+https://x.org/patches.git"
    checkout = project.paths.cache / f"patch-{cache_key(spec)}"

    def git(cmd):
        if cmd.args[0] == "clone":
            checkout.mkdir()
            return 0
        if "ls-files" in cmd.args:
            return 0, "0002-b.patch\n0001-a.patch\n"
        return 0
    runner.handlers["git"] = git
    mgr = PatchManager(project, runner)
    applied = mgr.apply_all(_recipe(spec), tmp_path, tmp_path / "l.log")
    assert applied == 2
    patch_files = [Path(c.args[2]).name for c in runner.calls if c.program == "patch"]
    assert patch_files == ["0002-b.patch", "0001-a.patch"]

    runner.calls.clear()
    mgr.apply_all(_recipe(spec), tmp_path, tmp_path / "l.log")
    assert runner.calls[0].args[-2:] == ("pull", "--rebase")


def test_first_failure_aborts(project, runner, tmp_path):
    for n in ("a.patch", "b.patch", "c.patch"):
        (project.paths.root / n).write_text(n)
    runner.handlers["patch"] = lambda cmd: 1 if cmd.args[2].endswith("b.patch") else 0
    with pytest.raises(PatchApplicationFailed) as exc:
        PatchManager(project, runner).apply_all(_recipe("a.patch,b.patch,c.patch"), tmp_path, tmp_path / "l.log")
    assert exc.value.index == 2
    assert exc.value.spec == "b.patch"
    assert len(runner.calls) == 2


def test_no_patches_is_fine(project, runner, tmp_path):
    assert PatchManager(project, runner).apply_all(_recipe(""), tmp_path, tmp_path / "l.log") == 0
    assert runner.calls == []
