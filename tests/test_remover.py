import pytest

from sbuild.errors import NotRegistered
from sbuild.phases import PhaseRunner
from sbuild.recipe import parse_text
from sbuild.remover import Remover
from sbuild.staging import Registry, capture_manifest, reset_staging


def _install(project, name="foo", version="1.0", files=("usr/bin/foo", "usr/lib/libfoo.so")):
    recipe = parse_text(f"[package]\nname={name}\nversion={version}\n")
    staging = reset_staging(project, recipe)
    for rel in files:
        (staging / rel).parent.mkdir(parents=True, exist_ok=True)
        (staging / rel).write_text(rel)
    Registry(project).save(recipe, capture_manifest(staging))
    return staging


@pytest.fixture
def remover(project, runner):
    return Remover(project, PhaseRunner(project, runner), Registry(project))


def test_remove_by_name(project, remover, out):
    staging = _install(project)
    report = remover.remove("foo")
    assert report.ident == "foo-1.0"
    assert report.removed == 2
    assert not staging.exists()
    assert Registry(project).entries() == []
    assert "Removed files from DESTDIR for foo-1.0: 2" in out.getvalue()


def test_already_missing_files_are_not_counted(project, remover):
    staging = _install(project)
    (staging / "usr" / "bin" / "foo").unlink()
    assert remover.remove("foo-1.0").removed == 1


def test_postremove_hook_runs_from_project_root(project, remover, runner, make_recipe):
    make_recipe("foo", "[package]\nname=foo\nversion=1.0\n[hooks]\npostremove=ldconfig\n")
    staging = _install(project)
    report = remover.remove("foo")
    hook = runner.calls[-1]
    assert hook.args[-1] == "set -e; ldconfig"
    assert hook.cwd == project.paths.root
    assert hook.env["DESTDIR"] == str(staging)
    assert report.hook_ok
    assert project.paths.log_for("foo-1.0").exists()


def test_failed_hook_still_forgets_entry(project, remover, runner, make_recipe):
    make_recipe("foo", "[package]\nname=foo\nversion=1.0\n[hooks]\npostremove=false\n")
    _install(project)
    runner.handlers["sh"] = lambda cmd: 1
    report = remover.remove("foo")
    assert report.hook_ok is False
    assert Registry(project).entries() == []


def test_recipe_lookup_uses_registered_name(project, remover, runner, make_recipe):
    make_recipe("foo-utils", "[package]\nname=foo-utils\nversion=2\n[hooks]\npostremove=echo hi\n")
    _install(project, name="foo-utils", version="2")
    remover.remove("foo-utils")
    assert runner.calls and runner.calls[-1].args[-1] == "set -e; echo hi"


def test_unknown_identifier_mutates_nothing(project, remover):
    staging = _install(project)
    with pytest.raises(NotRegistered):
        remover.remove("bar")
    assert staging.exists()
    assert Registry(project).entries() == ["foo-1.0"]


def test_missing_manifest_mutates_nothing(project, remover):
    staging = _install(project)
    (project.paths.installed / "foo-1.0" / "manifest.txt").unlink()
    with pytest.raises(NotRegistered):
        remover.remove("foo")
    assert (staging / "usr" / "bin" / "foo").exists()


def test_manifest_entries_cannot_escape_staging(project, remover, tmp_path):
    _install(project)
    victim = project.paths.destdir / "victim"
    victim.write_text("keep me")
    manifest = project.paths.installed / "foo-1.0" / "manifest.txt"
    manifest.write_text(manifest.read_text() + "/../victim\n")
    report = remover.remove("foo")
    assert victim.read_text() == "keep me"
    assert report.removed == 2


def test_staging_root_removed_with_unlisted_files(project, remover):
    staging = _install(project)
    (staging / "usr" / "share").mkdir()
    (staging / "usr" / "share" / "stray.txt").write_text("not in manifest")
    (staging / "stray-top").write_text("x")
    report = remover.remove("foo")
    assert report.removed == 2
    assert not staging.exists()
