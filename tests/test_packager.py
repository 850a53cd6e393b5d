import io
import tarfile

import pytest
import zstandard as zstd

from sbuild.errors import NothingToPackage, PackagingFailed
from sbuild.packager import Packager, extension_for
from sbuild.recipe import parse_text


def _recipe(pack):
    return parse_text(f"[package]\nname=foo\nversion=1.0\npack={pack}\n")


def _stage(project):
    staging = project.paths.destdir / "foo-1.0"
    (staging / "usr" / "bin").mkdir(parents=True)
    (staging / "usr" / "bin" / "foo").write_text("#!/bin/sh\n")
    return staging


def test_extension_for():
    assert extension_for("zst") == "tar.zst"
    assert extension_for("xz") == "tar.xz"
    assert extension_for("gz") == "tar.gz"
    assert extension_for("lz4") == "tar.gz"


@pytest.mark.parametrize("pack,mode", [("gz", "r:gz"), ("xz", "r:xz"), ("bogus", "r:gz")])
def test_tar_members_are_relative_to_staging(project, console, pack, mode):
    staging = _stage(project)
    out = Packager(project, console).pack(_recipe(pack), staging, project.paths.log_for("foo-1.0"))
    assert out.parent == project.paths.packages
    with tarfile.open(out, mode) as tar:
        names = tar.getnames()
    assert "usr/bin/foo" in names
    assert not any(n.startswith("foo-1.0") for n in names)


def test_zst_package(project, console, out):
    staging = _stage(project)
    path = Packager(project, console).pack(_recipe("zst"), staging, project.paths.log_for("foo-1.0"))
    assert path.name == "foo-1.0.tar.zst"
    with open(path, "rb") as f:
        data = zstd.ZstdDecompressor().stream_reader(f).read()
    with tarfile.open(fileobj=io.BytesIO(data), mode="r:") as tar:
        assert "usr/bin/foo" in tar.getnames()
    assert "[ OK ] Package:" in out.getvalue()
    assert not list(project.paths.packages.glob("*.part"))


def test_missing_staging(project, console):
    with pytest.raises(NothingToPackage):
        Packager(project, console).pack(_recipe("zst"), project.paths.destdir / "foo-1.0", project.paths.log_for("foo-1.0"))


def test_failure_leaves_no_partial_archive(project, console, monkeypatch):
    staging = _stage(project)

    def boom(*a, **k):
        raise tarfile.TarError("disk on fire")
    monkeypatch.setattr("sbuild.packager._add_contents", boom)
    with pytest.raises(PackagingFailed):
        Packager(project, console).pack(_recipe("gz"), staging, project.paths.log_for("foo-1.0"))
    assert list(project.paths.packages.iterdir()) == []
