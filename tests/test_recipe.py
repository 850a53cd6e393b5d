import pytest

from sbuild.errors import InvalidRecipe, RecipeNotFound
from sbuild.recipe import find_recipe, parse, parse_text, search_recipes

FULL = """
# comment
; another comment
[package]
name = zlib
version=1.3.1
desc="A compression library"
homepage=https://zlib.net
license=Zlib
source=https://zlib.net/zlib-1.3.1.tar.xz
checksum = ABCDEF
strip=yes
fakeroot=no
pack=xz
patches= a.patch , git+https://example.org/p.git,,  file:///tmp/c.patch

[build]
preconfig=autoreconf -fi
config=./configure --prefix=$PREFIX
build=make
install=
postinstall=ldconfig -n $DESTDIR/usr/lib

[hooks]
postremove=echo removed
postsync=echo synced

[unknown]
name=ignored
"""


def test_parse_full_recipe():
    r = parse_text(FULL)
    assert r.name == "zlib"
    assert r.version == "1.3.1"
    assert r.desc == "A compression library"
    assert r.homepage == "https://zlib.net"
    assert r.license == "Zlib"
    assert r.source_url.endswith("zlib-1.3.1.tar.xz")
    assert r.checksum == "ABCDEF"
    assert r.strip is True
    assert r.fakeroot is False
    assert r.pack == "xz"
    assert r.patches == ["a.patch", "git+https://example.org/p.git", "file:///tmp/c.patch"]
    assert r.config == "./configure --prefix=$PREFIX"
    assert r.install == ""
    assert r.postinstall == "ldconfig -n $DESTDIR/usr/lib"
    assert r.postremove == "echo removed"
    assert r.postsync == "echo synced"
    assert r.ident == "zlib-1.3.1"


def test_defaults_and_unrecognised_boolean_values():
    r = parse_text("[package]\nname=x\nstrip=maybe\nfakeroot=maybe\n")
    assert r.strip is False
    assert r.fakeroot is True
    assert r.pack == "zst"
    assert r.patches == []
    assert r.git_url == ""


def test_lines_without_equals_and_value_with_equals():
    r = parse_text("[package]\nname=x\nnonsense line\n[build]\nconfig=./configure CFLAGS=-O2\n")
    assert r.config == "./configure CFLAGS=-O2"


def test_missing_name_is_invalid():
    with pytest.raises(InvalidRecipe):
        parse_text("[package]\nversion=1.0\n")


def test_name_outside_package_section_does_not_count():
    with pytest.raises(InvalidRecipe):
        parse_text("[build]\nname=x\n")


def test_parse_is_idempotent():
    assert parse_text(FULL) == parse_text(FULL)


def test_git_recipe_without_archive_is_valid():
    r = parse_text("[package]\nname=foo\nversion=git\ngit=https://example.org/foo.git\n")
    assert r.git_url == "https://example.org/foo.git"
    assert r.source_url == ""


def test_parse_records_path(make_recipe):
    path = make_recipe("foo", "[package]\nname=foo\nversion=1\n")
    r = parse(path)
    assert r.path == path
    assert r.directory == path.parent


def test_find_recipe_exact_beats_substring(project, make_recipe):
    make_recipe("libfoo", "[package]\nname=libfoo\n", subdir="aaa")
    exact = make_recipe("foo", "[package]\nname=foo\n")
    assert find_recipe(project.paths.recipes, "foo") == exact


def test_find_recipe_substring_is_deterministic(project, make_recipe):
    make_recipe("foo-extra", "[package]\nname=foo-extra\n", subdir="b")
    first = make_recipe("libfoo", "[package]\nname=libfoo\n", subdir="a")
    assert find_recipe(project.paths.recipes, "foo") == first


def test_find_recipe_missing(project):
    with pytest.raises(RecipeNotFound):
        find_recipe(project.paths.recipes, "nope")


def test_search_recipes(project, make_recipe):
    make_recipe("gcc", "[package]\nname=gcc\n")
    make_recipe("libgcc", "[package]\nname=libgcc\n", subdir="x")
    make_recipe("zlib", "[package]\nname=zlib\n")
    names = [p.name for p in search_recipes(project.paths.recipes, "gcc")]
    assert names == ["gcc.ini", "libgcc.ini"]
