from pathlib import Path
from typing import Iterable

import pytest

from kpack.core.discovery import (
    PartitionConfig,
    PathClass,
    TreePartitioner,
    normalize_webroot,
)
from kpack.core.exclusion import build_exclusion_set
from kpack.errors import ManifestError


def _write(p: Path, content: str = "") -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(content, encoding="utf-8")


def _make_tree(root: Path, files: Iterable[str]) -> None:
    for rel in files:
        _write(root / rel, rel)


def _partition(root: Path, patterns=(), webroot=None, reserved=("bin", "obj", "packages")):
    ex = build_exclusion_set(list(patterns), root, list(reserved))
    return TreePartitioner(PartitionConfig(root=root, exclusions=ex, webroot=webroot)).partition()


def test_application_only_partition(tmp_path: Path):
    _make_tree(
        tmp_path,
        [
            "project.json",
            "Program.cs",
            "Data/Input/data1.dat",
            "Data/Backup/backup1.dat",
            "bin/Debug/test.dll",
            ".git/HEAD",
        ],
    )
    part = _partition(tmp_path, ["Data/Backup/**"])

    assert not part.has_public_tree
    assert [e.rel_path for e in part.entries] == ["Data/Input/data1.dat", "Program.cs", "project.json"]
    assert all(e.klass is PathClass.APPLICATION for e in part.entries)
    assert all(e.public_dest is None for e in part.entries)
    assert "Data/Backup/" in part.excluded
    assert "bin/" in part.excluded
    assert ".git/" in part.excluded


def test_root_as_public_copies_everything_to_public_tree(tmp_path: Path):
    _make_tree(tmp_path, ["project.json", "Program.cs", "build.bconfig", "Models/b.bconfig", "obj/x.obj"])
    part = _partition(tmp_path, ["**.bconfig"], webroot=".")

    by_rel = {e.rel_path: e for e in part.entries}
    assert by_rel["Program.cs"].klass is PathClass.BOTH
    assert by_rel["Program.cs"].app_dest == "Program.cs"
    assert by_rel["Program.cs"].public_dest == "Program.cs"
    # packExclude only filters the application tree
    assert by_rel["build.bconfig"].klass is PathClass.PUBLIC
    assert by_rel["Models/b.bconfig"].app_dest is None
    assert by_rel["Models/b.bconfig"].public_dest == "Models/b.bconfig"
    # always-excluded rules filter both trees
    assert "obj/x.obj" not in by_rel


def test_subfolder_public_root_is_split_out(tmp_path: Path):
    _make_tree(
        tmp_path,
        [
            "project.json",
            "Program.cs",
            "public/Scripts/jquery.js",
            "public/UselessFolder/file.useless",
            "UselessFolder/file.useless",
        ],
    )
    part = _partition(tmp_path, ["**.useless"], webroot="public")

    assert part.webroot == ("public",)
    assert sorted(e.public_dest for e in part.public_files()) == ["Scripts/jquery.js", "UselessFolder/file.useless"]
    assert sorted(e.app_dest for e in part.application_files()) == ["Program.cs", "project.json"]
    assert "UselessFolder/file.useless" in part.excluded


def test_nested_webroot_survives_excluded_ancestor(tmp_path: Path):
    _make_tree(tmp_path, ["project.json", "site/www/index.html", "site/notes.txt"])
    part = _partition(tmp_path, ["site/"], webroot="site/www")

    assert [e.public_dest for e in part.public_files()] == ["index.html"]
    assert [e.app_dest for e in part.application_files()] == ["project.json"]


def test_manifest_is_never_excluded_from_application_tree(tmp_path: Path):
    _make_tree(tmp_path, ["project.json", "a.json"])
    part = _partition(tmp_path, ["*.json"])
    assert [e.rel_path for e in part.application_files()] == ["project.json"]


def test_missing_webroot_is_reported(tmp_path: Path):
    _make_tree(tmp_path, ["project.json"])
    part = _partition(tmp_path, webroot="public")
    assert part.has_public_tree
    assert not part.webroot_exists
    assert part.public_files() == []


def test_normalize_webroot(tmp_path: Path):
    assert normalize_webroot(tmp_path, ".") == ()
    assert normalize_webroot(tmp_path, "./public/") == ("public",)
    assert normalize_webroot(tmp_path, "site\\www") == ("site", "www")
    assert normalize_webroot(tmp_path, str(tmp_path / "public")) == ("public",)
    with pytest.raises(ManifestError):
        normalize_webroot(tmp_path, "../wwwroot")
    with pytest.raises(ManifestError):
        normalize_webroot(tmp_path, str(tmp_path.parent))
