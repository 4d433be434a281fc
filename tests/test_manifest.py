# File: tests/test_manifest.py
"""
Manifest reading (pydantic model) and the application-copy rewrite of `webroot`.
"""

import json
import os
from pathlib import Path

import pytest

from kpack.errors import ManifestError
from kpack.io.manifest_writer import rewrite_webroot, webroot_for, write_manifest_copy
from kpack.manifest.reader import load_manifest


def _write(p: Path, content: str) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(content, encoding="utf-8")


# ──────────────────────────────────────────────────────────────────────────────
# Reader
# ──────────────────────────────────────────────────────────────────────────────
def test_load_manifest_reads_consumed_fields(tmp_path: Path):
    project = tmp_path / "TestProject"
    _write(
        project / "project.json",
        json.dumps(
            {
                "packExclude": "**.bconfig",
                "webroot": "public",
                "commands": {"run": "run server.urls=http://localhost:5003"},
                "frameworks": {"aspnet50": {}},
                "version": "1.0.0-*",
            }
        ),
    )
    loaded = load_manifest(project)

    assert loaded.project_name == "TestProject"
    assert loaded.model.pack_exclude == ["**.bconfig"]
    assert loaded.model.webroot == "public"
    assert list(loaded.model.commands) == ["run"]
    assert loaded.model.frameworks == {"aspnet50": {}}


def test_load_manifest_defaults_for_empty_object(tmp_path: Path):
    _write(tmp_path / "project.json", "{\n}")
    model = load_manifest(tmp_path).model
    assert model.pack_exclude == []
    assert model.webroot is None
    assert model.commands == {}


def test_load_manifest_accepts_byte_order_mark(tmp_path: Path):
    (tmp_path / "project.json").write_bytes(b'\xef\xbb\xbf{"webroot": "wwwroot"}')
    assert load_manifest(tmp_path).model.webroot == "wwwroot"


@pytest.mark.parametrize(
    "content",
    [
        "{ not json",
        "[1, 2, 3]",
        '{"commands": ["run"]}',
        '{"packExclude": 5}',
        '{"webroot": 7}',
    ],
)
def test_load_manifest_rejects_malformed_documents(tmp_path: Path, content: str):
    _write(tmp_path / "project.json", content)
    with pytest.raises(ManifestError) as exc:
        load_manifest(tmp_path)
    assert exc.value.exit_code == 2


def test_load_manifest_missing_file(tmp_path: Path):
    with pytest.raises(ManifestError, match="not found"):
        load_manifest(tmp_path)


# ──────────────────────────────────────────────────────────────────────────────
# Rewrite
# ──────────────────────────────────────────────────────────────────────────────
def test_webroot_for_points_from_app_dir_to_public_dir(tmp_path: Path):
    assert webroot_for(tmp_path / "out", "TestProject", "wwwroot") == os.path.join("..", "..", "..", "wwwroot")


def test_rewrite_replaces_existing_value_only():
    text = '{\n  "packExclude": "**.bconfig",\n  "webroot": "to_be_overridden"\n}'
    out = rewrite_webroot(text, "..\\..\\..\\wwwroot")
    assert out == '{\n  "packExclude": "**.bconfig",\n  "webroot": "..\\\\..\\\\..\\\\wwwroot"\n}'


def test_rewrite_ignores_nested_webroot_keys():
    text = '{"config": {"webroot": "inner"}, "webroot": "outer"}'
    out = rewrite_webroot(text, "x")
    assert out == '{"config": {"webroot": "inner"}, "webroot": "x"}'


def test_rewrite_appends_member_with_existing_indentation():
    text = '{\r\n    "version": "1.0.0",\r\n    "commands": {}\r\n}'
    out = rewrite_webroot(text, "../wwwroot")
    assert out == '{\r\n    "version": "1.0.0",\r\n    "commands": {},\r\n    "webroot": "../wwwroot"\r\n}'


def test_rewrite_fills_empty_object():
    assert rewrite_webroot("{\n}", "w") == '{\n  "webroot": "w"\n}'


def test_rewrite_rejects_non_object():
    with pytest.raises(ManifestError):
        rewrite_webroot("[]", "w")


def test_write_manifest_copy_is_verbatim_without_public_tree(tmp_path: Path):
    src = tmp_path / "project.json"
    src.write_bytes(b'{\r\n  "packExclude": "Data/Backup/**"\r\n}')
    dest = tmp_path / "out" / "project.json"

    write_manifest_copy(src, dest, None)
    assert dest.read_bytes() == src.read_bytes()


def test_write_manifest_copy_keeps_line_endings(tmp_path: Path):
    src = tmp_path / "project.json"
    src.write_bytes(b'{\r\n  "webroot": "public"\r\n}')
    dest = tmp_path / "out" / "project.json"

    write_manifest_copy(src, dest, "../../../wwwroot")
    assert dest.read_bytes() == b'{\r\n  "webroot": "../../../wwwroot"\r\n}'
