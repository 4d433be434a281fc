import base64
import hashlib
from pathlib import Path

import pytest

from kpack.errors import RuntimeNotFoundError
from kpack.runtime.bundler import RuntimeIdentity, bundle_runtime, locate_runtime, sha512_base64

RUNTIME = "KRE-CLR-x86.1.0.0-beta1"


def _write(p: Path, content: bytes) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_bytes(content)


def _make_runtime(home: Path, name: str = RUNTIME) -> Path:
    root = home / "packages" / name
    _write(root / f"{name}.nupkg", b"PK\x03\x04 fake archive " * 64)
    _write(root / "[Content_Types].xml", b"<Types />")
    _write(root / "_rels" / ".rels", b"<Relationships />")
    _write(root / "package" / "services" / "metadata" / "core.psmdcp", b"meta")
    _write(root / "bin" / "klr.exe", b"MZ")
    _write(root / "bin" / "lib" / "Microsoft.Framework.Runtime.dll", b"MZ")
    return root


def test_runtime_identity_parse():
    ident = RuntimeIdentity.parse(RUNTIME)
    assert (ident.flavor, ident.arch, ident.version) == ("CLR", "x86", "1.0.0-beta1")

    mono = RuntimeIdentity.parse("KRE-Mono.1.0.0-beta1")
    assert (mono.flavor, mono.arch, mono.version) == ("Mono", "", "1.0.0-beta1")

    other = RuntimeIdentity.parse("custom-runtime")
    assert other.version == "" and other.flavor == ""


def test_locate_runtime_searches_homes_in_order(tmp_path: Path):
    first = tmp_path / "home1"
    second = tmp_path / "home2"
    expected = _make_runtime(second)

    assert locate_runtime(RUNTIME, [first, second]) == expected

    with pytest.raises(RuntimeNotFoundError) as exc:
        locate_runtime("KRE-CLR-amd64.9.9.9", [first, second])
    assert exc.value.exit_code == 6
    assert "home1" in str(exc.value)


def test_locate_runtime_requires_archive(tmp_path: Path):
    root = _make_runtime(tmp_path)
    (root / f"{RUNTIME}.nupkg").unlink()
    with pytest.raises(RuntimeNotFoundError, match="nupkg"):
        locate_runtime(RUNTIME, [tmp_path])


def test_bundle_runtime_copies_and_strips_packaging_metadata(tmp_path: Path):
    home = tmp_path / "kre"
    source = _make_runtime(home)
    approot = tmp_path / "out" / "approot"

    target = bundle_runtime(RUNTIME, [home], approot)

    assert target == approot / "packages" / RUNTIME
    assert (target / "bin" / "klr.exe").read_bytes() == b"MZ"
    assert (target / "bin" / "lib" / "Microsoft.Framework.Runtime.dll").is_file()
    assert (target / f"{RUNTIME}.nupkg").is_file()
    assert not (target / "[Content_Types].xml").exists()
    assert not (target / "_rels").exists()
    assert not (target / "package").exists()
    # the cache itself is never modified
    assert (source / "[Content_Types].xml").is_file()

    digest = base64.b64encode(hashlib.sha512((source / f"{RUNTIME}.nupkg").read_bytes()).digest()).decode("ascii")
    assert (target / f"{RUNTIME}.nupkg.sha512").read_text(encoding="utf-8") == digest
    assert sha512_base64(source / f"{RUNTIME}.nupkg") == digest


def test_bundle_runtime_keeps_other_rels_files(tmp_path: Path):
    home = tmp_path / "kre"
    source = _make_runtime(home)
    _write(source / "_rels" / "other.rels", b"x")

    target = bundle_runtime(RUNTIME, [home], tmp_path / "approot")
    assert not (target / "_rels" / ".rels").exists()
    assert (target / "_rels" / "other.rels").is_file()
