# File: src/kpack/runtime/bundler.py
"""
Embeds a pre-extracted runtime package into approot/packages/<name>/.

Runtime package caches are laid out as <home>/packages/<name>/ and contain the
extracted package plus the original <name>.nupkg archive. The caches are read
only; nothing is downloaded.
"""

from __future__ import annotations

import base64
import hashlib
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Sequence

from kpack.core.writer import write_text_atomic
from kpack.errors import RuntimeNotFoundError

__all__ = [
    "PACKAGING_ARTIFACTS",
    "RuntimeIdentity",
    "locate_runtime",
    "sha512_base64",
    "bundle_runtime",
]

# Archive metadata with no value at run time.
CONTENT_TYPES_FILE = "[Content_Types].xml"
RELS_DIR = "_rels"
RELS_FILE = ".rels"
PACKAGE_META_DIR = "package"
PACKAGING_ARTIFACTS = (CONTENT_TYPES_FILE, f"{RELS_DIR}/{RELS_FILE}", f"{PACKAGE_META_DIR}/")

_CHUNK = 1024 * 1024
_NAME_RE = re.compile(r"^KRE-(?P<flavor>[^-.]+)(?:-(?P<arch>[^.]+))?\.(?P<version>.+)$", re.IGNORECASE)


@dataclass(frozen=True)
class RuntimeIdentity:
    name: str
    flavor: str = ""
    arch: str = ""
    version: str = ""

    @classmethod
    def parse(cls, name: str) -> "RuntimeIdentity":
        """KRE-<flavor>-<arch>.<version>; anything else keeps only the name."""
        m = _NAME_RE.match(name)
        if not m:
            return cls(name=name)
        return cls(name=name, flavor=m.group("flavor"), arch=m.group("arch") or "", version=m.group("version"))


def locate_runtime(name: str, runtime_homes: Iterable[Path]) -> Path:
    """
    Return the extracted package directory for `name`, searching
    <home>/packages/<name>/ for each home in order.
    """
    searched: List[str] = []
    for home in runtime_homes:
        cand = Path(home) / "packages" / name
        searched.append(str(cand))
        if not cand.is_dir():
            continue
        if not (cand / f"{name}.nupkg").is_file():
            raise RuntimeNotFoundError(f"Runtime package archive {name}.nupkg is missing", path=str(cand))
        return cand
    where = ", ".join(searched) if searched else "no runtime homes configured"
    raise RuntimeNotFoundError(f"Runtime '{name}' not found (searched: {where})", path=name)


def sha512_base64(path: Path) -> str:
    h = hashlib.sha512()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK), b""):
            h.update(chunk)
    return base64.b64encode(h.digest()).decode("ascii")


def _strip_packaging_artifacts(target: Path) -> None:
    content_types = target / CONTENT_TYPES_FILE
    if content_types.is_file():
        content_types.unlink()

    rels_dir = target / RELS_DIR
    rels = rels_dir / RELS_FILE
    if rels.is_file():
        rels.unlink()
    if rels_dir.is_dir() and not any(rels_dir.iterdir()):
        rels_dir.rmdir()

    meta = target / PACKAGE_META_DIR
    if meta.is_dir():
        shutil.rmtree(meta)


def bundle_runtime(name: str, runtime_homes: Sequence[Path], approot: Path) -> Path:
    """
    Copy runtime `name` into approot/packages/<name>/, drop packaging-only
    metadata, and write <name>.nupkg.sha512 next to the copy's contents.
    The digest is taken from the cached archive, not from the copy.
    """
    source = locate_runtime(name, runtime_homes)
    target = approot / "packages" / name

    shutil.copytree(source, target, dirs_exist_ok=True)
    _strip_packaging_artifacts(target)

    digest = sha512_base64(source / f"{name}.nupkg")
    write_text_atomic(target / f"{name}.nupkg.sha512", digest)
    return target
