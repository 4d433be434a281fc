from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple

from kpack.core.exclusion import ExclusionSet, first_match, is_always_excluded
from kpack.errors import ManifestError


class PathClass(Enum):
    EXCLUDED = "excluded"
    APPLICATION = "application"
    PUBLIC = "public"
    BOTH = "application+public"


@dataclass(frozen=True)
class PartitionEntry:
    source: Path
    rel_path: str                  # POSIX, relative to the project root
    klass: PathClass
    app_dest: Optional[str] = None     # relative to approot/src/<project>
    public_dest: Optional[str] = None  # relative to the public output dir


@dataclass(frozen=True)
class PartitionConfig:
    root: Path
    exclusions: ExclusionSet
    webroot: Optional[str] = None
    manifest_name: str = "project.json"
    follow_symlinks: bool = False


@dataclass
class Partition:
    root: Path
    webroot: Optional[Tuple[str, ...]]
    webroot_exists: bool = True
    entries: List[PartitionEntry] = field(default_factory=list)
    excluded: List[str] = field(default_factory=list)

    @property
    def has_public_tree(self) -> bool:
        return self.webroot is not None

    def application_files(self) -> List[PartitionEntry]:
        return [e for e in self.entries if e.app_dest is not None]

    def public_files(self) -> List[PartitionEntry]:
        return [e for e in self.entries if e.public_dest is not None]


def normalize_webroot(root: Path, webroot: str) -> Tuple[str, ...]:
    """
    Resolve a webroot (relative to `root`, or absolute inside it) to path parts.
    `()` means the project root itself is the public root.
    """
    raw = webroot.strip()
    p = Path(raw)
    if p.is_absolute():
        try:
            return p.resolve().relative_to(root.resolve()).parts
        except ValueError:
            raise ManifestError("webroot must be inside the project directory", path=raw) from None
    parts = tuple(s for s in raw.replace("\\", "/").split("/") if s and s != ".")
    if ".." in parts:
        raise ManifestError("webroot must be inside the project directory", path=raw)
    return parts


def _raise(err: OSError) -> None:
    raise err


class TreePartitioner:
    """
    Single depth-first walk that classifies every retained file into the
    application and/or public tree.

    Manifest patterns filter the application tree only; the public tree is
    filtered by the always-excluded rules alone.
    """

    def __init__(self, cfg: PartitionConfig) -> None:
        self.cfg = cfg
        self.webroot: Optional[Tuple[str, ...]] = (
            normalize_webroot(cfg.root, cfg.webroot) if cfg.webroot is not None else None
        )

    # -- region helpers -------------------------------------------------------
    def _in_public(self, parts: Tuple[str, ...]) -> bool:
        w = self.webroot
        return w is not None and parts[: len(w)] == w

    def _is_webroot_ancestor(self, parts: Tuple[str, ...]) -> bool:
        w = self.webroot
        return w is not None and len(parts) < len(w) and w[: len(parts)] == parts

    def _keep_dir(self, parts: Tuple[str, ...]) -> bool:
        ex = self.cfg.exclusions
        if is_always_excluded(parts, True, ex.reserved):
            return False
        if self._in_public(parts) or self._is_webroot_ancestor(parts):
            return True
        return first_match(ex.patterns, parts, True) is None

    # -- classification -------------------------------------------------------
    def classify(self, parts: Tuple[str, ...]) -> PathClass:
        ex = self.cfg.exclusions
        if is_always_excluded(parts, False, ex.reserved):
            return PathClass.EXCLUDED

        is_manifest = parts == (self.cfg.manifest_name,)
        app_ok = is_manifest or first_match(ex.patterns, parts, False) is None

        if self.webroot is None:
            return PathClass.APPLICATION if app_ok else PathClass.EXCLUDED
        if self.webroot == ():
            return PathClass.BOTH if app_ok else PathClass.PUBLIC
        if self._in_public(parts):
            return PathClass.PUBLIC
        return PathClass.APPLICATION if app_ok else PathClass.EXCLUDED

    def _entry(self, source: Path, parts: Tuple[str, ...], klass: PathClass) -> PartitionEntry:
        rel = "/".join(parts)
        app_dest = rel if klass in (PathClass.APPLICATION, PathClass.BOTH) else None
        public_dest = None
        if klass in (PathClass.PUBLIC, PathClass.BOTH):
            public_dest = "/".join(parts[len(self.webroot or ()):])
        return PartitionEntry(source=source, rel_path=rel, klass=klass, app_dest=app_dest, public_dest=public_dest)

    # -- walk -----------------------------------------------------------------
    def partition(self) -> Partition:
        root = self.cfg.root
        if not root.is_dir():
            raise FileNotFoundError(root)

        result = Partition(root=root, webroot=self.webroot)
        if self.webroot:
            result.webroot_exists = (root.joinpath(*self.webroot)).is_dir()

        for cur, dirs, files in os.walk(root, followlinks=self.cfg.follow_symlinks, onerror=_raise):
            # Deterministic order
            dirs.sort()
            files.sort()
            base = Path(cur).relative_to(root).parts

            kept: List[str] = []
            for d in dirs:
                parts = base + (d,)
                if self._keep_dir(parts):
                    kept.append(d)
                else:
                    result.excluded.append("/".join(parts) + "/")
            dirs[:] = kept

            for fn in files:
                p = Path(cur) / fn
                if not p.is_file():
                    # dangling symlink or special file
                    continue
                parts = base + (fn,)
                klass = self.classify(parts)
                if klass is PathClass.EXCLUDED:
                    result.excluded.append("/".join(parts))
                    continue
                result.entries.append(self._entry(p, parts, klass))

        result.entries.sort(key=lambda e: e.rel_path)
        return result


__all__ = [
    "PathClass",
    "PartitionEntry",
    "PartitionConfig",
    "Partition",
    "TreePartitioner",
    "normalize_webroot",
]
