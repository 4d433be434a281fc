"""
Exclusion matcher for pack sources.

Patterns come from the manifest's packExclude plus the always-excluded rules
(dot-directories, root-level bin/obj, the dependency cache, the pack output).
Matching is a pure function over normalized segment tuples; the only
filesystem dependency is the `dir_exists` query used while compiling, which
decides whether a bare name is a directory shorthand.

Glob dialect
------------
- `**` as a whole segment     zero or more whole segments
- `*`                         any run of characters inside one segment
- `?`                         one character inside one segment
- `**` inside a segment       any characters, separators included (`**.bconfig`)
- trailing `.*`               also matches names without an extension (`*.*`)
- literals                    compared case-insensitively
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Optional, Pattern, Sequence, Tuple, Union

from kpack.errors import PatternError

__all__ = [
    "SegmentKind",
    "Segment",
    "CompiledPattern",
    "ExclusionSet",
    "normalize_pattern",
    "compile_pattern",
    "compile_patterns",
    "build_exclusion_set",
    "match_pattern",
    "first_match",
    "is_always_excluded",
    "is_excluded",
    "split_rel",
]

_GLOB_CHARS = ("*", "?")
_DRIVE = re.compile(r"^[A-Za-z]:")

RelPath = Union[str, Sequence[str]]


# ──────────────────────────────────────────────────────────────────────────────
# Compiled pattern model
# ──────────────────────────────────────────────────────────────────────────────
class SegmentKind(Enum):
    ANY_DEPTH = "any_depth"   # `**`
    LITERAL = "literal"
    WILDCARD = "wildcard"     # single segment with * or ?
    SPAN = "span"             # `**` mixed with other characters


@dataclass(frozen=True)
class Segment:
    kind: SegmentKind
    text: str
    regex: Optional[Pattern[str]] = None

    def matches(self, name: str) -> bool:
        if self.kind is SegmentKind.LITERAL:
            return name.casefold() == self.text.casefold()
        assert self.regex is not None
        return self.regex.fullmatch(name) is not None


@dataclass(frozen=True)
class CompiledPattern:
    source: str
    normalized: str
    segments: Tuple[Segment, ...]
    shorthand: bool = False

    @property
    def subtree(self) -> bool:
        """True when the pattern removes whole directories (ends in `**`)."""
        return bool(self.segments) and self.segments[-1].kind is SegmentKind.ANY_DEPTH


@dataclass(frozen=True)
class ExclusionSet:
    patterns: Tuple[CompiledPattern, ...] = ()
    reserved: Tuple[Tuple[str, ...], ...] = field(default_factory=tuple)


# ──────────────────────────────────────────────────────────────────────────────
# Normalization / compilation
# ──────────────────────────────────────────────────────────────────────────────
def split_rel(rel_path: RelPath) -> Tuple[str, ...]:
    if isinstance(rel_path, str):
        return tuple(p for p in rel_path.replace("\\", "/").split("/") if p and p != ".")
    return tuple(rel_path)


def normalize_pattern(raw: object) -> str:
    """
    Canonicalize separators to `/`, drop `./` and empty segments.
    A trailing separator is kept: it marks a directory shorthand.
    """
    if not isinstance(raw, str):
        raise PatternError("packExclude entries must be strings", pattern=raw)
    p = raw.strip().replace("\\", "/")
    if not p:
        raise PatternError("empty packExclude entry", pattern=raw)
    if p.startswith("/") or _DRIVE.match(p):
        raise PatternError("packExclude entries must be relative to the project root", pattern=raw)

    trailing = p.endswith("/")
    parts = [s for s in p.split("/") if s and s != "."]
    if any(s == ".." for s in parts):
        raise PatternError("packExclude entries may not leave the project root", pattern=raw)
    if not parts:
        raise PatternError("packExclude entry names the project root itself", pattern=raw)
    return "/".join(parts) + ("/" if trailing else "")


def _translate(seg: str) -> str:
    dos_tail = seg.endswith(".*")
    body = seg[:-2] if dos_tail else seg
    out = []
    i = 0
    while i < len(body):
        c = body[i]
        if body.startswith("**", i):
            out.append(".*")
            i += 2
            continue
        if c == "*":
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        else:
            out.append(re.escape(c))
        i += 1
    if dos_tail:
        out.append(r"(?:\.[^/]*)?")
    return "".join(out)


def _compile_segment(seg: str) -> Segment:
    if seg == "**":
        return Segment(SegmentKind.ANY_DEPTH, seg)
    if not any(c in seg for c in _GLOB_CHARS):
        return Segment(SegmentKind.LITERAL, seg)
    kind = SegmentKind.SPAN if "**" in seg else SegmentKind.WILDCARD
    return Segment(kind, seg, re.compile(_translate(seg), re.IGNORECASE))


def compile_pattern(raw: object, dir_exists: Callable[[str], bool]) -> CompiledPattern:
    """
    Compile one packExclude entry.

    A pattern without glob characters that names an existing directory, or any
    pattern written with a trailing separator, is rewritten to `<pattern>/**`.
    """
    norm = normalize_pattern(raw)
    trailing = norm.endswith("/")
    body = norm.rstrip("/")
    has_glob = any(c in body for c in _GLOB_CHARS)
    shorthand = trailing or (not has_glob and dir_exists(body))

    parts = body.split("/")
    if shorthand:
        parts.append("**")

    segments: list[Segment] = []
    for s in parts:
        compiled = _compile_segment(s)
        # `**/**` is the same as `**`
        if segments and compiled.kind is SegmentKind.ANY_DEPTH and segments[-1].kind is SegmentKind.ANY_DEPTH:
            continue
        segments.append(compiled)

    return CompiledPattern(source=str(raw), normalized=body, segments=tuple(segments), shorthand=shorthand)


def compile_patterns(raw_patterns: Iterable[object], dir_exists: Callable[[str], bool]) -> Tuple[CompiledPattern, ...]:
    return tuple(compile_pattern(p, dir_exists) for p in raw_patterns)


def build_exclusion_set(
    raw_patterns: Iterable[object],
    root: Path,
    reserved_dirs: Iterable[Union[str, Path]] = (),
) -> ExclusionSet:
    """
    Compile manifest patterns against `root` and resolve reserved directories.

    `reserved_dirs` entries are project-relative names (`bin`) or absolute
    paths; absolute paths outside the project are ignored.
    """
    root = Path(root)
    resolved_root = root.resolve()

    def dir_exists(rel: str) -> bool:
        return (root / rel).is_dir()

    reserved: list[Tuple[str, ...]] = []
    for item in reserved_dirs:
        if isinstance(item, Path) and item.is_absolute():
            try:
                rel_parts = item.resolve().relative_to(resolved_root).parts
            except ValueError:
                continue
        else:
            rel_parts = split_rel(str(item))
        if rel_parts:
            key = tuple(p.casefold() for p in rel_parts)
            if key not in reserved:
                reserved.append(key)

    return ExclusionSet(patterns=compile_patterns(raw_patterns, dir_exists), reserved=tuple(reserved))


# ──────────────────────────────────────────────────────────────────────────────
# Evaluation (filesystem-free)
# ──────────────────────────────────────────────────────────────────────────────
def _match(segs: Tuple[Segment, ...], parts: Tuple[str, ...], i: int, j: int) -> bool:
    if i == len(segs):
        return j == len(parts)
    seg = segs[i]
    if seg.kind is SegmentKind.ANY_DEPTH:
        return any(_match(segs, parts, i + 1, k) for k in range(j, len(parts) + 1))
    if seg.kind is SegmentKind.SPAN:
        for k in range(j + 1, len(parts) + 1):
            if seg.matches("/".join(parts[j:k])) and _match(segs, parts, i + 1, k):
                return True
        return False
    if j == len(parts):
        return False
    return seg.matches(parts[j]) and _match(segs, parts, i + 1, j + 1)


def match_pattern(pattern: CompiledPattern, parts: Tuple[str, ...]) -> bool:
    """Whole-path match of `parts` against `pattern`."""
    return _match(pattern.segments, parts, 0, 0)


def first_match(
    patterns: Sequence[CompiledPattern],
    rel_path: RelPath,
    is_dir: bool,
) -> Optional[CompiledPattern]:
    """
    Return the first pattern excluding `rel_path`, or None.

    Files match any pattern on their full path. Directories, and the ancestors
    of any path, only match patterns that end in `**`; `X/*` removes the files
    directly in X but keeps its sub-directories.
    """
    parts = split_rel(rel_path)
    if not parts:
        return None
    for pat in patterns:
        if pat.subtree:
            if any(match_pattern(pat, parts[:k]) for k in range(1, len(parts) + 1)):
                return pat
        elif not is_dir and match_pattern(pat, parts):
            return pat
    return None


def is_always_excluded(parts: Tuple[str, ...], is_dir: bool, reserved: Sequence[Tuple[str, ...]] = ()) -> bool:
    """
    Rules no pattern can override: dot-directories at any depth and reserved
    directories (with everything beneath them). Dot-files are kept.
    """
    dirs = parts if is_dir else parts[:-1]
    if any(name.startswith(".") for name in dirs):
        return True
    folded = tuple(p.casefold() for p in parts)
    for r in reserved:
        if folded[: len(r)] == r and (is_dir or len(folded) > len(r)):
            return True
    return False


def is_excluded(exclusions: ExclusionSet, rel_path: RelPath, is_dir: bool) -> bool:
    parts = split_rel(rel_path)
    if not parts:
        return False
    if is_always_excluded(parts, is_dir, exclusions.reserved):
        return True
    return first_match(exclusions.patterns, parts, is_dir) is not None
