# File: src/kpack/io/manifest_writer.py
"""
Writes the application copy of the manifest.

The copy is produced from the original text, not re-serialized, so formatting,
key order and unrelated members stay byte-for-byte identical. Only the
top-level `webroot` value is replaced (or appended when missing) so the
application can find the packed public directory from approot/src/<project>.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from kpack.core.writer import copy_file, write_text_atomic
from kpack.errors import ManifestError

__all__ = ["webroot_for", "rewrite_webroot", "write_manifest_copy"]

_WS = " \t\r\n"
_BOM = "\ufeff"


@dataclass(frozen=True)
class _Member:
    key: str
    key_start: int
    value_start: int
    value_end: int


def webroot_for(out_dir: Path, project_name: str, public_out: str) -> str:
    """
    Relative path, in host separator convention, from approot/src/<project>
    to the public output directory.
    """
    app_dir = os.path.join(str(out_dir), "approot", "src", project_name)
    public_dir = os.path.join(str(out_dir), public_out)
    return os.path.relpath(public_dir, app_dir)


def _skip_ws(text: str, i: int) -> int:
    while i < len(text) and text[i] in _WS:
        i += 1
    return i


def _scan_members(text: str) -> Tuple[int, List[_Member], int]:
    """
    Return (open_brace, members, close_brace) for the top-level JSON object.
    Values are skipped with the stdlib decoder, so nested content is never
    inspected.
    """
    decoder = json.JSONDecoder()
    i = _skip_ws(text, 1 if text.startswith(_BOM) else 0)
    if i >= len(text) or text[i] != "{":
        raise ValueError("top level is not a JSON object")
    open_brace = i
    i = _skip_ws(text, i + 1)

    members: List[_Member] = []
    if i < len(text) and text[i] == "}":
        return open_brace, members, i

    while True:
        key_start = i
        key, i = decoder.raw_decode(text, i)
        if not isinstance(key, str):
            raise ValueError("object key is not a string")
        i = _skip_ws(text, i)
        if i >= len(text) or text[i] != ":":
            raise ValueError("expected ':' after object key")
        value_start = _skip_ws(text, i + 1)
        _, value_end = decoder.raw_decode(text, value_start)
        members.append(_Member(key, key_start, value_start, value_end))

        i = _skip_ws(text, value_end)
        if i < len(text) and text[i] == ",":
            i = _skip_ws(text, i + 1)
            continue
        if i < len(text) and text[i] == "}":
            return open_brace, members, i
        raise ValueError("expected ',' or '}' in object")


def _separator_before(text: str, members: List[_Member]) -> str:
    """Whitespace that precedes the first member key (newline + indent, or a space)."""
    first = members[0].key_start
    j = first
    while j > 0 and text[j - 1] in _WS:
        j -= 1
    return text[j:first]


def rewrite_webroot(text: str, value: str) -> str:
    """
    Replace the top-level `webroot` value with `value`, leaving every other
    byte of `text` alone. Appends the member when the manifest has none.
    """
    try:
        open_brace, members, close_brace = _scan_members(text)
    except ValueError as e:
        raise ManifestError(f"Cannot rewrite manifest webroot: {e}") from e

    encoded = json.dumps(value, ensure_ascii=False)
    hits = [m for m in members if m.key == "webroot"]
    if hits:
        out = text
        for m in reversed(hits):
            out = out[: m.value_start] + encoded + out[m.value_end :]
        return out

    newline = "\r\n" if "\r\n" in text else "\n"
    if not members:
        return text[: open_brace + 1] + f'{newline}  "webroot": {encoded}{newline}' + text[close_brace:]

    sep = _separator_before(text, members)
    last = members[-1]
    return text[: last.value_end] + f',{sep}"webroot": {encoded}' + text[last.value_end :]


def write_manifest_copy(source: Path, dest: Path, webroot: Optional[str]) -> Path:
    """
    Copy the manifest into the application tree. With `webroot` set, the copy
    points at the packed public directory; without it the file is copied verbatim.
    """
    if webroot is None:
        copy_file(source, dest)
        return dest

    raw = source.read_bytes()
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ManifestError(f"Manifest is not UTF-8: {e}", path=str(source)) from e
    try:
        rewritten = rewrite_webroot(text, webroot)
    except ManifestError as e:
        e.path = str(source)
        raise
    # newline="" keeps the manifest's own line endings
    write_text_atomic(dest, rewritten, newline="")
    return dest
