from __future__ import annotations

import json
import os
import shutil
from pathlib import Path
from typing import Any


def ensure_dir(path: Path) -> None:
    """
    Create the directory if it doesn't exist.
    """
    path.mkdir(parents=True, exist_ok=True)


def write_text_atomic(path: Path, text: str, *, newline: str | None = None) -> None:
    """
    Text writer used for every generated artifact:
      1) Write to a temporary sibling file
      2) Atomic replace onto `path`

    `newline=None` translates "\\n" to the host line ending; pass "\\n" to force LF.
    The temporary file is removed if the replace fails, and the error propagates.
    """
    ensure_dir(path.parent)
    tmp = path.with_name(path.name + ".tmp")

    with tmp.open("w", encoding="utf-8", newline=newline) as f:
        f.write(text)

    try:
        os.replace(tmp, path)
    except OSError:
        if tmp.exists():
            tmp.unlink()
        raise


def write_json_atomic(path: Path, data: Any, *, trailing_newline: bool = False) -> None:
    """
    Serialize `data` with two-space indentation, keeping the caller's key order.
    """
    payload = json.dumps(data, ensure_ascii=False, indent=2)
    if trailing_newline:
        payload += "\n"
    write_text_atomic(path, payload)


def copy_file(src: Path, dst: Path) -> None:
    """
    Byte-for-byte copy of `src` to `dst`, creating parent directories.
    """
    ensure_dir(dst.parent)
    shutil.copyfile(src, dst)
