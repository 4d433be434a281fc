from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

from kpack.core.writer import write_json_atomic

GLOBAL_FILE_NAME = "global.json"


def build_global(packages_name: str) -> Dict[str, Any]:
    # Per-application dependencies stay in the application manifest.
    return {"dependencies": {}, "packages": packages_name}


def write_global_json(approot: Path, packages_name: str = "packages") -> Path:
    """
    Write approot/global.json. Key order is fixed; consumers diff this file.
    """
    path = approot / GLOBAL_FILE_NAME
    write_json_atomic(path, build_global(packages_name))
    return path
