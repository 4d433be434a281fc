"""
Reader for the project manifest (project.json).

Only the fields the pack pipeline consumes are modelled: packExclude, webroot,
commands, dependencies and frameworks. Everything else in the document is
ignored here and survives untouched because the application copy is written
from the raw text (see kpack.io.manifest_writer).

Public API
----------
- Manifest                 pydantic model of the consumed fields
- LoadedManifest           model + raw text + project identity
- load_manifest(project_dir, manifest_name) -> LoadedManifest
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from kpack.errors import ManifestError

__all__ = ["Manifest", "LoadedManifest", "load_manifest"]

_BOM = "\ufeff"


class Manifest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    pack_exclude: List[Any] = Field(default_factory=list, alias="packExclude")
    webroot: Optional[str] = None
    commands: Dict[str, str] = Field(default_factory=dict)
    dependencies: Dict[str, Any] = Field(default_factory=dict)
    frameworks: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("pack_exclude", mode="before")
    @classmethod
    def _coerce_pack_exclude(cls, v):
        # Entries are checked one by one when patterns are compiled (PatternError).
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        if isinstance(v, list):
            return v
        raise ValueError("packExclude must be a string or a list of strings")

    @field_validator("commands", "dependencies", "frameworks", mode="before")
    @classmethod
    def _coerce_opaque(cls, v):
        return {} if v is None else v


@dataclass(frozen=True)
class LoadedManifest:
    path: Path
    project_name: str
    text: str
    model: Manifest


def _format_validation(err: ValidationError) -> str:
    parts: List[str] = []
    for e in err.errors():
        loc = ".".join(str(x) for x in e.get("loc", ()))
        parts.append(f"{loc}: {e.get('msg', 'invalid value')}")
    return "; ".join(parts)


def load_manifest(project_dir: Path, manifest_name: str = "project.json") -> LoadedManifest:
    """
    Read and validate the manifest of `project_dir`.

    Raises ManifestError when the file is missing, is not JSON, is not an object,
    or has a consumed field of the wrong shape.
    """
    path = project_dir / manifest_name
    if not path.is_file():
        raise ManifestError("Manifest not found", path=str(path))

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestError(f"Cannot read manifest: {e}", path=str(path)) from e

    try:
        data = json.loads(text[1:] if text.startswith(_BOM) else text)
    except json.JSONDecodeError as e:
        raise ManifestError(f"Manifest is not valid JSON (line {e.lineno}, column {e.colno})", path=str(path)) from e

    if not isinstance(data, dict):
        raise ManifestError("Manifest top level must be a JSON object", path=str(path))

    try:
        model = Manifest.model_validate(data)
    except ValidationError as e:
        raise ManifestError(f"Invalid manifest field(s): {_format_validation(e)}", path=str(path)) from e

    return LoadedManifest(
        path=path,
        project_name=project_dir.resolve().name,
        text=text,
        model=model,
    )
