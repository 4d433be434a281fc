from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from kpack.errors import ConfigError


CONFIG_FILE_NAME = "kpack.yml"


# ──────────────────────────────────────────────────────────────────────────────
# Tool configuration (kpack.yml)
# ──────────────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class PackConfig:
    """
    Tool-level settings. Every field has a default so a project without
    kpack.yml packs with the stock layout.
    """
    manifest_name: str = "project.json"
    packages_dir_name: str = "packages"
    public_out: str = "wwwroot"
    settings_document: str = "web.config"
    default_excludes: Tuple[str, ...] = ("bin", "obj")
    follow_symlinks: bool = False
    source: Optional[Path] = None


# ──────────────────────────────────────────────────────────────────────────────
# Per-run options (resolved by the CLI; the core never reads the environment)
# ──────────────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class PackOptions:
    project_dir: Path
    out_dir: Path
    webroot: Optional[str] = None
    public_out: Optional[str] = None
    runtime: Optional[str] = None
    packages_dir: Optional[Path] = None
    runtime_homes: Tuple[Path, ...] = field(default_factory=tuple)


# ──────────────────────────────────────────────────────────────────────────────
# YAML helpers
# ──────────────────────────────────────────────────────────────────────────────
def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML: {e}", path=str(path)) from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file: {e}", path=str(path)) from e
    if not isinstance(data, dict):
        raise ConfigError("YAML file is not a mapping", path=str(path))
    return data


def _req_name(d: Dict[str, Any], key: str, default: str, path: Path) -> str:
    v = d.get(key, default)
    if not isinstance(v, str) or not v.strip():
        raise ConfigError(f"Missing/invalid string for '{key}'", path=str(path))
    return v.strip()


def _get_bool(d: Dict[str, Any], key: str, default: bool, path: Path) -> bool:
    v = d.get(key, default)
    if not isinstance(v, bool):
        raise ConfigError(f"'{key}' must be true or false", path=str(path))
    return v


def _get_names(d: Dict[str, Any], key: str, default: Tuple[str, ...], path: Path) -> Tuple[str, ...]:
    v = d.get(key)
    if v is None:
        return default
    if not isinstance(v, list) or not all(isinstance(x, str) and x.strip() for x in v):
        raise ConfigError(f"'{key}' must be a list of names", path=str(path))
    return tuple(x.strip() for x in v)


def resolve_config_path(project_dir: Path, explicit: Optional[Path] = None) -> Optional[Path]:
    """
    Explicit --config wins and must exist; otherwise <project>/kpack.yml when present.
    """
    if explicit is not None:
        if not explicit.is_file():
            raise ConfigError("Config file not found", path=str(explicit))
        return explicit
    cand = project_dir / CONFIG_FILE_NAME
    return cand if cand.is_file() else None


def load_pack_config(project_dir: Path, explicit: Optional[Path] = None) -> PackConfig:
    """
    Load kpack.yml (if any) over the built-in defaults and return a frozen PackConfig.
    Unknown keys are ignored.
    """
    path = resolve_config_path(project_dir, explicit)
    if path is None:
        return PackConfig()

    raw = _read_yaml(path)
    defaults = PackConfig()
    return PackConfig(
        manifest_name=_req_name(raw, "manifest_name", defaults.manifest_name, path),
        packages_dir_name=_req_name(raw, "packages_dir_name", defaults.packages_dir_name, path),
        public_out=_req_name(raw, "public_out", defaults.public_out, path),
        settings_document=_req_name(raw, "settings_document", defaults.settings_document, path),
        default_excludes=_get_names(raw, "default_excludes", defaults.default_excludes, path),
        follow_symlinks=_get_bool(raw, "follow_symlinks", defaults.follow_symlinks, path),
        source=path.resolve(),
    )


__all__ = ["CONFIG_FILE_NAME", "PackConfig", "PackOptions", "load_pack_config", "resolve_config_path"]
