from __future__ import annotations

import stat
from pathlib import Path
from typing import List, Mapping, Optional

from kpack.core.writer import write_text_atomic

HOST_ENTRY_POINT = "Microsoft.Framework.ApplicationHost"

_CMD_TEMPLATE = (
    "\n"
    '@"{launcher_dir}klr.exe" --appbase "%~dp0approot\\src\\{project}" '
    "{entry_point} {command} %*\n"
)

_SH_TEMPLATE = """#!/bin/bash

SOURCE="${{BASH_SOURCE[0]}}"
while [ -h "$SOURCE" ]; do # resolve $SOURCE until the file is no longer a symlink
  DIR="$( cd -P "$( dirname "$SOURCE" )" && pwd )"
  SOURCE="$(readlink "$SOURCE")"
  [[ $SOURCE != /* ]] && SOURCE="$DIR/$SOURCE" # if $SOURCE was a relative symlink, we need to resolve it relative to the path where the symlink file was located
done
DIR="$( cd -P "$( dirname "$SOURCE" )" && pwd )"

export SET KRE_APPBASE="$DIR/approot/src/{project}"

"{launcher_dir}klr" {entry_point} {command} "$@\""""


def cmd_launcher_dir(runtime_name: Optional[str]) -> str:
    return f"%~dp0approot\\packages\\{runtime_name}\\bin\\" if runtime_name else ""


def sh_launcher_dir(runtime_name: Optional[str]) -> str:
    return f"$DIR/approot/packages/{runtime_name}/bin/" if runtime_name else ""


def render_cmd(project: str, command: str, launcher_dir: str = "") -> str:
    """Windows batch launcher. Uses "\\n"; the writer applies host line endings."""
    return _CMD_TEMPLATE.format(
        launcher_dir=launcher_dir, project=project, entry_point=HOST_ENTRY_POINT, command=command
    )


def render_sh(project: str, command: str, launcher_dir: str = "") -> str:
    """POSIX launcher. Always LF, no trailing newline."""
    return _SH_TEMPLATE.format(
        launcher_dir=launcher_dir, project=project, entry_point=HOST_ENTRY_POINT, command=command
    )


def write_launchers(
    out_dir: Path,
    project: str,
    commands: Mapping[str, str],
    runtime_name: Optional[str] = None,
) -> List[Path]:
    """
    Write <command>.cmd and <command>.sh for every manifest command, in
    manifest order. The host resolves the command name against the manifest.
    """
    written: List[Path] = []
    for name in commands:
        cmd_path = out_dir / f"{name}.cmd"
        write_text_atomic(cmd_path, render_cmd(project, name, cmd_launcher_dir(runtime_name)))

        sh_path = out_dir / f"{name}.sh"
        write_text_atomic(sh_path, render_sh(project, name, sh_launcher_dir(runtime_name)), newline="\n")
        mode = sh_path.stat().st_mode
        sh_path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

        written.extend([cmd_path, sh_path])
    return written


__all__ = [
    "HOST_ENTRY_POINT",
    "render_cmd",
    "render_sh",
    "cmd_launcher_dir",
    "sh_launcher_dir",
    "write_launchers",
]
