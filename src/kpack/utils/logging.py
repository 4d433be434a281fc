"""
Console output for pack runs.

Lines carry the pipeline step that produced them, so a trace reads as
`[kpack ✅ copy-files] copied 12 application file(s), 3 public file(s)`.
Failures go to stderr; `debug` lines only appear with --verbose / KRE_TRACE.
"""

from __future__ import annotations

import sys
from typing import Dict, Optional

STEP_ICONS: Dict[str, str] = {
    "configure": "🛠️",
    "load-manifest": "📄",
    "compile-patterns": "🧩",
    "partition": "🗂️",
    "copy-files": "📁",
    "write-global": "🌐",
    "write-manifest": "📝",
    "write-settings": "⚙️",
    "write-launchers": "🚀",
    "bundle-runtime": "📦",
}


def _one_line(s: str, max_len: int = 160) -> str:
    s = " ".join((s or "").split())
    return s[:max_len] + ("…" if len(s) > max_len else "")


class ConsoleLog:
    def __init__(self, tag: str = "kpack", *, verbose: bool = False):
        self.tag = tag
        self.verbose = verbose
        self.current: Optional[str] = None

    def _label(self, mark: str, step: Optional[str] = None) -> str:
        step = step or self.current
        return f"[{self.tag} {mark} {step}]" if step else f"[{self.tag} {mark}]"

    # -- step scope -------------------------------------------------------------
    def enter(self, step: str) -> None:
        self.current = step
        self.debug(f"{STEP_ICONS.get(step, '▶')} begin")

    def leave(self) -> None:
        self.current = None

    # -- run boundaries ---------------------------------------------------------
    def packing(self, project_dir, out_dir) -> None:
        print(f"[{self.tag} 📦] packing {project_dir} → {out_dir}")

    def complete(self, out_dir, app_files: int, public_files: int) -> None:
        print(f"[{self.tag} 🏁] pack complete: {out_dir} ({app_files} application, {public_files} public file(s))")

    def failed(self, step: str, err: Exception) -> None:
        print(f"{self._label('❌', step)} pack failed at {step}: {_one_line(str(err), max_len=2000)}", file=sys.stderr)

    # -- messages ---------------------------------------------------------------
    def info(self, msg: str):
        print(f"{self._label('✅')} {_one_line(msg)}")

    def warn(self, msg: str):
        print(f"{self._label('⚠️')} {_one_line(msg)}")

    def debug(self, msg: str):
        if self.verbose:
            print(f"{self._label('🔎')} {_one_line(msg, max_len=400)}")


__all__ = ["ConsoleLog", "STEP_ICONS"]
