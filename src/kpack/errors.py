# File: src/kpack/errors.py
from __future__ import annotations

from typing import Optional


class PackError(Exception):
    """
    Base exception for pack pipeline failures.

    Every pack error is terminal for the current run. `step` is filled in by the
    orchestrator when the error crosses a pipeline stage boundary; `path` names
    the offending file, directory or pattern when one is known.
    """

    kind = "PackError"
    exit_code = 1

    def __init__(self, message: str, *, path: Optional[str] = None, step: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.path = path
        self.step = step

    def __str__(self) -> str:
        head = f"{self.kind}: {self.message}"
        if self.path and self.path not in self.message:
            head += f" ({self.path})"
        return head


class ConfigError(PackError):
    """Invalid or missing tool configuration (kpack.yml)."""

    kind = "ConfigError"
    exit_code = 2


class ManifestError(PackError):
    """Manifest missing, unreadable, or malformed where the pipeline reads it."""

    kind = "ManifestError"
    exit_code = 2


class PatternError(PackError):
    """A packExclude entry cannot be normalized."""

    kind = "PatternError"
    exit_code = 3

    def __init__(self, message: str, *, pattern: object = None, step: Optional[str] = None) -> None:
        super().__init__(message, path=None if pattern is None else repr(pattern), step=step)
        self.pattern = pattern


class FileSystemError(PackError):
    """Copy, read or write failure (permissions, path length, missing files)."""

    kind = "FileSystemError"
    exit_code = 4


class DocumentMergeError(PackError):
    """Existing settings document is not parseable as XML."""

    kind = "DocumentMergeError"
    exit_code = 5


class RuntimeNotFoundError(PackError):
    """Requested runtime package is absent from every runtime package cache."""

    kind = "RuntimeNotFoundError"
    exit_code = 6


__all__ = [
    "PackError",
    "ConfigError",
    "ManifestError",
    "PatternError",
    "FileSystemError",
    "DocumentMergeError",
    "RuntimeNotFoundError",
]
