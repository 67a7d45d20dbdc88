"""
EDITLAB Governance: path boundaries.

Every planned file goes through PathSafetyValidator before any oracle
work is spent on it. A path is writable only if it resolves inside the
project root and none of its segments is denylisted.
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import Iterable

from loguru import logger

from editlab.errors import FileOperationError

DEFAULT_DENIED_SEGMENTS = ("node_modules", ".git", ".editlab")


class UnsafePathError(FileOperationError):
    """Raised when a candidate path escapes the project or hits a denied zone."""


class PathSafetyValidator:
    """
    Decides whether a candidate path may be written.

    denied_segments match whole path components (".git" blocks
    ".git/config" but not ".github/workflows"). protected_paths are
    project-relative prefixes.
    """

    def __init__(
        self,
        project_root: Path,
        denied_segments: Iterable[str] = DEFAULT_DENIED_SEGMENTS,
        protected_paths: Iterable[str] = (),
    ):
        self.project_root = Path(project_root).resolve()
        self.denied_segments = frozenset(denied_segments)
        self.protected_paths = [
            PurePosixPath(p.strip("/")) for p in protected_paths if p.strip("/")
        ]

    def resolve(self, candidate: str, project_root: Path | None = None) -> Path:
        root = Path(project_root).resolve() if project_root else self.project_root
        return (root / candidate).resolve()

    def reason(self, candidate: str, project_root: Path | None = None) -> str | None:
        """Return why the path is unsafe, or None if it is safe."""
        if not candidate or not candidate.strip():
            return "empty path"

        root = Path(project_root).resolve() if project_root else self.project_root
        try:
            resolved = self.resolve(candidate, root)
        except (ValueError, OSError) as e:
            return f"invalid path ({e})"

        if resolved == root or not resolved.is_relative_to(root):
            return "resolves outside the project root"

        relative = PurePosixPath(resolved.relative_to(root).as_posix())
        denied = self.denied_segments.intersection(relative.parts)
        if denied:
            return f"inside denied directory '{sorted(denied)[0]}'"

        for protected in self.protected_paths:
            if relative == protected or relative.is_relative_to(protected):
                return f"inside protected path '{protected}'"

        return None

    def is_safe(self, candidate: str, project_root: Path | None = None) -> bool:
        return self.reason(candidate, project_root) is None

    def check(self, candidate: str) -> Path:
        """Return the resolved path, or raise UnsafePathError."""
        why = self.reason(candidate)
        if why:
            logger.warning(f"[GOVERNANCE] Rejected {candidate!r}: {why}")
            raise UnsafePathError(candidate, why)
        return self.resolve(candidate)
