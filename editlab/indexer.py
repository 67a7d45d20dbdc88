"""
EDITLAB Project Indexer — The Lookup

Read-only view of the target project for the planner:
  - file listing (git-aware, falls back to a directory walk)
  - project type / language / framework from marker files
  - keyword-ranked candidate files for the current request

No model calls here; ranking is deterministic.
"""

from __future__ import annotations

import json
import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Dict, List

from loguru import logger

from editlab.models import ProjectContext

# ---------------------------------------------------------------------------
# Constants & Configuration
# ---------------------------------------------------------------------------

SKIP_DIRS = {
    ".git", ".editlab", ".venv", "venv", "env",
    "node_modules", "target", "dist", "build", "__pycache__",
    ".tox", ".mypy_cache", ".pytest_cache", ".ruff_cache",
    ".next", ".nuxt", "coverage", "vendor",
}

INDEXED_EXTENSIONS = {
    ".py", ".js", ".jsx", ".ts", ".tsx", ".php", ".go", ".rs", ".java",
    ".html", ".css", ".json", ".yaml", ".yml", ".toml", ".md", ".txt",
}

SYMBOL_PATTERNS = {
    ".py": re.compile(r"^(?:async\s+)?(?:class|def)\s+([a-zA-Z_][a-zA-Z0-9_]*)", re.MULTILINE),
    ".js": re.compile(r"(?:class|function)\s+([a-zA-Z_$][a-zA-Z0-9_$]*)"),
    ".ts": re.compile(r"(?:class|function|interface)\s+([a-zA-Z_$][a-zA-Z0-9_$]*)"),
    ".php": re.compile(r"(?:class|function)\s+([a-zA-Z_][a-zA-Z0-9_]*)"),
}
SYMBOL_PATTERNS[".jsx"] = SYMBOL_PATTERNS[".js"]
SYMBOL_PATTERNS[".tsx"] = SYMBOL_PATTERNS[".ts"]

MAX_RELEVANT = 5

# ---------------------------------------------------------------------------
# Data Models
# ---------------------------------------------------------------------------

@dataclass
class FileEntry:
    path: str
    extension: str
    symbols: List[str] = field(default_factory=list)


@dataclass
class ProjectIndex:
    """A deterministic map of the project's files."""
    root: str
    name: str = ""
    project_type: str = "Generic Project"
    language: str = "Unknown"
    framework: str = "None"
    files: Dict[str, FileEntry] = field(default_factory=dict)

    @property
    def total_files(self) -> int:
        return len(self.files)

    def relevant_files(self, request: str, limit: int = MAX_RELEVANT) -> list[str]:
        """Rank files against the request by keyword score, best first."""
        request_lower = request.lower()
        words = {w for w in re.findall(r"[a-z0-9_]+", request_lower) if len(w) > 3}

        scored = []
        for entry in self.files.values():
            score = _match_score(request_lower, words, entry)
            if score > 0:
                scored.append((score, entry.path))

        scored.sort(key=lambda item: (-item[0], item[1]))
        return [path for _, path in scored[:limit]]

    def to_context(self, request: str) -> ProjectContext:
        return ProjectContext(
            name=self.name,
            project_type=self.project_type,
            language=self.language,
            framework=self.framework,
            files=sorted(self.files),
            relevant_files=self.relevant_files(request),
        )


# ---------------------------------------------------------------------------
# Scoring & Detection
# ---------------------------------------------------------------------------

def _match_score(request_lower: str, words: set[str], entry: FileEntry) -> int:
    score = 0
    path = PurePosixPath(entry.path.lower())

    stem = path.stem
    if stem and len(stem) > 2 and stem in request_lower:
        score += 10

    if words and any(sym.lower() in words for sym in entry.symbols):
        score += 5

    if any(len(seg) > 2 and seg in request_lower for seg in path.parent.parts):
        score += 3

    return score


def _read_json(path: Path) -> dict:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.debug(f"[INDEX] Could not read {path.name}: {e}")
        return {}
    return data if isinstance(data, dict) else {}


def _deps(manifest: dict, *keys: str) -> dict:
    deps = {}
    for key in keys:
        section = manifest.get(key)
        if isinstance(section, dict):
            deps.update(section)
    return deps


def detect_project(root: Path, index: ProjectIndex) -> None:
    """Fill type/language/framework from marker files."""
    package_json = root / "package.json"
    if package_json.exists():
        index.language = "JavaScript/TypeScript"
        pkg = _read_json(package_json)
        deps = _deps(pkg, "dependencies", "devDependencies")
        if "react" in deps:
            index.framework = "React"
        if "vue" in deps:
            index.framework = "Vue.js"
        if "next" in deps:
            index.framework, index.project_type = "Next.js", "Web App"
        if "express" in deps:
            index.framework, index.project_type = "Express", "Backend API"

    composer_json = root / "composer.json"
    if composer_json.exists():
        index.language = "PHP"
        composer = _read_json(composer_json)
        deps = _deps(composer, "require", "require-dev")
        if "laravel/framework" in deps:
            index.framework, index.project_type = "Laravel", "Full Stack Framework"

    python_markers = [root / "requirements.txt", root / "pyproject.toml"]
    present = [p for p in python_markers if p.exists()]
    if present:
        index.language = "Python"
        index.framework = "Python Script"
        text = " ".join(p.read_text(encoding="utf-8", errors="ignore").lower() for p in present)
        for marker, name in (("django", "Django"), ("flask", "Flask"), ("fastapi", "FastAPI")):
            if marker in text:
                index.framework = name


def _harvest_symbols(file_path: Path) -> List[str]:
    pattern = SYMBOL_PATTERNS.get(file_path.suffix)
    if pattern is None:
        return []
    try:
        with open(file_path, "r", encoding="utf-8", errors="ignore") as f:
            head = "".join(f.readline() for _ in range(500))
    except OSError as e:
        logger.debug(f"[INDEX] Could not harvest {file_path.name}: {e}")
        return []
    return sorted(set(pattern.findall(head)))[:10]


def _list_files(root: Path) -> list[str]:
    try:
        return subprocess.check_output(
            ["git", "ls-files", "--cached", "--others", "--exclude-standard"],
            cwd=root, text=True, stderr=subprocess.DEVNULL,
        ).splitlines()
    except (subprocess.CalledProcessError, FileNotFoundError):
        logger.debug("[INDEX] Not a git checkout, falling back to manual walk.")
        return [p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_file()]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def build_index(repo_path: Path, max_files: int = 5000) -> ProjectIndex:
    repo_path = repo_path.resolve()
    index = ProjectIndex(root=str(repo_path), name=repo_path.name)

    for rel_path in _list_files(repo_path):
        if SKIP_DIRS.intersection(PurePosixPath(rel_path).parts):
            continue
        full_path = repo_path / rel_path
        if full_path.suffix not in INDEXED_EXTENSIONS:
            continue
        index.files[rel_path] = FileEntry(
            path=rel_path,
            extension=full_path.suffix,
            symbols=_harvest_symbols(full_path),
        )
        if len(index.files) >= max_files:
            logger.warning(f"[INDEX] Stopped at {max_files} files")
            break

    detect_project(repo_path, index)
    logger.info(f"[INDEX] {index.total_files} files mapped ({index.language}/{index.framework})")
    return index
