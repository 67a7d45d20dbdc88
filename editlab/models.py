"""
Data model for one edit request and the session history it leaves behind.

Operation -> Change -> HistoryEntry. Operations and Changes live only
for the duration of a request; HistoryEntries live in the session's
HistoryLog until they are undone.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

Action = Literal["create", "modify"]


class Operation(BaseModel):
    """One planned file mutation, before any content exists."""
    file: str = Field(..., min_length=1, description="Path relative to the project root")
    action: Action
    explanation: str = ""


class Verdict(BaseModel):
    """Result of a security scan. scanned=False means the scan itself failed."""
    safe: bool
    risk: str | None = None
    scanned: bool = True


class Change(BaseModel):
    """An Operation with synthesized content and a security verdict."""
    file: str
    action: Action
    explanation: str = ""
    content: str
    verdict: Verdict
    patched: bool = False

    @property
    def flagged(self) -> bool:
        """Unsafe content going to disk as generated. An accepted patch clears it."""
        return not self.verdict.safe and not self.patched

    @classmethod
    def from_operation(cls, op: Operation, content: str, verdict: Verdict) -> "Change":
        return cls(
            file=op.file,
            action=op.action,
            explanation=op.explanation,
            content=content,
            verdict=verdict,
        )


class HistoryEntry(BaseModel):
    """The undo record for one applied file mutation."""
    file: str
    action: Action
    backup_ref: Path | None = None
    timestamp: int  # epoch milliseconds
    batch_id: str | None = None
    flagged: bool = False
    patched: bool = False
    risk: str | None = None


class ProjectContext(BaseModel):
    """Read-only project lookup handed to the planner."""
    name: str = ""
    project_type: str = "Generic Project"
    language: str = "Unknown"
    framework: str = "None"
    files: list[str] = Field(default_factory=list)
    relevant_files: list[str] = Field(default_factory=list)
    summary: str = ""

    def to_prompt(self, max_files: int = 300) -> str:
        """Render the minimal context the planner needs."""
        lines = [
            f"Project: {self.name or '(unnamed)'}",
            f"Type: {self.project_type} | Language: {self.language} | Framework: {self.framework}",
        ]
        if self.summary:
            lines.append(f"Summary: {self.summary}")
        if self.relevant_files:
            lines.append(f"Relevant files for this request: {', '.join(self.relevant_files)}")
        listing = self.files[:max_files]
        more = f" (+{len(self.files) - max_files} more)" if len(self.files) > max_files else ""
        lines.append(f"All files: {', '.join(listing)}{more}")
        return "\n".join(lines)
