"""
Session history and undo.

HistoryLog is an explicit, per-session object: BatchApplier appends
to it, UndoManager removes from it. Nothing else touches it.

Undo works on whole batches. The most recent entry's batch id selects
every entry applied together with it; those entries leave the log
first, then they are reverted in reverse apply order. A failure on
one file is recorded and the rest of the batch is still attempted.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator

from loguru import logger

from editlab.errors import FileOperationError
from editlab.models import HistoryEntry


class UndoError(FileOperationError):
    """Restoring a backup or deleting a created file failed."""


class HistoryLog:
    """Append-only (except for undo) record of applied mutations, in apply order."""

    def __init__(self) -> None:
        self._entries: list[HistoryEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(list(self._entries))

    @property
    def entries(self) -> list[HistoryEntry]:
        return list(self._entries)

    def append(self, entry: HistoryEntry) -> None:
        self._entries.append(entry)

    def last(self) -> HistoryEntry | None:
        return self._entries[-1] if self._entries else None

    def batch(self, batch_id: str) -> list[HistoryEntry]:
        return [e for e in self._entries if e.batch_id == batch_id]

    def pop_batch(self, batch_id: str) -> list[HistoryEntry]:
        """Remove and return every entry of a batch, in apply order."""
        taken = self.batch(batch_id)
        self._entries = [e for e in self._entries if e.batch_id != batch_id]
        return taken

    def pop_last(self) -> HistoryEntry:
        return self._entries.pop()

    def backup_refs(self) -> set[Path]:
        return {e.backup_ref for e in self._entries if e.backup_ref is not None}


@dataclass
class UndoResult:
    batch_id: str | None = None
    reverted: list[HistoryEntry] = field(default_factory=list)
    failures: list[UndoError] = field(default_factory=list)

    @property
    def nothing_to_undo(self) -> bool:
        return not self.reverted and not self.failures

    @property
    def ok(self) -> bool:
        return not self.failures


class UndoManager:
    def __init__(self, project_root: Path):
        self.project_root = Path(project_root).resolve()

    def undo_last_batch(self, log: HistoryLog) -> UndoResult:
        last = log.last()
        if last is None:
            logger.info("[UNDO] Nothing to undo")
            return UndoResult()

        # Entries leave the log before any file is touched.
        if last.batch_id is not None:
            to_undo = log.pop_batch(last.batch_id)
        else:
            to_undo = [log.pop_last()]

        result = UndoResult(batch_id=last.batch_id)
        logger.info(f"[UNDO] Reverting {len(to_undo)} change(s) from batch {last.batch_id}")

        for entry in reversed(to_undo):
            try:
                self._revert(entry)
            except UndoError as e:
                logger.error(f"[UNDO] {e}")
                result.failures.append(e)
            except OSError as e:
                logger.error(f"[UNDO] {entry.file}: {e}")
                result.failures.append(UndoError(entry.file, str(e)))
            else:
                result.reverted.append(entry)

        return result

    def _revert(self, entry: HistoryEntry) -> None:
        target = self.project_root / entry.file

        if entry.action == "create":
            if target.is_file() or target.is_symlink():
                target.unlink()
                logger.info(f"[UNDO] Removed {entry.file}")
                self._prune_empty_parents(target)
            elif target.exists():
                raise UndoError(entry.file, "created path is no longer a regular file")
            else:
                logger.warning(f"[UNDO] {entry.file} already gone")
            return

        backup = entry.backup_ref
        if backup is None or not backup.is_file():
            raise UndoError(entry.file, f"backup missing: {backup}")

        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(backup, target)
        backup.unlink()
        logger.info(f"[UNDO] Restored {entry.file}")

    def _prune_empty_parents(self, path: Path) -> None:
        """Remove directories left empty by a deleted file, stopping at the project root."""
        parent = path.parent
        while parent != self.project_root and parent.is_relative_to(self.project_root):
            try:
                parent.rmdir()
            except OSError:
                break
            logger.debug(f"[UNDO] Removed empty directory {parent.relative_to(self.project_root)}")
            parent = parent.parent
