"""
Batch application of approved Changes.

Per change, in plan order:
  1. back up the current file (modify only) BEFORE touching it
  2. create parent dirs and write the new content
  3. append a HistoryEntry carrying the shared batch id

A failing file is recorded as an ApplyError and the batch moves on.
Files already written stay written; there is no cross-file rollback.
"""

from __future__ import annotations

import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from editlab.errors import FileOperationError
from editlab.governance import PathSafetyValidator, UnsafePathError
from editlab.history import HistoryLog
from editlab.models import Change, HistoryEntry


class ApplyError(FileOperationError):
    """A backup copy or file write failed for one file."""


def now_ms() -> int:
    return int(time.time() * 1000)


_last_batch_ms = 0


def new_batch_id() -> str:
    """One id per user request; taken once before the batch is applied.

    Millisecond based and strictly increasing within the process.
    """
    global _last_batch_ms
    _last_batch_ms = max(now_ms(), _last_batch_ms + 1)
    return str(_last_batch_ms)


def backup_name(relative_path: str, timestamp: int) -> str:
    flattened = relative_path.replace("/", "_").replace("\\", "_")
    return f"{flattened}.{timestamp}.bak"


@dataclass
class ApplyResult:
    batch_id: str
    entries: list[HistoryEntry] = field(default_factory=list)
    failures: list[ApplyError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class BatchApplier:
    def __init__(
        self,
        project_root: Path,
        backup_dir: Path,
        log: HistoryLog,
        validator: PathSafetyValidator | None = None,
    ):
        self.project_root = Path(project_root).resolve()
        self.backup_dir = Path(backup_dir)
        if not self.backup_dir.is_absolute():
            self.backup_dir = self.project_root / self.backup_dir
        self.log = log
        self.validator = validator

    def apply(self, changes: list[Change], batch_id: str | None = None) -> ApplyResult:
        result = ApplyResult(batch_id=batch_id or new_batch_id())

        for change in changes:
            try:
                entry = self._apply_one(change, result.batch_id)
            except ApplyError as e:
                logger.error(f"[APPLY] {e}")
                result.failures.append(e)
                continue

            self.log.append(entry)
            result.entries.append(entry)
            verb = "Created" if entry.action == "create" else "Updated"
            logger.info(f"[APPLY] {verb} {entry.file}")

        logger.info(
            f"[APPLY] Batch {result.batch_id}: "
            f"{len(result.entries)} applied, {len(result.failures)} failed"
        )
        return result

    def _apply_one(self, change: Change, batch_id: str) -> HistoryEntry:
        try:
            target = self._target(change.file)
        except UnsafePathError as e:
            raise ApplyError(change.file, e.message) from e

        timestamp = now_ms()
        action = change.action
        backup_ref: Path | None = None

        if action == "create" and target.is_file():
            # Never overwrite without a way back.
            logger.warning(f"[APPLY] {change.file} already exists; recording as modify")
            action = "modify"
        elif action == "modify" and not target.exists():
            logger.warning(f"[APPLY] {change.file} does not exist; recording as create")
            action = "create"

        if action == "modify":
            try:
                backup_ref, timestamp = self._backup(change.file, target, timestamp)
            except OSError as e:
                raise ApplyError(change.file, f"backup failed: {e}") from e

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(change.content.encode("utf-8"))
        except OSError as e:
            if backup_ref is not None:
                self._restore_after_failed_write(change.file, target, backup_ref)
            raise ApplyError(change.file, f"write failed: {e}") from e

        return HistoryEntry(
            file=change.file,
            action=action,
            backup_ref=backup_ref,
            timestamp=timestamp,
            batch_id=batch_id,
            flagged=change.flagged,
            patched=change.patched,
            risk=change.verdict.risk,
        )

    def _target(self, relative: str) -> Path:
        if self.validator is not None:
            return self.validator.check(relative)
        return self.project_root / relative

    def _backup(self, relative: str, target: Path, timestamp: int) -> tuple[Path, int]:
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        backup_path = self.backup_dir / backup_name(relative, timestamp)
        while backup_path.exists():
            timestamp += 1
            backup_path = self.backup_dir / backup_name(relative, timestamp)
        shutil.copyfile(target, backup_path)
        logger.debug(f"[APPLY] Backed up {relative} → {backup_path.name}")
        return backup_path, timestamp

    @staticmethod
    def _restore_after_failed_write(relative: str, target: Path, backup: Path) -> None:
        try:
            shutil.copyfile(backup, target)
            backup.unlink()
        except OSError as e:
            logger.error(f"[APPLY] Could not restore {relative} after failed write; backup kept at {backup}: {e}")

    def purge_backups(self) -> list[Path]:
        """Delete every backup this session's log references.

        Only call when the session ends: afterwards those entries can
        no longer be undone.
        """
        removed = []
        for path in sorted(self.log.backup_refs()):
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"[APPLY] Could not purge backup {path}: {e}")
                continue
            removed.append(path)
        if removed:
            logger.info(f"[APPLY] Purged {len(removed)} session backup(s)")
        return removed
