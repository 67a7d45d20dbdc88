"""
EDITLAB Controller — The Conductor

It is NOT smart. It is deterministic.

Pipeline per request:
  Plan → { Path check → Synthesize → Security gate (→ Patch) }* → Confirm → Apply

Undo runs the other way, one batch at a time.

Operations are processed strictly one after another. Nothing touches
the disk before the confirmation step, so declining there discards the
whole request with zero side effects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Literal

from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm
from rich.table import Table

from editlab.applier import ApplyResult, BatchApplier, new_batch_id
from editlab.audit_logger import AuditLogger
from editlab.config_loader import EditLabConfig, load_config
from editlab.errors import FileOperationError
from editlab.event_bus import EventBus
from editlab.gate import PatchError, SecurityGate
from editlab.governance import PathSafetyValidator, UnsafePathError
from editlab.history import HistoryLog, UndoManager, UndoResult
from editlab.indexer import build_index
from editlab.models import Change, HistoryEntry, Operation, ProjectContext
from editlab.oracle import ChunkCallback, ContentOracle, RouterOracle, Scanner
from editlab.planning import PlanGenerator, PlanParseError
from editlab.router import OracleError, Router
from editlab.synthesis import ContentSynthesizer, SynthesisError


class BlockedChangeError(FileOperationError):
    """An unsafe, unpatched change refused under the strict security policy."""


RequestStatus = Literal["plan_failed", "no_changes", "discarded", "applied", "partial"]


@dataclass
class RequestResult:
    task: str
    status: RequestStatus = "no_changes"
    plan: list[Operation] = field(default_factory=list)
    changes: list[Change] = field(default_factory=list)
    skipped: list[FileOperationError] = field(default_factory=list)
    applied: ApplyResult | None = None
    error: str | None = None
    raw_plan_output: str | None = None


class Controller:
    """
    One interactive session against one project.

    The session owns its HistoryLog; undo only ever sees what this
    session applied.
    """

    def __init__(
        self,
        repo_path: Path,
        config: EditLabConfig | None = None,
        oracle: ContentOracle | None = None,
        scanner: Scanner | None = None,
        confirm: Callable[[str], bool] | None = None,
        auto_approve: bool = False,
        log: HistoryLog | None = None,
        bus: EventBus | None = None,
        context_provider: Callable[[str], ProjectContext] | None = None,
        on_chunk: ChunkCallback | None = None,
        console: Console | None = None,
        audit: bool = True,
    ):
        self.repo_path = Path(repo_path).resolve()
        self.config = config or load_config(self.repo_path)
        self.auto_approve = auto_approve
        self.console = console
        self._confirm_fn = confirm or (lambda prompt: Confirm.ask(f"[bold]{prompt}[/]", default=True))
        self._context_provider = context_provider or self._index_context

        # Real router only when no stub is injected
        self.router: Router | None = None
        if oracle is None or scanner is None:
            self.router = Router(self.config)
            backing = RouterOracle(self.router, str(self.repo_path), self.config.persona)
            oracle = oracle or backing
            scanner = scanner or backing
        self.oracle = oracle
        self.scanner = scanner

        # Pipeline components
        self.validator = PathSafetyValidator(
            self.repo_path,
            denied_segments=self.config.boundaries.denied_segments,
            protected_paths=self.config.boundaries.protected_paths,
        )
        self.planner = PlanGenerator(oracle)
        self.synthesizer = ContentSynthesizer(oracle, on_chunk=on_chunk)
        self.gate = SecurityGate(scanner)

        # Session state
        self.log = log if log is not None else HistoryLog()
        self.applier = BatchApplier(
            self.repo_path,
            self.repo_path / self.config.workspace.backup_dir,
            self.log,
            validator=self.validator,
        )
        self.undo_manager = UndoManager(self.repo_path)

        self.bus = bus or EventBus()
        self.audit: AuditLogger | None = None
        if audit:
            self.audit = AuditLogger(self.repo_path / self.config.workspace.log_dir / "events.jsonl", self.bus)

    # -----------------------------------------------------------------------
    # Session API
    # -----------------------------------------------------------------------

    @property
    def persona(self) -> str:
        return self.config.persona

    def set_persona(self, persona: str) -> None:
        self.config.persona = persona
        if isinstance(self.oracle, RouterOracle):
            self.oracle.persona = persona
        logger.info(f"[CONTROLLER] Persona switched to {persona!r}")

    def process_request(self, task: str) -> RequestResult:
        """Run the full pipeline for one natural-language request."""
        result = RequestResult(task=task)

        # ── 1. Plan ──
        self._print("\n[bold magenta]🧭 Planning...[/]")
        context = self._lookup_context(task)
        try:
            result.plan = self.planner.generate_plan(task, context)
        except PlanParseError as e:
            result.status = "plan_failed"
            result.error = str(e)
            result.raw_plan_output = e.raw_output
            self._emit("plan_failed", {"error": str(e)})
            return result
        except OracleError as e:
            logger.error(f"[CONTROLLER] Planner unavailable: {e}")
            result.status = "plan_failed"
            result.error = str(e)
            self._emit("plan_failed", {"error": str(e)})
            return result

        self._emit("plan_created", {"operations": [op.model_dump() for op in result.plan]})
        self._print_plan(result.plan)

        # ── 2. Per-file synthesis + gate, strictly sequential ──
        for op in result.plan:
            outcome = self._prepare_change(op, task)
            if isinstance(outcome, FileOperationError):
                result.skipped.append(outcome)
                self._emit("operation_skipped", {"file": op.file, "reason": outcome.message})
                continue
            result.changes.append(outcome)
            self._emit("change_ready", {
                "file": outcome.file,
                "action": outcome.action,
                "flagged": outcome.flagged,
                "patched": outcome.patched,
            })

        if not result.changes:
            logger.warning("[CONTROLLER] No valid changes to apply")
            result.status = "no_changes"
            return result

        # ── 3. Confirm ──
        self._print_preview(result.changes)
        if self.config.intervention.confirm_before_apply:
            if not self._confirm(f"Apply all {len(result.changes)} change(s)?"):
                result.status = "discarded"
                self._emit("batch_discarded", {"files": [c.file for c in result.changes]})
                return result

        # ── 4. Apply ──
        result.applied = self.applier.apply(result.changes, new_batch_id())
        result.status = "applied" if result.applied.ok else "partial"
        self._emit("batch_applied", {
            "batch_id": result.applied.batch_id,
            "files": [e.file for e in result.applied.entries],
            "failed": [f.file for f in result.applied.failures],
        })
        return result

    def undo(self) -> UndoResult:
        result = self.undo_manager.undo_last_batch(self.log)
        if not result.nothing_to_undo:
            self._emit("batch_reverted", {
                "batch_id": result.batch_id,
                "files": [e.file for e in result.reverted],
                "failed": [f.file for f in result.failures],
            })
        return result

    def history(self) -> list[HistoryEntry]:
        return self.log.entries

    def close(self) -> None:
        """End the session. Optionally drops the session's backups."""
        if self.config.workspace.purge_backups_on_exit:
            self.applier.purge_backups()
        # Trailing events only join a log that a batch already started.
        if self.audit is not None and self.audit.written:
            self.audit.flush()
        if self.router is not None:
            logger.debug(f"[CONTROLLER] Session usage: {self.router.budget.summary()}")

    # -----------------------------------------------------------------------
    # Pipeline steps
    # -----------------------------------------------------------------------

    def _prepare_change(self, op: Operation, task: str) -> Change | FileOperationError:
        why = self.validator.reason(op.file)
        if why:
            logger.warning(f"[CONTROLLER] Skipping unsafe path {op.file}: {why}")
            return UnsafePathError(op.file, why)

        self._print(f"\n[bold]📄 Generating [cyan]{op.file}[/]...[/]")

        target = self.validator.resolve(op.file)
        current: str | None = None
        if op.action == "modify" and target.is_file():
            try:
                current = target.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                return SynthesisError(op.file, f"cannot read current content: {e}")

        try:
            content = self.synthesizer.synthesize(op, current, task)
        except SynthesisError as e:
            return e

        verdict = self.gate.evaluate(content)
        change = Change.from_operation(op, content, verdict)

        if not verdict.safe:
            self._print(f"[bold red]⚠ Security alert in {op.file}: {verdict.risk}[/]")

        if not verdict.safe and verdict.scanned and self.config.security.offer_patch:
            if self._confirm(f"Generate a secure patch for {op.file}?"):
                try:
                    change.content = self.gate.request_patch(content)
                    change.patched = True
                except PatchError as e:
                    logger.warning(f"[CONTROLLER] {op.file}: {e}; keeping original content")

        if self.config.security.strict and change.flagged:
            return BlockedChangeError(op.file, f"blocked by strict security policy: {verdict.risk}")

        return change

    def _index_context(self, task: str) -> ProjectContext:
        return build_index(self.repo_path).to_context(task)

    def _lookup_context(self, task: str) -> ProjectContext:
        """Project lookup is best effort; planning goes ahead without it."""
        try:
            return self._context_provider(task)
        except Exception as e:
            logger.warning(f"[CONTROLLER] Project lookup failed, planning without context: {e}")
            return ProjectContext(name=self.repo_path.name)

    # -----------------------------------------------------------------------
    # Display Helpers
    # -----------------------------------------------------------------------

    def _print(self, message: str) -> None:
        if self.console is not None:
            self.console.print(message)

    def _print_plan(self, plan: list[Operation]) -> None:
        if self.console is None:
            return
        table = Table(title="Edit Plan", border_style="magenta")
        table.add_column("#", style="dim")
        table.add_column("Action")
        table.add_column("File")
        table.add_column("Why")
        for i, op in enumerate(plan, 1):
            table.add_row(str(i), op.action, op.file, op.explanation)
        self.console.print(table)

    def _print_preview(self, changes: list[Change]) -> None:
        if self.console is None:
            return
        n = self.config.limits.preview_lines
        for change in changes:
            head = "\n".join(change.content.split("\n")[:n]) or "(empty)"
            marks = []
            if change.patched:
                marks.append("[green]patched[/]")
            if change.flagged:
                marks.append(f"[red]flagged: {change.verdict.risk}[/]")
            subtitle = " | ".join(marks) if marks else None
            self.console.print(Panel(
                head,
                title=f"{change.action.upper()} {change.file}",
                subtitle=subtitle,
                border_style="red" if change.flagged else "cyan",
            ))

    # -----------------------------------------------------------------------
    # Utilities
    # -----------------------------------------------------------------------

    def _confirm(self, prompt: str) -> bool:
        if self.auto_approve:
            return True
        return self._confirm_fn(prompt)

    def _emit(self, event_type: str, payload: dict) -> None:
        self.bus.emit(event_type, "controller", payload)
