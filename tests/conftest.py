from __future__ import annotations

from pathlib import Path

import pytest

from editlab.config_loader import EditLabConfig
from editlab.controller import Controller
from editlab.models import Operation, ProjectContext
from editlab.oracle import ContentOracle, Scanner


class StubOracle(ContentOracle):
    """Deterministic ContentOracle: canned plan, per-file bodies."""

    def __init__(self, plan_output: str = "[]", contents: dict[str, str] | None = None, failing=()):
        self.plan_output = plan_output
        self.contents = contents or {}
        self.failing = set(failing)
        self.plan_calls: list[str] = []
        self.synth_calls: list[tuple[str, str | None]] = []

    def produce_plan(self, task: str, project_context: ProjectContext) -> str:
        self.plan_calls.append(task)
        return self.plan_output

    def synthesize_content(self, operation: Operation, current_content, task, on_chunk=None) -> str:
        self.synth_calls.append((operation.file, current_content))
        if operation.file in self.failing:
            raise RuntimeError("rate limited")
        body = self.contents.get(operation.file, f"content for {operation.file}\n")
        if on_chunk:
            on_chunk(body)
        return body


class StubScanner(Scanner):
    """Deterministic Scanner: verdict per content, SAFE by default."""

    def __init__(self, verdicts: dict[str, str] | None = None, patched: str = "PATCHED\n", fail_scan: bool = False):
        self.verdicts = verdicts or {}
        self.patched = patched
        self.fail_scan = fail_scan
        self.scanned: list[str] = []
        self.patch_calls: list[str] = []

    def scan(self, content: str) -> str:
        self.scanned.append(content)
        if self.fail_scan:
            raise RuntimeError("scanner offline")
        return self.verdicts.get(content, "SAFE")

    def patch(self, content: str) -> str:
        self.patch_calls.append(content)
        return self.patched


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def make_controller(project: Path):
    def _make(oracle, scanner=None, confirm=lambda prompt: True, config=None, **kwargs):
        kwargs.setdefault("context_provider", lambda task: ProjectContext(name="project"))
        return Controller(
            repo_path=project,
            config=config or EditLabConfig(),
            oracle=oracle,
            scanner=scanner or StubScanner(),
            confirm=confirm,
            audit=False,
            **kwargs,
        )

    return _make
