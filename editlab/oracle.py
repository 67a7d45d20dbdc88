"""
Oracle capabilities.

The pipeline talks to the text generator through two narrow
interfaces so tests can drop in deterministic stubs without
reproducing any prompt text:

  ContentOracle  produce_plan / synthesize_content
  Scanner        scan / patch

RouterOracle is the LLM-backed implementation of both, built from
the agents in editlab.agents.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable

from editlab.agents import AgentContext
from editlab.agents.planner import PlannerAgent
from editlab.agents.security import SecurityAgent
from editlab.agents.synthesizer import SynthesizerAgent
from editlab.models import Operation, ProjectContext
from editlab.router import Router

ChunkCallback = Callable[[str], None]


class ContentOracle(ABC):
    """Produces edit plans and file bodies."""

    @abstractmethod
    def produce_plan(self, task: str, project_context: ProjectContext) -> str:
        """Return raw oracle text that should contain a JSON plan."""

    @abstractmethod
    def synthesize_content(
        self,
        operation: Operation,
        current_content: str | None,
        task: str,
        on_chunk: ChunkCallback | None = None,
    ) -> str:
        """Return the complete new body for one file."""


class Scanner(ABC):
    """Flags risky content and proposes patched versions."""

    @abstractmethod
    def scan(self, content: str) -> str:
        """Return the raw verdict: the SAFE sentinel or a one-line risk."""

    @abstractmethod
    def patch(self, content: str) -> str:
        """Return a rewritten version of content with the risk removed."""


class RouterOracle(ContentOracle, Scanner):
    """Both capabilities, backed by LiteLLM through the Router."""

    def __init__(self, router: Router, repo_path: str = "", persona: str = "Senior Architect"):
        self.router = router
        self.repo_path = repo_path
        self.persona = persona
        self.planner = PlannerAgent(router)
        self.synthesizer = SynthesizerAgent(router)
        self.security = SecurityAgent(router)

    def produce_plan(self, task: str, project_context: ProjectContext) -> str:
        context = AgentContext(
            task=task,
            repo_path=self.repo_path,
            persona=self.persona,
            project_context=project_context.to_prompt(),
        )
        return self.planner.run(context)

    def synthesize_content(
        self,
        operation: Operation,
        current_content: str | None,
        task: str,
        on_chunk: ChunkCallback | None = None,
    ) -> str:
        context = AgentContext(
            task=task,
            repo_path=self.repo_path,
            operation=operation,
            current_content=current_content,
        )
        return self.synthesizer.run(context, on_chunk=on_chunk)

    def scan(self, content: str) -> str:
        return self.security.scan(content)

    def patch(self, content: str) -> str:
        return self.security.patch(content)
