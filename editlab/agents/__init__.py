"""
EDITLAB Agent Roster

Each agent is:
  - A system prompt
  - A structured input template
  - A parser for the raw model output

Agents are stateless between calls. State lives in the session's
HistoryLog and on disk.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel

from editlab.models import Operation
from editlab.router import Router, RouterResponse


class AgentContext(BaseModel):
    """Shared context passed to every agent invocation."""
    task: str = ""
    repo_path: str = ""
    persona: str = "Senior Architect"
    project_context: str = ""
    operation: Operation | None = None
    current_content: str | None = None
    content: str = ""  # content under review (security agent)
    extra: dict[str, Any] = {}


class BaseAgent(ABC):
    """
    Base class for all EDITLAB agents.

    Subclasses define:
      - role: str — maps to router model
      - system_prompt: str — agent personality + constraints
      - build_messages() — constructs the chat messages
      - parse_response() — extracts the usable text
    """

    role: str = "unknown"
    system_prompt: str = "You are a helpful assistant."
    temperature: float = 0.2

    def __init__(self, router: Router):
        self.router = router

    def run(self, context: AgentContext, **kwargs) -> Any:
        """Execute the agent: build messages → call model → parse."""
        messages = self.build_messages(context)
        kwargs.setdefault("temperature", self.temperature)
        response = self.router.complete(
            role=self.role,
            messages=messages,
            **kwargs,
        )
        return self.parse_response(response, context)

    @abstractmethod
    def build_messages(self, context: AgentContext) -> list[dict[str, str]]:
        """Build the message list for the LLM call."""
        ...

    @abstractmethod
    def parse_response(self, response: RouterResponse, context: AgentContext) -> Any:
        """Parse the LLM response."""
        ...

    def _system_msg(self) -> dict[str, str]:
        return {"role": "system", "content": self.system_prompt}

    def _user_msg(self, content: str) -> dict[str, str]:
        return {"role": "user", "content": content}


def strip_code_fence(text: str) -> str:
    """Remove a single markdown fence wrapping the whole text, if present."""
    stripped = text.strip()
    if not stripped.startswith("```"):
        return text
    lines = stripped.split("\n")
    lines = lines[1:]
    if lines and lines[-1].strip().startswith("```"):
        lines = lines[:-1]
    return "\n".join(lines) + ("\n" if text.endswith("\n") else "")
