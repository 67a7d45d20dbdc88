"""
🧭 Compass — The Planner

Reads the request and the project map.
Decides which files to create or modify.
Never writes file content. Only plans.
"""

from __future__ import annotations

from loguru import logger

from editlab.agents import AgentContext, BaseAgent
from editlab.router import RouterResponse


class PlannerAgent(BaseAgent):
    role = "planner"
    temperature = 0.1

    system_prompt = """You are Compass, the planning engine inside EDITLAB.

Your job is to take a change request and decide which files must be created or modified.

You MUST respond with a JSON array ONLY. No markdown, no commentary.

Output schema:
[
  {
    "file": "relative/path/to/file",
    "action": "create|modify",
    "explanation": "Brief reason for this change"
  }
]

Rules:
- Paths are relative to the project root. Never use absolute paths or "..".
- Only "create" and "modify" are valid actions.
- Use the technology and conventions of the detected project type.
- Prefer the relevant files you are given when modifying existing code.
- Keep the plan minimal. Never plan changes outside the request.
"""

    def build_messages(self, context: AgentContext) -> list[dict[str, str]]:
        user_content = f"""Acting persona: {context.persona} (make the plan reflect this style)

User request: "{context.task}"
Target project path: {context.repo_path}

{context.project_context}

Determine which files need to be created or modified.
Return ONLY the JSON array of operations."""

        return [self._system_msg(), self._user_msg(user_content)]

    def parse_response(self, response: RouterResponse, context: AgentContext) -> str:
        """Return the raw text. Locating and decoding the plan is PlanGenerator's job."""
        logger.debug(f"[COMPASS] Raw plan ({len(response.content)} chars) from {response.model}")
        return response.content
