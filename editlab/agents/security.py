"""
🛡️ Sentinel — Security Scanner

Scans generated file content for obvious risks.
Answers with one word when clean, one line when not.
Can rewrite content to remove the risk it found.
"""

from __future__ import annotations

from typing import Literal

from loguru import logger

from editlab.agents import AgentContext, BaseAgent, strip_code_fence
from editlab.router import RouterResponse

SAFE_SENTINEL = "SAFE"


class SecurityAgent(BaseAgent):
    role = "security"
    temperature = 0.1

    system_prompt = """You are Sentinel, the security scanner inside EDITLAB.

You review generated source files BEFORE they are written to disk.

What to check:
- Injection vectors (SQL injection, shell injection, XSS)
- Hardcoded secrets or credentials
- Unsafe eval/exec or deserialization
- Overly permissive file or network access

Be honest about severity. Don't false-positive on idiomatic patterns.
"""

    def build_messages(self, context: AgentContext) -> list[dict[str, str]]:
        mode: Literal["scan", "patch"] = context.extra.get("mode", "scan")

        if mode == "patch":
            user_content = f"""Fix the security issue in this code:

{context.content}

Provide ONLY the fixed code content. No markdown. No explanations."""
        else:
            user_content = f"""Scan this code for security vulnerabilities (SQLi, XSS, hardcoded keys, etc.):

{context.content}

Return '{SAFE_SENTINEL}' if clean, otherwise describe the risk briefly in 1 line."""

        return [self._system_msg(), self._user_msg(user_content)]

    def parse_response(self, response: RouterResponse, context: AgentContext) -> str:
        if context.extra.get("mode") == "patch":
            patched = strip_code_fence(response.content)
            logger.info(f"[SENTINEL] Patch generated ({len(patched)} chars)")
            return patched
        return response.content.strip()

    def scan(self, content: str) -> str:
        return self.run(AgentContext(content=content, extra={"mode": "scan"}))

    def patch(self, content: str) -> str:
        return self.run(AgentContext(content=content, extra={"mode": "patch"}))
