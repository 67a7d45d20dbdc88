"""
✒️ Quill — The Synthesizer

Writes the complete new body of one file at a time.
Sees the current content when modifying, nothing when creating.
"""

from __future__ import annotations

from typing import Any, Callable

from loguru import logger

from editlab.agents import AgentContext, BaseAgent, strip_code_fence
from editlab.router import RouterResponse


class SynthesizerAgent(BaseAgent):
    role = "synthesizer"
    temperature = 0.2

    system_prompt = """You are Quill, the file writer inside EDITLAB.

You receive one planned file operation and produce the COMPLETE new content of that file.

Rules:
- Return ONLY the raw file content. No markdown fences. No explanations.
- When the current content is given, keep everything the task does not ask you to change.
- Never truncate with placeholders like "... rest unchanged".
"""

    def build_messages(self, context: AgentContext) -> list[dict[str, str]]:
        op = context.operation
        if op is None:
            raise ValueError("SynthesizerAgent requires an operation in the context")

        if context.current_content is not None:
            current = f"Current content:\n```\n{context.current_content}\n```"
        else:
            current = "File is new."

        user_content = f"""Task: {op.explanation or 'Update file'}
User original request: "{context.task}"
File to {op.action}: {op.file}

{current}

Provide the complete NEW content.
Return ONLY the raw content. No markdown. No explanations."""

        return [self._system_msg(), self._user_msg(user_content)]

    def run(self, context: AgentContext, on_chunk: Callable[[str], None] | None = None, **kwargs) -> Any:
        """Stream when a chunk callback is given; the full body is returned either way."""
        if on_chunk is not None:
            kwargs["on_chunk"] = on_chunk
        return super().run(context, **kwargs)

    def parse_response(self, response: RouterResponse, context: AgentContext) -> str:
        content = strip_code_fence(response.content)
        logger.debug(f"[QUILL] {context.operation.file if context.operation else '?'}: {len(content)} chars")
        return content
