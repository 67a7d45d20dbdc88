"""
Content synthesis: one Operation → the complete new file body.

Either a full body comes back or the operation fails with
SynthesisError; nothing is ever partially applied and nothing is
written to disk here.
"""

from __future__ import annotations

from loguru import logger

from editlab.errors import FileOperationError
from editlab.models import Operation
from editlab.oracle import ChunkCallback, ContentOracle


class SynthesisError(FileOperationError):
    """The oracle failed to produce content for one file."""


class ContentSynthesizer:
    def __init__(self, oracle: ContentOracle, on_chunk: ChunkCallback | None = None):
        self.oracle = oracle
        self.on_chunk = on_chunk

    def synthesize(self, operation: Operation, current_content: str | None, task: str) -> str:
        if operation.action == "create":
            current_content = None

        try:
            content = self.oracle.synthesize_content(
                operation, current_content, task, on_chunk=self.on_chunk
            )
        except Exception as e:
            logger.error(f"[SYNTH] {operation.file}: oracle failed: {e}")
            raise SynthesisError(operation.file, f"synthesis failed: {e}") from e

        if content is None:
            raise SynthesisError(operation.file, "oracle returned no content")

        logger.info(f"[SYNTH] {operation.file}: {len(content)} chars synthesized")
        return content
