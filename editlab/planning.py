"""
Plan generation: task + project context → ordered list of Operations.

The oracle's answer is free text. The JSON array is located inside it
(code fences and surrounding prose are tolerated), decoded and
validated as a whole. Anything short of a fully valid plan is a
PlanParseError; there are no partial plans and no retries here.
"""

from __future__ import annotations

import json
import re

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from editlab.errors import EditLabError
from editlab.models import Operation, ProjectContext
from editlab.oracle import ContentOracle
from editlab.router import OracleError

_ARRAY_RE = re.compile(r"\[.*\]", re.DOTALL)
_PLAN_ADAPTER = TypeAdapter(list[Operation])


class PlanParseError(EditLabError):
    """The oracle output did not contain a decodable plan."""

    def __init__(self, message: str, raw_output: str):
        super().__init__(message)
        self.raw_output = raw_output


def extract_plan_payload(raw: str) -> str:
    """Return the substring of raw that holds the JSON array."""
    content = raw.strip()

    if content.startswith("```"):
        lines = content.split("\n")
        lines = [l for l in lines if not l.strip().startswith("```")]
        content = "\n".join(lines).strip()

    # First '[' that starts a complete JSON array wins; trailing prose is ignored.
    decoder = json.JSONDecoder()
    for idx in (i for i, ch in enumerate(content) if ch == "["):
        try:
            obj, end = decoder.raw_decode(content, idx)
        except json.JSONDecodeError:
            continue
        if isinstance(obj, list) and all(isinstance(item, dict) for item in obj):
            return content[idx:end]

    match = _ARRAY_RE.search(content)
    if not match:
        raise PlanParseError("no JSON array found in planner output", raw)
    return match.group()


def parse_plan(raw: str) -> list[Operation]:
    payload = extract_plan_payload(raw)
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise PlanParseError(f"plan is not valid JSON: {e}", raw) from e

    try:
        return _PLAN_ADAPTER.validate_python(data)
    except ValidationError as e:
        raise PlanParseError(f"plan failed validation: {e.error_count()} error(s)", raw) from e


class PlanGenerator:
    def __init__(self, oracle: ContentOracle):
        self.oracle = oracle

    def generate_plan(self, task: str, project_context: ProjectContext) -> list[Operation]:
        try:
            raw = self.oracle.produce_plan(task, project_context)
        except EditLabError:
            raise
        except Exception as e:
            logger.error(f"[PLAN] Planner call failed: {e}")
            raise OracleError(f"planner call failed: {e}") from e

        try:
            plan = parse_plan(raw)
        except PlanParseError:
            logger.error("[PLAN] Failed to parse plan from oracle output")
            logger.debug(f"[PLAN] Raw response: {raw[:500]}")
            raise

        logger.info(f"[PLAN] Plan ready, {len(plan)} operation(s)")
        return plan
