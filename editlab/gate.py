"""
Security gate for synthesized content.

Advisory, not enforcing: an unsafe verdict leads to an offered patch,
never to a silently dropped change. A scanner failure degrades to an
"unknown risk" verdict and the pipeline keeps going.
"""

from __future__ import annotations

import re

from loguru import logger

from editlab.agents.security import SAFE_SENTINEL
from editlab.errors import EditLabError
from editlab.models import Verdict
from editlab.oracle import Scanner

_MAX_RISK_LEN = 200


class PatchError(EditLabError):
    """The scanner could not produce a patched version."""


def parse_verdict(raw: str) -> Verdict:
    """Interpret the scanner's one-word / one-line answer."""
    text = (raw or "").strip()
    if not text:
        return Verdict(safe=False, risk="unknown risk (empty scanner response)", scanned=False)

    if re.sub(r"[^A-Za-z]", "", text).upper() == SAFE_SENTINEL:
        return Verdict(safe=True)

    first_line = next(line.strip() for line in text.splitlines() if line.strip())
    if len(first_line) > _MAX_RISK_LEN:
        first_line = first_line[: _MAX_RISK_LEN - 3] + "..."
    return Verdict(safe=False, risk=first_line)


class SecurityGate:
    def __init__(self, scanner: Scanner):
        self.scanner = scanner

    def evaluate(self, content: str) -> Verdict:
        try:
            raw = self.scanner.scan(content)
        except Exception as e:
            logger.warning(f"[GATE] Scan failed, treating as unknown risk: {e}")
            return Verdict(safe=False, risk=f"unknown risk (scan failed: {e})", scanned=False)

        verdict = parse_verdict(raw)
        if verdict.safe:
            logger.info("[GATE] No critical security issues found")
        else:
            logger.warning(f"[GATE] Security alert: {verdict.risk}")
        return verdict

    def request_patch(self, content: str) -> str:
        try:
            patched = self.scanner.patch(content)
        except Exception as e:
            raise PatchError(f"patch request failed: {e}") from e
        if not patched or not patched.strip():
            raise PatchError("scanner returned an empty patch")
        return patched
