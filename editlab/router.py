"""
EDITLAB Router — Vendor-Agnostic Model Abstraction

Routes oracle calls through LiteLLM so agents never know
which vendor is backing them. Handles budget tracking,
retries, timeouts, streaming and structured logging.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable

import litellm
from loguru import logger
from pydantic import BaseModel
from tenacity import retry, retry_if_not_exception_type, stop_after_attempt, wait_exponential

from editlab.config_loader import EditLabConfig
from editlab.errors import EditLabError


class OracleError(EditLabError):
    """Base class for failures talking to the model provider."""


class OracleTimeoutError(OracleError):
    """Raised when a single oracle call exceeds limits.oracle_timeout_seconds."""


class BudgetExceededError(OracleError):
    pass


# ---------------------------------------------------------------------------
# Usage Tracking
# ---------------------------------------------------------------------------

@dataclass
class UsageRecord:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    estimated_cost: float = 0.0
    call_count: int = 0


@dataclass
class BudgetTracker:
    """Tracks token + dollar spend per session."""
    max_tokens: int = 500_000
    max_dollars: float = 5.0
    usage: UsageRecord = field(default_factory=UsageRecord)

    @property
    def tokens_remaining(self) -> int:
        return max(0, self.max_tokens - self.usage.total_tokens)

    @property
    def dollars_remaining(self) -> float:
        return max(0.0, self.max_dollars - self.usage.estimated_cost)

    @property
    def budget_exceeded(self) -> bool:
        return self.usage.total_tokens >= self.max_tokens or self.usage.estimated_cost >= self.max_dollars

    def record(self, response: Any) -> None:
        """Record usage from a LiteLLM response.

        Streamed responses carry no usage block; they only bump the
        call counter.
        """
        usage = getattr(response, "usage", None)
        if usage:
            self.usage.prompt_tokens += getattr(usage, "prompt_tokens", 0) or 0
            self.usage.completion_tokens += getattr(usage, "completion_tokens", 0) or 0
            self.usage.total_tokens += getattr(usage, "total_tokens", 0) or 0

            try:
                cost = litellm.completion_cost(completion_response=response)
                self.usage.estimated_cost += cost
            except Exception as e:
                logger.debug(f"[ROUTER] Cost lookup unavailable: {e}")

        self.usage.call_count += 1

    def summary(self) -> dict:
        return {
            "total_tokens": self.usage.total_tokens,
            "estimated_cost": round(self.usage.estimated_cost, 4),
            "call_count": self.usage.call_count,
            "tokens_remaining": self.tokens_remaining,
            "dollars_remaining": round(self.dollars_remaining, 4),
        }


# ---------------------------------------------------------------------------
# Model capability helpers
# ---------------------------------------------------------------------------

def _is_reasoning_model(model: str) -> bool:
    """OpenAI o-series and GPT-5 models reject arbitrary temperature."""
    normalized = model.lower().replace("openai/", "")
    return normalized.startswith(("o1", "o3", "o4", "gpt-5"))


def _build_kwargs(
    model: str,
    messages: list[dict[str, str]],
    temperature: float,
    max_tokens: int,
    timeout: float,
    stream: bool,
) -> dict[str, Any]:
    """
    Build LiteLLM kwargs with per-model param filtering.
    """
    kwargs: dict[str, Any] = {
        "model": model,
        "messages": messages,
        "max_tokens": max_tokens,
        "timeout": timeout,
    }

    if not _is_reasoning_model(model):
        kwargs["temperature"] = temperature

    if stream:
        kwargs["stream"] = True

    return kwargs


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------

class RouterResponse(BaseModel):
    content: str
    model: str
    tokens_used: int = 0
    cost: float = 0.0
    latency_ms: int = 0


class Router:
    """
    Vendor-agnostic model router.

    Agents call `router.complete(role, messages)`.
    The router resolves the model, enforces budget and timeout,
    and returns structured output.
    """

    def __init__(self, config: EditLabConfig):
        self.config = config
        self.timeout = config.limits.oracle_timeout_seconds
        self.max_response_tokens = config.limits.max_response_tokens
        self.budget = BudgetTracker(
            max_tokens=config.limits.max_tokens_per_session,
            max_dollars=config.limits.max_dollars_per_session,
        )
        self._role_model_map = {
            "planner": config.routing.planner,
            "synthesizer": config.routing.synthesizer,
            "security": config.routing.security,
        }

        litellm.suppress_debug_info = True

    def resolve_model(self, role: str) -> str:
        model = self._role_model_map.get(role)
        if not model:
            raise ValueError(f"Unknown agent role: {role}. Known: {list(self._role_model_map)}")
        return model

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(min=1, max=10),
        retry=retry_if_not_exception_type((OracleTimeoutError, BudgetExceededError, ValueError)),
        reraise=True,
    )
    def complete(
        self,
        role: str,
        messages: list[dict[str, str]],
        temperature: float = 0.2,
        max_tokens: int | None = None,
        on_chunk: Callable[[str], None] | None = None,
    ) -> RouterResponse:
        """Send a completion request through LiteLLM.

        Args:
            role: Agent role name (planner, synthesizer, security).
            messages: Standard chat messages [{"role": ..., "content": ...}].
            temperature: Sampling temperature. Dropped for models that
                don't support it.
            max_tokens: Max response tokens. Defaults to limits.max_response_tokens.
            on_chunk: When given, the response is streamed and every text
                delta is passed to it as it arrives. The full text is still
                returned.

        Raises:
            BudgetExceededError: Session budget is spent.
            OracleTimeoutError: The call took longer than the configured timeout.
        """
        if self.budget.budget_exceeded:
            raise BudgetExceededError(
                f"Budget exceeded: {self.budget.summary()}"
            )

        model = self.resolve_model(role)
        start = time.monotonic()

        logger.debug(f"[ROUTER] {role} → {model} ({len(messages)} messages)")

        kwargs = _build_kwargs(
            model,
            messages,
            temperature,
            max_tokens or self.max_response_tokens,
            self.timeout,
            stream=on_chunk is not None,
        )

        try:
            response = litellm.completion(**kwargs)
            if on_chunk is not None:
                content = self._collect_stream(response, on_chunk)
            else:
                content = response.choices[0].message.content or ""
        except (litellm.Timeout, TimeoutError) as e:
            elapsed = time.monotonic() - start
            logger.error(f"[ROUTER] {role} timed out after {elapsed:.1f}s")
            raise OracleTimeoutError(
                f"{role} call to {model} exceeded {self.timeout}s"
            ) from e

        elapsed_ms = int((time.monotonic() - start) * 1000)
        self.budget.record(response)

        logger.debug(
            f"[ROUTER] {role} complete — "
            f"{self.budget.usage.total_tokens} tokens, "
            f"${self.budget.usage.estimated_cost:.4f}, "
            f"{elapsed_ms}ms"
        )

        usage = getattr(response, "usage", None)
        return RouterResponse(
            content=content,
            model=model,
            tokens_used=getattr(usage, "total_tokens", 0) or 0,
            cost=self.budget.usage.estimated_cost,
            latency_ms=elapsed_ms,
        )

    @staticmethod
    def _collect_stream(stream: Any, on_chunk: Callable[[str], None]) -> str:
        parts: list[str] = []
        for chunk in stream:
            choices = getattr(chunk, "choices", None) or []
            if not choices:
                continue
            delta = getattr(choices[0], "delta", None)
            text = getattr(delta, "content", None) or ""
            if text:
                parts.append(text)
                on_chunk(text)
        return "".join(parts)
