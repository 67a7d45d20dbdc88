"""
Configuration loader for EDITLAB.
Merges defaults with per-project .editlab/config.yaml overrides.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

class RoutingConfig(BaseModel):
    planner: str = "groq/llama-3.3-70b-versatile"
    synthesizer: str = "groq/llama-3.3-70b-versatile"
    security: str = "groq/llama-3.1-8b-instant"


class LimitsConfig(BaseModel):
    oracle_timeout_seconds: float = 120.0
    max_response_tokens: int = 8192
    max_tokens_per_session: int = 500_000
    max_dollars_per_session: float = 5.0
    preview_lines: int = 5


class WorkspaceConfig(BaseModel):
    state_dir: str = ".editlab"
    backup_dir: str = ".editlab/backups"
    log_dir: str = ".editlab/logs"
    purge_backups_on_exit: bool = False


class BoundaryConfig(BaseModel):
    denied_segments: list[str] = Field(
        default_factory=lambda: ["node_modules", ".git", ".editlab"]
    )
    protected_paths: list[str] = Field(default_factory=list)


class SecurityConfig(BaseModel):
    offer_patch: bool = True
    strict: bool = False  # block unpatched unsafe changes instead of flagging


class InterventionConfig(BaseModel):
    confirm_before_apply: bool = True


class EditLabConfig(BaseModel):
    routing: RoutingConfig = Field(default_factory=RoutingConfig)
    limits: LimitsConfig = Field(default_factory=LimitsConfig)
    workspace: WorkspaceConfig = Field(default_factory=WorkspaceConfig)
    boundaries: BoundaryConfig = Field(default_factory=BoundaryConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    intervention: InterventionConfig = Field(default_factory=InterventionConfig)
    persona: str = "Senior Architect"


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base."""
    merged = base.copy()
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(repo_path: Path | None = None) -> EditLabConfig:
    """
    Load config by merging:
      1. Built-in defaults (editlab/config.yaml)
      2. Project-level overrides (<project>/.editlab/config.yaml)
      3. Environment variable overrides
    """
    # 1. Built-in defaults
    with open(_DEFAULT_CONFIG_PATH, "r") as f:
        base: dict[str, Any] = yaml.safe_load(f) or {}

    # 2. Project overrides
    if repo_path:
        repo_config = repo_path / ".editlab" / "config.yaml"
        if repo_config.exists():
            with open(repo_config, "r") as f:
                overrides: dict[str, Any] = yaml.safe_load(f) or {}
            base = _deep_merge(base, overrides)

    # 3. API keys are read by LiteLLM directly; only the timeout is overridable here.
    timeout = os.environ.get("EDITLAB_ORACLE_TIMEOUT")
    if timeout:
        base = _deep_merge(base, {"limits": {"oracle_timeout_seconds": float(timeout)}})

    return EditLabConfig(**base)


def validate_api_keys() -> dict[str, bool]:
    """Check which API keys are available."""
    return {
        "GROQ_API_KEY":      bool(os.environ.get("GROQ_API_KEY")),
        "ANTHROPIC_API_KEY": bool(os.environ.get("ANTHROPIC_API_KEY")),
        "OPENAI_API_KEY":    bool(os.environ.get("OPENAI_API_KEY")),
        "GEMINI_API_KEY":    bool(os.environ.get("GEMINI_API_KEY")),
    }
