from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent

SUPPORTED_PROVIDERS = ("gemini", "anthropic")


@dataclass(frozen=True)
class Settings:
    """Configuration container for model providers, the MCP server, and runtime limits."""
    llm_provider: str
    gemini_api_key: str
    gemini_model: str
    anthropic_api_key: str
    anthropic_model: str
    max_tokens: int
    temperature: float
    mcp_server_url: str
    mcp_init_timeout: float
    prompts_dir: Path
    max_concurrent_chats: int


def load_settings() -> Settings:
    """Purpose: Load configuration from environment variables and defaults.
    Inputs/Outputs: No inputs; returns a Settings instance.
    Side Effects / State: Reads environment variables and filesystem paths.
    Dependencies: Uses os.getenv and BASE_DIR for default paths.
    Failure Modes: Invalid LLM_MAX_TOKENS/LLM_TEMPERATURE/MCP_INIT_TIMEOUT/
        MAX_CONCURRENT_CHATS values or an unknown LLM_PROVIDER raise ValueError.
    If Removed: App cannot configure models or reach the MCP server and fails at startup.
    Testing Notes: Verify defaults and overrides via environment variables.
    """
    # Normalize the provider name and reject anything we have no client for.
    provider = (os.getenv("LLM_PROVIDER") or "gemini").strip().lower()
    if provider not in SUPPORTED_PROVIDERS:
        raise ValueError(f"Unsupported LLM_PROVIDER: {provider}")

    max_concurrent_chats = int(os.getenv("MAX_CONCURRENT_CHATS", "0"))
    if max_concurrent_chats < 0:
        raise ValueError("MAX_CONCURRENT_CHATS must be >= 0")

    return Settings(
        llm_provider=provider,
        gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
        anthropic_api_key=os.getenv("ANTHROPIC_API_KEY", ""),
        anthropic_model=os.getenv("ANTHROPIC_MODEL", "claude-3-7-sonnet-20250219"),
        max_tokens=int(os.getenv("LLM_MAX_TOKENS", "1000")),
        temperature=float(os.getenv("LLM_TEMPERATURE", "0.2")),
        mcp_server_url=os.getenv("MCP_SERVER_URL", "http://localhost:8083/sse"),
        mcp_init_timeout=float(os.getenv("MCP_INIT_TIMEOUT", "10")),
        prompts_dir=(BASE_DIR / "prompts").resolve(),
        max_concurrent_chats=max_concurrent_chats,
    )
