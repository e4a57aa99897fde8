"""
Pytest config.

Local imports like `import mcp_web_client` and the shared `fakes` module rely on the
repo root and this directory being on sys.path. Pin that here so tests work with a
global `pytest` entrypoint as well as an editable install.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _ensure_paths_on_syspath() -> None:
    tests_dir = Path(__file__).resolve().parent
    for path in (tests_dir.parent, tests_dir):
        path_str = str(path)
        if path_str not in sys.path:
            sys.path.insert(0, path_str)


_ensure_paths_on_syspath()


@pytest.fixture(autouse=True)
def _clear_provider_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer shells from leaking provider config into unit tests."""
    for name in (
        "LLM_PROVIDER",
        "GEMINI_API_KEY",
        "GEMINI_MODEL",
        "ANTHROPIC_API_KEY",
        "ANTHROPIC_MODEL",
        "LLM_MAX_TOKENS",
        "LLM_TEMPERATURE",
        "MCP_SERVER_URL",
        "MCP_INIT_TIMEOUT",
        "MAX_CONCURRENT_CHATS",
    ):
        monkeypatch.delenv(name, raising=False)
