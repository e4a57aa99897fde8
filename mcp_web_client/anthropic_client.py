from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

import anthropic

from .config import Settings
from .errors import ModelCompletionError
from .model_provider import ModelTurn, Segment, TextSegment, ToolUseSegment
from .models import ChatMessage, ToolDescriptor

logger = logging.getLogger("mcp_web_client.anthropic")


class AnthropicClient:
    """Claude Messages API client that speaks the ModelProvider contract."""

    def __init__(self, settings: Settings) -> None:
        """Purpose: Create the async Anthropic client.
        Inputs/Outputs: Input is Settings; no return value.
        Side Effects / State: Holds an AsyncAnthropic instance.
        Dependencies: Uses the anthropic SDK.
        Failure Modes: Raises ValueError if ANTHROPIC_API_KEY is missing.
        If Removed: LLM_PROVIDER=anthropic cannot be served.
        Testing Notes: Validate missing key raises ValueError.
        """
        if not settings.anthropic_api_key:
            raise ValueError("ANTHROPIC_API_KEY is required")
        self._model = settings.anthropic_model
        self._max_tokens = settings.max_tokens
        self._temperature = settings.temperature
        self._client = anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key)

    async def complete(
        self,
        system_prompt: str,
        messages: Sequence[ChatMessage],
        tools: Sequence[ToolDescriptor] = (),
    ) -> ModelTurn:
        """Purpose: Run one Messages API call and normalize it into a ModelTurn.
        Inputs/Outputs: Inputs are the system prompt, chat messages, and tools to offer;
            output is a ModelTurn of text and tool_use blocks in order.
        Side Effects / State: Network call to the Anthropic API.
        Dependencies: AsyncAnthropic.messages.create.
        Failure Modes: API errors and non-list content raise ModelCompletionError.
        If Removed: The orchestrator cannot complete rounds with Claude.
        Testing Notes: Stub the client and check text/tool_use translation.
        """
        kwargs: Dict[str, Any] = {
            "model": self._model,
            "system": system_prompt,
            "max_tokens": self._max_tokens,
            "temperature": self._temperature,
            "messages": [{"role": message.role, "content": message.content} for message in messages],
        }
        # An empty tools list is omitted; the second round offers no tools.
        if tools:
            kwargs["tools"] = [tool.model_dump() for tool in tools]

        try:
            response = await self._client.messages.create(**kwargs)
        except Exception as exc:
            raise ModelCompletionError(f"Anthropic completion failed: {exc}") from exc

        blocks = getattr(response, "content", None)
        if not isinstance(blocks, list):
            raise ModelCompletionError("Anthropic response has no content blocks")

        segments: List[Segment] = []
        for block in blocks:
            kind = getattr(block, "type", None)
            if kind == "text":
                segments.append(TextSegment(text=block.text))
            elif kind == "tool_use":
                segments.append(ToolUseSegment(name=block.name, input=dict(block.input or {})))
        logger.debug("anthropic turn segments=%s stop_reason=%s", len(segments), getattr(response, "stop_reason", None))
        return ModelTurn(segments=segments)
