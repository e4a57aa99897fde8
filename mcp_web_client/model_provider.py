"""Provider-neutral view of one model completion.

Each client adapter (Gemini, Anthropic) translates its SDK response into a
ModelTurn so the orchestrator never touches SDK types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol, Sequence, Union

from .config import Settings
from .models import ChatMessage, ToolDescriptor
from .utils import join_text


@dataclass(frozen=True)
class TextSegment:
    text: str


@dataclass(frozen=True)
class ToolUseSegment:
    name: str
    input: Dict[str, Any] = field(default_factory=dict)


Segment = Union[TextSegment, ToolUseSegment]


@dataclass(frozen=True)
class ModelTurn:
    """Ordered output of one completion round."""
    segments: List[Segment] = field(default_factory=list)

    @property
    def text(self) -> str:
        return join_text(seg.text for seg in self.segments if isinstance(seg, TextSegment))

    @property
    def tool_uses(self) -> List[ToolUseSegment]:
        return [seg for seg in self.segments if isinstance(seg, ToolUseSegment)]


class ModelProvider(Protocol):
    async def complete(
        self,
        system_prompt: str,
        messages: Sequence[ChatMessage],
        tools: Sequence[ToolDescriptor] = (),
    ) -> ModelTurn:
        ...


def create_model_provider(settings: Settings) -> ModelProvider:
    """Purpose: Build the model client selected by LLM_PROVIDER.
    Inputs/Outputs: Input is Settings; output is a ModelProvider.
    Side Effects / State: Configures the chosen SDK.
    Dependencies: GeminiClient or AnthropicClient, imported lazily so only the
        selected SDK is loaded.
    Failure Modes: Missing API key raises ValueError from the client constructor.
    If Removed: The app has no way to talk to a model.
    Testing Notes: Each provider name returns the matching client class.
    """
    # Import lazily so an unused SDK does not have to be configured.
    if settings.llm_provider == "anthropic":
        from .anthropic_client import AnthropicClient

        return AnthropicClient(settings)
    from .gemini_client import GeminiClient

    return GeminiClient(settings)
