from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Sequence, Tuple

import google.generativeai as genai

from .config import Settings
from .errors import ModelCompletionError
from .model_provider import ModelTurn, Segment, TextSegment, ToolUseSegment
from .models import ChatMessage, ToolDescriptor

logger = logging.getLogger("mcp_web_client.gemini")

DEFAULT_SAFETY_SETTINGS = [
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_NONE"},
]

# JSON Schema keys Gemini function declarations understand.
SCHEMA_KEYS = {"type", "description", "properties", "items", "required", "enum", "format", "nullable"}


class GeminiClient:
    """Thin wrapper around the Gemini SDK with model caching and function calling."""

    def __init__(self, settings: Settings) -> None:
        """Purpose: Configure the Gemini SDK and initialize model cache.
        Inputs/Outputs: Input is Settings; no return value.
        Side Effects / State: Configures SDK global API key.
        Dependencies: Uses google.generativeai and Settings from config.
        Failure Modes: Raises ValueError if API key or model name is missing.
        If Removed: Gemini cannot serve as the chat model provider.
        Testing Notes: Validate missing key raises ValueError.
        """
        # Configure API key; models are created lazily per system prompt.
        if not settings.gemini_api_key:
            raise ValueError("GEMINI_API_KEY is required")
        self._model_name = _normalize_model_name(settings.gemini_model)
        if not self._model_name:
            raise ValueError("Gemini model name is required")
        genai.configure(api_key=settings.gemini_api_key)
        self._temperature = settings.temperature
        self._max_output_tokens = settings.max_tokens
        self._models: Dict[Tuple[str, str], genai.GenerativeModel] = {}

    def _model_for(self, system_prompt: str) -> genai.GenerativeModel:
        key = (self._model_name, system_prompt)
        if key not in self._models:
            self._models[key] = genai.GenerativeModel(self._model_name, system_instruction=system_prompt or None)
        return self._models[key]

    async def complete(
        self,
        system_prompt: str,
        messages: Sequence[ChatMessage],
        tools: Sequence[ToolDescriptor] = (),
    ) -> ModelTurn:
        """Purpose: Run one completion round and normalize it into a ModelTurn.
        Inputs/Outputs: Inputs are the system prompt, chat messages, and tools to offer;
            output is a ModelTurn of text and function-call segments in order.
        Side Effects / State: May add a model to the internal cache.
        Dependencies: Uses GenerativeModel.generate_content_async.
        Failure Modes: SDK errors and empty candidates raise ModelCompletionError.
        If Removed: The orchestrator cannot complete either round with Gemini.
        Testing Notes: Stub the SDK and check both part kinds are translated.
        """
        kwargs: Dict[str, Any] = {
            "generation_config": {
                "temperature": self._temperature,
                "max_output_tokens": self._max_output_tokens,
            },
            "safety_settings": DEFAULT_SAFETY_SETTINGS,
        }
        declarations = [_function_declaration(tool) for tool in tools]
        if declarations:
            kwargs["tools"] = [{"function_declarations": declarations}]

        try:
            response = await self._model_for(system_prompt).generate_content_async(
                _to_gemini_contents(messages), **kwargs
            )
        except Exception as exc:
            raise ModelCompletionError(f"Gemini completion failed: {exc}") from exc

        candidates = getattr(response, "candidates", None) or []
        if not candidates:
            raise ModelCompletionError("Gemini returned no candidates")
        content = getattr(candidates[0], "content", None)
        parts = getattr(content, "parts", None) or []

        segments: List[Segment] = []
        for part in parts:
            call = getattr(part, "function_call", None)
            if call is not None and getattr(call, "name", ""):
                segments.append(ToolUseSegment(name=call.name, input=_to_plain(call.args) or {}))
                continue
            text = getattr(part, "text", "")
            if text:
                segments.append(TextSegment(text=text))
        logger.debug("gemini turn segments=%s", len(segments))
        return ModelTurn(segments=segments)


def _function_declaration(tool: ToolDescriptor) -> Dict[str, Any]:
    declaration: Dict[str, Any] = {"name": tool.name, "description": tool.description}
    parameters = _to_gemini_schema(tool.input_schema)
    # Gemini rejects OBJECT schemas without properties; omit them entirely.
    if parameters.get("properties"):
        declaration["parameters"] = parameters
    return declaration


def _to_gemini_schema(schema: Any) -> Dict[str, Any]:
    """Purpose: Reduce an MCP JSON Schema to the subset Gemini accepts.
    Inputs/Outputs: Input is a JSON Schema dict; output is a cleaned copy.
    Side Effects / State: None; pure function.
    Dependencies: Used by _function_declaration.
    Failure Modes: Non-dict input yields an empty dict.
    If Removed: Declarations with $schema/additionalProperties are rejected by Gemini.
    Testing Notes: Nested properties and array items are cleaned recursively.
    """
    # Keep only supported keys and upper-case types the way the API enum expects.
    if not isinstance(schema, dict):
        return {}
    cleaned: Dict[str, Any] = {}
    for key, value in schema.items():
        if key not in SCHEMA_KEYS:
            continue
        if key == "type":
            if isinstance(value, list):
                if "null" in value:
                    cleaned["nullable"] = True
                value = next((item for item in value if item != "null"), "string")
            cleaned["type"] = str(value).upper()
        elif key == "properties" and isinstance(value, dict):
            cleaned["properties"] = {name: _to_gemini_schema(prop) for name, prop in value.items()}
        elif key == "items":
            cleaned["items"] = _to_gemini_schema(value)
        else:
            cleaned[key] = value
    return cleaned


def _to_gemini_contents(messages: Sequence[ChatMessage]) -> List[Dict[str, Any]]:
    """Purpose: Convert chat messages into Gemini role-tagged contents.
    Inputs/Outputs: Input is a sequence of ChatMessage; output is a contents list.
    Side Effects / State: None.
    Dependencies: Used by GeminiClient.complete.
    Failure Modes: None; assistant turns map to the "model" role.
    If Removed: History cannot be sent to Gemini.
    Testing Notes: Verify role mapping and text parts.
    """
    # Gemini names the assistant role "model".
    contents: List[Dict[str, Any]] = []
    for message in messages:
        role = "model" if message.role == "assistant" else "user"
        contents.append({"role": role, "parts": [{"text": message.content}]})
    return contents


def _to_plain(value: Any) -> Any:
    # Function-call args arrive as proto map/repeated composites.
    if isinstance(value, Mapping) or hasattr(value, "items"):
        return {str(key): _to_plain(item) for key, item in value.items()}
    if isinstance(value, (str, bytes)):
        return value
    if hasattr(value, "__iter__"):
        return [_to_plain(item) for item in value]
    return value


def _normalize_model_name(name: Optional[str]) -> str:
    """Purpose: Normalize model names by stripping prefix and whitespace.
    Inputs/Outputs: Input is a model name string; output is normalized name.
    Side Effects / State: None.
    Dependencies: None; used by GeminiClient.
    Failure Modes: Returns empty string for falsy input.
    If Removed: Model selection may use invalid names and fail.
    Testing Notes: Ensure "models/foo" becomes "foo" and whitespace is trimmed.
    """
    # Strip "models/" prefix and whitespace.
    if not name:
        return ""
    cleaned = name.strip()
    if cleaned.startswith("models/"):
        return cleaned.split("/", 1)[1]
    return cleaned
