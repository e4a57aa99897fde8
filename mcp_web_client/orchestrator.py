"""Chat orchestration: one or two model rounds around MCP tools and resources.

Flow per request:
    First completion:
        The model sees history + user message + the catalog's tools.
    Branch (first match wins):
        Resource: text carries the resource markers with a known URI. The resource
            is read and a second round synthesizes an answer from it.
        Tools: the turn carries tool-use segments. Each runs in order; failures are
            recorded per tool and a second round summarizes the results.
        Direct: the first round's text is the answer.
    Second completion:
        No tools are offered; its joined text is the final response.

The orchestrator keeps no state between requests.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .errors import ModelCompletionError, NotReadyError, OrchestratorError, ResourceReadError
from .markers import find_resource_request
from .model_provider import ModelProvider, ModelTurn
from .models import ChatMessage, ResourceUsage, ToolCallRecord, ToolDescriptor
from .prompt_loader import render_system_prompt
from .session import SessionBootstrap
from .utils import compact_json

logger = logging.getLogger("mcp_web_client.orchestrator")

NO_TEXT_FALLBACK = "(No text response)"
RESOURCE_FOLLOWUP_PROMPT = (
    "Using the information above, answer my original question as fully and helpfully as possible."
)


@dataclass(frozen=True)
class ChatResult:
    response_text: str
    resource_used: Optional[ResourceUsage] = None
    tool_calls: List[ToolCallRecord] = field(default_factory=list)


class Orchestrator:
    """Runs the first-completion / branch / second-completion state machine."""

    def __init__(
        self,
        model: ModelProvider,
        session: SessionBootstrap,
        system_prompt_template: str,
        max_concurrent: int = 0,
    ) -> None:
        """Purpose: Wire the model, the MCP session and the system prompt template.
        Inputs/Outputs: Inputs are collaborators plus an optional admission limit
            (0 means unbounded); no return value.
        Side Effects / State: Creates a semaphore when max_concurrent > 0.
        Dependencies: ModelProvider, SessionBootstrap, render_system_prompt.
        Failure Modes: None at construction.
        If Removed: /chat has nothing to run.
        Testing Notes: Construct with fakes; no I/O happens until run().
        """
        self._model = model
        self._session = session
        self._template = system_prompt_template
        self._admission = asyncio.Semaphore(max_concurrent) if max_concurrent > 0 else None

    async def run(self, message: str, history: Sequence[ChatMessage] = ()) -> ChatResult:
        if self._admission is None:
            return await self._run(message, history)
        async with self._admission:
            return await self._run(message, history)

    async def _run(self, message: str, history: Sequence[ChatMessage]) -> ChatResult:
        catalog = self._session.catalog
        if not catalog.is_populated:
            raise NotReadyError("Tool catalog is not initialized")
        tools, resources = catalog.snapshot()
        provider = self._session.provider

        system_prompt = render_system_prompt(self._template, resources)
        conversation = [*history, ChatMessage(role="user", content=message)]

        first = await self._complete(system_prompt, conversation, tools, round_name="first")

        resource_uri = find_resource_request(first.text, catalog.resource_uris())
        if resource_uri:
            logger.info("chat branch=resource uri=%s", resource_uri)
            try:
                content = await provider.read_resource(resource_uri)
            except ResourceReadError:
                raise
            except Exception as exc:
                raise ResourceReadError(f"Cannot read resource {resource_uri}: {exc}") from exc
            followup = conversation + [
                ChatMessage(role="assistant", content=f"Here is the resource (URI: {resource_uri}):\n{content}"),
                ChatMessage(role="user", content=RESOURCE_FOLLOWUP_PROMPT),
            ]
            second = await self._complete(system_prompt, followup, (), round_name="second")
            return ChatResult(
                response_text=second.text,
                resource_used=ResourceUsage(uri=resource_uri, content=content),
            )

        tool_uses = first.tool_uses
        if tool_uses:
            logger.info("chat branch=tools count=%s", len(tool_uses))
            records: List[ToolCallRecord] = []
            # Sequential on purpose: record order must match request order.
            for tool_use in tool_uses:
                try:
                    result = await provider.call_tool(tool_use.name, tool_use.input or {})
                except Exception as exc:
                    logger.warning("tool=%s status=error detail=%s", tool_use.name, exc)
                    records.append(ToolCallRecord(name=tool_use.name, error=str(exc) or type(exc).__name__))
                    continue
                logger.info("tool=%s status=success", tool_use.name)
                records.append(ToolCallRecord(name=tool_use.name, result=result))
            payload = [record.to_payload() for record in records]
            followup = conversation + [ChatMessage(role="assistant", content=compact_json(payload))]
            second = await self._complete(system_prompt, followup, (), round_name="second")
            return ChatResult(response_text=second.text, tool_calls=records)

        logger.info("chat branch=direct")
        return ChatResult(response_text=first.text or NO_TEXT_FALLBACK)

    async def _complete(
        self,
        system_prompt: str,
        messages: List[ChatMessage],
        tools: Sequence[ToolDescriptor],
        *,
        round_name: str,
    ) -> ModelTurn:
        logger.debug("completion round=%s messages=%s tools=%s", round_name, len(messages), len(tools))
        try:
            return await self._model.complete(system_prompt, messages, tools)
        except OrchestratorError:
            raise
        except Exception as exc:
            raise ModelCompletionError(f"Model completion failed ({round_name} round): {exc}") from exc
