"""Tests for the chat orchestrator branches and failure handling."""

from __future__ import annotations

import json

import pytest

from fakes import FAQ_TEXT, FAQ_URI, FakeToolProvider, ScriptedModel, text_turn, tool_result, tool_use, turn
from mcp_web_client.catalog import ToolCatalog
from mcp_web_client.errors import ModelCompletionError, NotReadyError, ResourceReadError, ToolInvocationError
from mcp_web_client.models import ChatMessage
from mcp_web_client.orchestrator import NO_TEXT_FALLBACK, RESOURCE_FOLLOWUP_PROMPT, Orchestrator
from mcp_web_client.session import SessionBootstrap

TEMPLATE = "System rules.\nAvailable resources:\n{resource_list}"
RESOURCE_TEXT = f'I can help.<resource_use="true"/><resource uri="{FAQ_URI}"/>'


async def _orchestrator(model: ScriptedModel, provider: FakeToolProvider, *, bootstrap: bool = True) -> Orchestrator:
    session = SessionBootstrap(provider, ToolCatalog())
    if bootstrap:
        await session.ensure_ready()
    return Orchestrator(model, session, TEMPLATE)


@pytest.mark.asyncio
async def test_direct_answer_joins_text_segments() -> None:
    model = ScriptedModel(text_turn("Hello there.", "How can I help?"))
    orch = await _orchestrator(model, FakeToolProvider())

    result = await orch.run("hi")

    assert result.response_text == "Hello there.\nHow can I help?"
    assert result.resource_used is None
    assert result.tool_calls == []
    assert len(model.calls) == 1


@pytest.mark.asyncio
async def test_direct_answer_without_text_uses_fallback() -> None:
    orch = await _orchestrator(ScriptedModel(turn()), FakeToolProvider())

    result = await orch.run("hi")

    assert result.response_text == NO_TEXT_FALLBACK
    assert result.response_text


@pytest.mark.asyncio
async def test_first_round_sees_history_message_tools_and_rendered_prompt() -> None:
    model = ScriptedModel(text_turn("ok"))
    orch = await _orchestrator(model, FakeToolProvider())
    history = [ChatMessage(role="user", content="earlier"), ChatMessage(role="assistant", content="reply")]

    await orch.run("What do you sell?", history)

    call = model.calls[0]
    assert [m.content for m in call["messages"]] == ["earlier", "reply", "What do you sell?"]
    assert call["messages"][-1].role == "user"
    assert [t.name for t in call["tools"]] == ["getProducts", "getInventory", "purchase"]
    assert f"- URI: {FAQ_URI}" in call["system_prompt"]
    assert "{resource_list}" not in call["system_prompt"]
    # Caller's history is not mutated.
    assert len(history) == 2


@pytest.mark.asyncio
async def test_resource_branch_reads_resource_and_synthesizes() -> None:
    model = ScriptedModel(text_turn(RESOURCE_TEXT), text_turn("Returns are accepted within 30 days."))
    provider = FakeToolProvider()
    orch = await _orchestrator(model, provider)

    result = await orch.run("What is your return policy?")

    assert provider.resource_reads == [FAQ_URI]
    assert result.response_text == "Returns are accepted within 30 days."
    assert result.resource_used is not None
    assert result.resource_used.uri == FAQ_URI
    assert result.resource_used.content == FAQ_TEXT
    assert result.tool_calls == []

    second = model.calls[1]
    assert second["tools"] == []
    roles = [m.role for m in second["messages"]]
    assert roles == ["user", "assistant", "user"]
    assert second["messages"][1].content == f"Here is the resource (URI: {FAQ_URI}):\n{FAQ_TEXT}"
    assert second["messages"][2].content == RESOURCE_FOLLOWUP_PROMPT


@pytest.mark.asyncio
async def test_resource_branch_wins_over_tool_segments() -> None:
    model = ScriptedModel(
        turn(text_turn(RESOURCE_TEXT).segments[0], tool_use("getProducts")),
        text_turn("answer"),
    )
    provider = FakeToolProvider(tool_results={"getProducts": tool_result("[]")})
    orch = await _orchestrator(model, provider)

    result = await orch.run("question")

    assert result.resource_used is not None
    assert result.tool_calls == []
    assert provider.tool_calls == []


@pytest.mark.asyncio
async def test_unknown_resource_uri_falls_through_to_tools() -> None:
    marker = '<resource_use="true"/><resource uri="orderfaq://missing"/>'
    model = ScriptedModel(
        turn(text_turn(marker).segments[0], tool_use("getProducts")),
        text_turn("Here are the products."),
    )
    provider = FakeToolProvider(tool_results={"getProducts": tool_result("[]")})
    orch = await _orchestrator(model, provider)

    result = await orch.run("question")

    assert provider.resource_reads == []
    assert result.resource_used is None
    assert [r.name for r in result.tool_calls] == ["getProducts"]


@pytest.mark.asyncio
async def test_unknown_resource_uri_without_tools_is_direct_answer() -> None:
    text = '<resource_use="true"/><resource uri="orderfaq://missing"/>'
    model = ScriptedModel(text_turn(text))
    provider = FakeToolProvider()
    orch = await _orchestrator(model, provider)

    result = await orch.run("question")

    assert result.response_text == text
    assert provider.resource_reads == []
    assert len(model.calls) == 1


@pytest.mark.asyncio
async def test_resource_read_failure_is_fatal() -> None:
    model = ScriptedModel(text_turn(RESOURCE_TEXT))
    provider = FakeToolProvider(resource_contents={FAQ_URI: ResourceReadError("disk gone")})
    orch = await _orchestrator(model, provider)

    with pytest.raises(ResourceReadError):
        await orch.run("What is your return policy?")
    assert len(model.calls) == 1


@pytest.mark.asyncio
async def test_unexpected_resource_error_is_wrapped() -> None:
    model = ScriptedModel(text_turn(RESOURCE_TEXT))
    provider = FakeToolProvider(resource_contents={FAQ_URI: OSError("socket closed")})
    orch = await _orchestrator(model, provider)

    with pytest.raises(ResourceReadError, match="socket closed"):
        await orch.run("What is your return policy?")


@pytest.mark.asyncio
async def test_tool_branch_runs_tools_in_order_and_echoes_results() -> None:
    purchase = tool_use("purchase", items=[{"productId": 5, "quantity": 2}], customerName="Alice")
    model = ScriptedModel(turn(tool_use("getInventory"), purchase), text_turn("Order placed for Alice."))
    provider = FakeToolProvider(
        tool_results={
            "getInventory": tool_result('[{"productId":5,"quantity":10}]'),
            "purchase": tool_result('{"id":1,"customerName":"Alice"}'),
        }
    )
    orch = await _orchestrator(model, provider)

    result = await orch.run("Buy 2 of product 5 for Alice")

    assert [name for name, _ in provider.tool_calls] == ["getInventory", "purchase"]
    assert provider.tool_calls[1][1] == {"items": [{"productId": 5, "quantity": 2}], "customerName": "Alice"}
    assert [r.name for r in result.tool_calls] == ["getInventory", "purchase"]
    assert all(r.error is None for r in result.tool_calls)
    assert result.response_text == "Order placed for Alice."
    assert result.resource_used is None

    second = model.calls[1]
    assert second["tools"] == []
    assert [m.role for m in second["messages"]] == ["user", "assistant"]
    echoed = second["messages"][-1].content
    assert ", " not in echoed and ": " not in echoed
    assert json.loads(echoed) == [
        {"name": "getInventory", "result": tool_result('[{"productId":5,"quantity":10}]')},
        {"name": "purchase", "result": tool_result('{"id":1,"customerName":"Alice"}')},
    ]


@pytest.mark.asyncio
async def test_tool_failure_is_recorded_and_later_tools_still_run() -> None:
    model = ScriptedModel(
        turn(tool_use("purchase", customerName="Bob"), tool_use("getProducts")),
        text_turn("The purchase failed but here are the products."),
    )
    provider = FakeToolProvider(
        tool_results={
            "purchase": ToolInvocationError("purchase", "Insufficient stock"),
            "getProducts": tool_result("[]"),
        }
    )
    orch = await _orchestrator(model, provider)

    result = await orch.run("Buy something for Bob")

    assert [name for name, _ in provider.tool_calls] == ["purchase", "getProducts"]
    assert result.tool_calls[0].name == "purchase"
    assert result.tool_calls[0].error == "Insufficient stock"
    assert result.tool_calls[1].error is None
    echoed = json.loads(model.calls[1]["messages"][-1].content)
    assert echoed[0] == {"name": "purchase", "error": "Insufficient stock"}
    assert "result" not in echoed[0]


@pytest.mark.asyncio
async def test_unexpected_tool_exception_is_recorded_not_raised() -> None:
    model = ScriptedModel(turn(tool_use("getProducts")), text_turn("Sorry."))
    provider = FakeToolProvider(tool_results={"getProducts": RuntimeError("boom")})
    orch = await _orchestrator(model, provider)

    result = await orch.run("list products")

    assert result.tool_calls[0].error == "boom"
    assert result.response_text == "Sorry."


@pytest.mark.asyncio
async def test_tool_count_matches_segment_count_with_repeats() -> None:
    model = ScriptedModel(
        turn(tool_use("getProducts"), tool_use("getProducts"), tool_use("nope")),
        text_turn("done"),
    )
    provider = FakeToolProvider(tool_results={"getProducts": tool_result("[]")})
    orch = await _orchestrator(model, provider)

    result = await orch.run("list twice")

    assert [r.name for r in result.tool_calls] == ["getProducts", "getProducts", "nope"]
    assert result.tool_calls[2].error == "Unknown tool: nope"


@pytest.mark.asyncio
async def test_first_round_failure_is_fatal() -> None:
    model = ScriptedModel(ModelCompletionError("upstream 500"))
    orch = await _orchestrator(model, FakeToolProvider())

    with pytest.raises(ModelCompletionError):
        await orch.run("hi")


@pytest.mark.asyncio
async def test_second_round_failure_is_fatal_without_fallback() -> None:
    model = ScriptedModel(turn(tool_use("getProducts")), RuntimeError("overloaded"))
    provider = FakeToolProvider(tool_results={"getProducts": tool_result("[]")})
    orch = await _orchestrator(model, provider)

    with pytest.raises(ModelCompletionError, match="second round"):
        await orch.run("list products")


@pytest.mark.asyncio
async def test_not_ready_before_bootstrap() -> None:
    model = ScriptedModel(text_turn("never"))
    orch = await _orchestrator(model, FakeToolProvider(), bootstrap=False)

    with pytest.raises(NotReadyError):
        await orch.run("hi")
    assert model.calls == []


@pytest.mark.asyncio
async def test_admission_limit_still_serves_requests() -> None:
    provider = FakeToolProvider()
    session = SessionBootstrap(provider, ToolCatalog())
    await session.ensure_ready()
    orch = Orchestrator(ScriptedModel(text_turn("a"), text_turn("b")), session, TEMPLATE, max_concurrent=1)

    first = await orch.run("one")
    second = await orch.run("two")

    assert (first.response_text, second.response_text) == ("a", "b")
