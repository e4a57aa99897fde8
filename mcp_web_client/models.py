from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

ChatRole = Literal["user", "assistant"]


class ChatMessage(BaseModel):
    """One turn of conversation history as exchanged with the UI."""
    role: ChatRole
    content: str


class ToolDescriptor(BaseModel):
    """Model-facing tool description (transport-specific fields dropped)."""
    name: str
    description: str = ""
    input_schema: Dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})


class ResourceDescriptor(BaseModel):
    """Resource advertised by the MCP server."""
    uri: str
    name: str = ""
    description: str = ""


class ToolCallRecord(BaseModel):
    """Outcome of one tool invocation: either result or error is set."""
    name: str
    result: Any = None
    error: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        if self.error is not None:
            return {"name": self.name, "error": self.error}
        return {"name": self.name, "result": self.result}


class ResourceUsage(BaseModel):
    """Resource fetched and injected into the second completion round."""
    uri: str
    content: str


class ChatRequest(BaseModel):
    """Request payload for the chat API."""
    message: Optional[str] = None
    history: List[ChatMessage] = Field(default_factory=list)


class ChatResponse(BaseModel):
    """Response payload returned by the chat API."""
    model_config = ConfigDict(populate_by_name=True)

    response: str
    resource: Optional[ResourceUsage] = None
    tool_calls: Optional[List[Dict[str, Any]]] = Field(default=None, alias="toolCalls")


class CallToolRequest(BaseModel):
    """Request payload for a direct tool invocation."""
    name: Optional[str] = None
    args: Dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Structured error payload for every failed API call."""
    error: str
    type: str
