from __future__ import annotations


class OrchestratorError(Exception):
    """Base class for every failure the chat orchestrator reports to callers."""

    status_code = 500


class NotReadyError(OrchestratorError):
    """The MCP session or tool catalog has not been initialized yet."""

    status_code = 503


class ToolProviderConnectionError(OrchestratorError, ConnectionError):
    """The MCP server is unreachable or the handshake failed."""

    status_code = 503


class ModelCompletionError(OrchestratorError):
    """The model call failed or returned content we cannot interpret."""

    status_code = 502


class ResourceReadError(OrchestratorError):
    """A named resource could not be read from the MCP server."""

    status_code = 502


class ToolInvocationError(OrchestratorError):
    """A single tool call failed. Recorded per tool by the orchestrator."""

    status_code = 502

    def __init__(self, name: str, message: str) -> None:
        super().__init__(message)
        self.name = name
