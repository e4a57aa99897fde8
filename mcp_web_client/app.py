from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from .catalog import ToolCatalog
from .config import Settings, load_settings
from .errors import OrchestratorError
from .mcp_provider import McpToolProvider, ToolProvider
from .model_provider import ModelProvider, create_model_provider
from .models import CallToolRequest, ChatRequest, ChatResponse, ErrorResponse
from .orchestrator import Orchestrator
from .prompt_loader import load_prompt
from .session import SessionBootstrap

BASE_DIR = Path(__file__).resolve().parent
FRONTEND_DIR = (BASE_DIR / ".." / "frontend").resolve()

log_level_name = os.getenv("LOG_LEVEL", "INFO").upper()
log_level = getattr(logging, log_level_name, logging.INFO)
if not logging.getLogger().handlers:
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

logging.getLogger("mcp_web_client").setLevel(log_level)
logger = logging.getLogger("mcp_web_client.app")

ENV_PATH = BASE_DIR / ".env"
if ENV_PATH.exists():
    load_dotenv(ENV_PATH, override=True)


def _error_payload(message: str, kind: str) -> Dict[str, Any]:
    return ErrorResponse(error=message, type=kind).model_dump()


def create_app(
    settings: Optional[Settings] = None,
    *,
    model: Optional[ModelProvider] = None,
    provider: Optional[ToolProvider] = None,
) -> FastAPI:
    """Purpose: Build the FastAPI app with its MCP session, model client and routes.
    Inputs/Outputs: Optional Settings and collaborator overrides; returns a FastAPI app.
    Side Effects / State: Creates the process-scoped catalog, session and orchestrator.
    Dependencies: load_settings, McpToolProvider, create_model_provider, Orchestrator.
    Failure Modes: Missing model API key raises ValueError; a missing prompt file
        raises FileNotFoundError.
    If Removed: Nothing serves the chat, tools or call-tool endpoints.
    Testing Notes: Pass fake model/provider and drive it with TestClient.
    """
    # Build process-scoped collaborators once; requests only read them.
    settings = settings or load_settings()
    provider = provider or McpToolProvider(settings.mcp_server_url, init_timeout=settings.mcp_init_timeout)
    model = model or create_model_provider(settings)
    session = SessionBootstrap(provider, ToolCatalog())
    orchestrator = Orchestrator(
        model,
        session,
        load_prompt(settings.prompts_dir / "system_prompt.md"),
        max_concurrent=settings.max_concurrent_chats,
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        try:
            await session.ensure_ready()
        except OrchestratorError as exc:
            logger.error("startup bootstrap failed: %s", exc)
        yield
        await session.close()

    app = FastAPI(title="MCP Web Client", lifespan=lifespan)
    app.state.session = session
    app.state.orchestrator = orchestrator

    if FRONTEND_DIR.exists():
        app.mount("/static", StaticFiles(directory=FRONTEND_DIR), name="static")

    @app.exception_handler(OrchestratorError)
    async def handle_orchestrator_error(_request: Request, exc: OrchestratorError) -> JSONResponse:
        logger.error("request failed type=%s detail=%s", type(exc).__name__, exc)
        return JSONResponse(status_code=exc.status_code, content=_error_payload(str(exc), type(exc).__name__))

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content=_error_payload(f"Invalid request: {exc.errors()}", "ValidationError"))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(_request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unexpected error")
        return JSONResponse(status_code=500, content=_error_payload(str(exc) or type(exc).__name__, type(exc).__name__))

    @app.get("/", include_in_schema=False)
    def serve_index():
        """Serve the frontend entrypoint HTML file when one is shipped."""
        index = FRONTEND_DIR / "index.html"
        if not index.exists():
            return JSONResponse(status_code=404, content=_error_payload("No frontend installed", "NotFound"))
        return FileResponse(index)

    api = APIRouter(prefix="/api")

    @api.get("/tools")
    async def list_tools() -> Dict[str, Any]:
        await session.ensure_ready()
        tools, _ = session.catalog.snapshot()
        return {"tools": [tool.model_dump() for tool in tools]}

    @api.get("/resources")
    async def list_resources() -> Dict[str, Any]:
        await session.ensure_ready()
        _, resources = session.catalog.snapshot()
        return {"resources": [resource.model_dump() for resource in resources]}

    @api.post("/refresh")
    async def refresh_catalog() -> Dict[str, Any]:
        """Re-list tools and resources on the open MCP connection."""
        await session.ensure_ready()
        await session.refresh()
        tools, _ = session.catalog.snapshot()
        return {"tools": [tool.name for tool in tools], "resources": session.catalog.resource_uris()}

    @api.post("/chat", response_model=ChatResponse, response_model_exclude_none=True)
    async def chat(request: ChatRequest):
        """Purpose: Validate a chat request and run the orchestrator.
        Inputs/Outputs: Input is ChatRequest; output is ChatResponse with either the
            resource used or the tool call records.
        Side Effects / State: May connect the MCP session on first use.
        Dependencies: SessionBootstrap.ensure_ready and Orchestrator.run.
        Failure Modes: Empty message returns 400; orchestrator errors map to their
            status codes via the exception handler.
        If Removed: Core chat functionality is unavailable.
        Testing Notes: Empty message must not reach the model.
        """
        # Reject empty input before touching the MCP session or the model.
        if not request.message or not request.message.strip():
            return JSONResponse(status_code=400, content=_error_payload("message must not be empty", "ValidationError"))
        await session.ensure_ready()
        result = await orchestrator.run(request.message, request.history)
        if result.resource_used is not None:
            return ChatResponse(response=result.response_text, resource=result.resource_used)
        return ChatResponse(
            response=result.response_text,
            tool_calls=[record.to_payload() for record in result.tool_calls],
        )

    @api.post("/call-tool")
    async def call_tool(request: CallToolRequest) -> Dict[str, Any]:
        """Invoke one tool directly, bypassing the orchestrator."""
        if not request.name:
            return JSONResponse(status_code=400, content=_error_payload("tool name must not be empty", "ValidationError"))
        await session.ensure_ready()
        logger.info("call-tool tool=%s", request.name)
        result = await session.provider.call_tool(request.name, request.args)
        return {"result": result}

    app.include_router(api)
    return app


def main() -> None:
    port = int(os.getenv("PORT", "3000"))
    logger.info("Web client listening on http://localhost:%s", port)
    uvicorn.run("mcp_web_client.app:create_app", factory=True, host=os.getenv("HOST", "0.0.0.0"), port=port)


if __name__ == "__main__":
    main()
