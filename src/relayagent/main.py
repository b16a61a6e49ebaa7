import json
import logging
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .agent import build_engine
from .agent.engine import IterationEngine
from .errors import AgentError
from .models import AgentResponse, request_from_dict
from .services.mcp import McpToolExecutor
from .services.memory import initialize_short_term_memory
from .settings import get_settings


def setup_server_logging(level: str = "INFO") -> logging.Logger:
    """Configure and return the server logger."""
    logs_dir = Path("logs")
    logs_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("relayagent")
    if logger.handlers:
        return logging.getLogger("relayagent.server")

    logger.setLevel(level)
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s")

    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    fh = RotatingFileHandler(logs_dir / "server.log", maxBytes=5_000_000, backupCount=3)
    fh.setFormatter(fmt)
    logger.addHandler(fh)

    return logging.getLogger("relayagent.server")


settings = get_settings()
LOGGER = setup_server_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the engine at startup and seed short-term memory when enabled."""
    executor = McpToolExecutor(settings.mcp_servers, settings.fetch_tools_function)
    engine = build_engine(settings, executor=executor)
    app.state.engine = engine
    app.state.executor = executor

    if engine.memory is not None:
        await initialize_short_term_memory(engine.memory, settings.memory_max_tokens)

    LOGGER.info("Agent ready on endpoint %s", settings.dispatch_endpoint)
    yield
    LOGGER.info("Shutting down...")


app = FastAPI(
    title="relayagent",
    version="0.1.0",
    debug=settings.debug,
    lifespan=lifespan,
)


@app.get("/health")
async def health() -> dict[str, Any]:
    """Health check for load balancers and monitoring."""
    return {"status": "ok"}


@app.post(settings.dispatch_endpoint)
async def dispatch(request: Request) -> JSONResponse:
    """Run one agent session for the posted request.

    Expected Input (JSON): the agent request, ``{agent, messages, tools,
    servers, trigger?}``.

    Response Format:
        {"type": "text", "content": str, "usedToken": int}. Engine failures are
        reported in the same shape with ``content`` set to ``"Error: <message>"``.
    """
    try:
        payload = json.loads(await request.body())
    except json.JSONDecodeError as e:
        LOGGER.error("Invalid dispatch payload (not JSON): %s", e)
        return JSONResponse({"error": "Invalid JSON payload"}, status_code=400)
    if not isinstance(payload, dict):
        return JSONResponse({"error": "Payload must be a JSON object"}, status_code=400)

    try:
        agent_request = request_from_dict(payload)
    except (AttributeError, TypeError) as e:
        LOGGER.error("Malformed dispatch payload: %s", e)
        return JSONResponse({"error": "Malformed agent request"}, status_code=400)
    engine: IterationEngine = request.app.state.engine
    executor: McpToolExecutor = request.app.state.executor

    fetch_name = executor.fetch_function
    if settings.mcp_servers and all(t.name != fetch_name for t in agent_request.tools):
        agent_request.tools.append(executor.fetch_tool_definition())

    LOGGER.info(
        "Dispatch start agent=%s trigger=%s",
        agent_request.agent.identifier,
        agent_request.trigger is not None,
    )
    try:
        if agent_request.trigger is not None:
            response = await engine.handle_trigger(agent_request)
        else:
            response = await engine.handle_message(agent_request)
    except AgentError as e:
        LOGGER.error("Dispatch failed: %s", e)
        response = AgentResponse(content=f"Error: {e}", used_tokens=0)

    return JSONResponse(response.to_dict())
