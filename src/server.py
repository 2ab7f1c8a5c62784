"""
MCP server exposing bol.com Retailer API tools via FastMCP.

This module assembles the process:
- Credential store + TokenManager (partner access token lifecycle)
- BolApiClient (the one authenticated request path to the Retailer API)
- ToolRegistry (registers the invoice, commission and order tools once)
- Health and readiness HTTP endpoints for the orchestrator
- Structured JSON logging
- Streamable HTTP transport

Start it with BOL_CLIENT_ID and BOL_CLIENT_SECRET set (or in .env) and run
`python -m src.server`. Host, port and log level come from Settings. Tools are
served over streamable HTTP at /mcp. GET /health answers while the process is
up. GET /ready answers 503 until partner credentials are configured.
"""

import inspect
import json
import logging
import sys
from dataclasses import dataclass
from typing import Annotated, Any

import httpx
from fastmcp import FastMCP
from pydantic import Field
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from src.auth import TokenManager
from src.bol_api import BolApiClient
from src.config import Settings, settings
from src.registry import ToolDescriptor, ToolRegistry
from src.token_store import create_token_store
from src.tools import build_tool_sources

# ---------------------------------------------------------------------------
# Structured JSON Logging
# ---------------------------------------------------------------------------
# One JSON object per log line on stdout, so the cluster's logging agent can
# index fields like tool, status_code or reason.


class JSONLogFormatter(logging.Formatter):
    """
    Formats log records as single-line JSON objects.

    Example output:

        {"timestamp": "2026-02-06 10:30:00,123", "level": "INFO", "logger": "bol-mcp.api",
         "message": "Retailer API error", "status_code": 404, "endpoint": "/orders/1"}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Structured fields passed via logger.info("msg", extra={"log_data": {...}})
        if hasattr(record, "log_data"):
            log_entry.update(record.log_data)
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


handler = logging.StreamHandler(sys.stdout)
handler.setFormatter(JSONLogFormatter())

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    handlers=[handler],
)
logger = logging.getLogger("bol-mcp.server")


# ---------------------------------------------------------------------------
# Descriptor -> FastMCP tool
# ---------------------------------------------------------------------------
# FastMCP derives a tool's input schema from the function signature. Each
# descriptor carries its arguments as a pydantic model instead, so we build a
# keyword-only signature from the model fields and rebuild the model inside.


def _tool_function(descriptor: ToolDescriptor):
    model = descriptor.parameters
    execute = descriptor.execute

    async def run_tool(**arguments: Any) -> dict[str, Any]:
        return await execute(model(**arguments))

    parameters = []
    for field_name, field in model.model_fields.items():
        annotation = Annotated[(field.annotation, *field.metadata, Field(description=field.description))]
        default = inspect.Parameter.empty if field.is_required() else field.get_default(call_default_factory=True)
        parameters.append(
            inspect.Parameter(
                field_name,
                inspect.Parameter.KEYWORD_ONLY,
                default=default,
                annotation=annotation,
            )
        )

    run_tool.__name__ = descriptor.name
    run_tool.__doc__ = descriptor.description
    run_tool.__signature__ = inspect.Signature(parameters, return_annotation=dict[str, Any])
    run_tool.__annotations__ = {p.name: p.annotation for p in parameters}
    run_tool.__annotations__["return"] = dict[str, Any]
    return run_tool


def register_tool(mcp: FastMCP, descriptor: ToolDescriptor) -> None:
    """Expose one validated descriptor as a FastMCP tool."""
    mcp.tool(name=descriptor.name, description=descriptor.description)(_tool_function(descriptor))


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


@dataclass
class RetailerServer:
    """The FastMCP app and the components behind its tools."""

    mcp: FastMCP
    registry: ToolRegistry
    token_manager: TokenManager
    api: BolApiClient


def create_server(
    config: Settings = settings,
    http_client: httpx.AsyncClient | None = None,
) -> RetailerServer:
    """Build the MCP server and register its tools for the given configuration."""
    store = create_token_store(config.token_store_path)
    token_manager = TokenManager(
        client_id=config.client_id,
        client_secret=config.client_secret.get_secret_value(),
        store=store,
        token_url=config.token_url,
        validity_buffer_millis=config.token_validity_buffer_seconds * 1000,
        timeout=config.request_timeout_seconds,
        http_client=http_client,
    )
    api = BolApiClient(
        token_manager,
        base_url=config.api_base_url,
        timeout=config.request_timeout_seconds,
        http_client=http_client,
    )

    mcp = FastMCP(
        name="bol-retailer-mcp",
        instructions=(
            "Tools for the bol.com Retailer API: list and inspect orders, "
            "fetch invoice requests and invoices, and calculate commissions."
        ),
    )

    registry = ToolRegistry(
        register=lambda descriptor: register_tool(mcp, descriptor),
        sources=build_tool_sources(api),
    )
    registry.initialize_once()

    # -----------------------------------------------------------------------
    # Health and Readiness Endpoints
    # -----------------------------------------------------------------------
    # Plain HTTP endpoints (not MCP protocol) for liveness and readiness checks.

    @mcp.custom_route("/health", methods=["GET"])
    async def health_check(request: Request) -> Response:
        """Liveness check: is the server process alive and responsive?"""
        return JSONResponse({"status": "healthy"})

    @mcp.custom_route("/ready", methods=["GET"])
    async def readiness_check(request: Request) -> Response:
        """Readiness check: can this pod reach bol.com on behalf of callers?"""
        if not config.has_credentials:
            return JSONResponse(
                {"status": "not_ready", "reason": "partner credentials missing"},
                status_code=503,
            )
        return JSONResponse({"status": "ready", "tools": sorted(registry.registered_names)})

    return RetailerServer(mcp=mcp, registry=registry, token_manager=token_manager, api=api)


server = create_server()
mcp = server.mcp


# ---------------------------------------------------------------------------
# Server entry point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    logger.info(
        "Starting MCP server on %s:%d (transport=streamable-http)",
        settings.host,
        settings.port,
    )
    mcp.run(
        transport="streamable-http",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )
