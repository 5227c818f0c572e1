"""
MCP server exposing ActionKit actions through the authentication gate.

The server registers no static tools. A GatewayMiddleware answers the two
tool methods itself:

    tools/list -> the session's exposed set (bootstrap tools until the user
                  is authenticated, then the user's ActionKit catalog)
    tools/call -> bootstrap flow handled locally, everything else forwarded
                  to ActionKit with the session's signed assertion

Sessions are keyed by the MCP session id, so every client connection walks
through authentication on its own.

Running the server:
    python -m actionkit_mcp

    PARAGON_TRANSPORT=stdio (default) speaks MCP over stdin/stdout.
    PARAGON_TRANSPORT=streamable-http serves MCP at /mcp plus
    /health and /ready on PARAGON_HOST:PARAGON_PORT.
"""

import asyncio
import logging
import sys
from typing import Sequence

import httpx
from fastmcp import FastMCP
from fastmcp.server.middleware import CallNext, Middleware, MiddlewareContext
from fastmcp.tools.tool import Tool, ToolResult
from mcp.types import CallToolRequestParams, ListToolsRequest, TextContent
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from actionkit_mcp import __version__
from actionkit_mcp.config import Settings, load_settings
from actionkit_mcp.errors import ConfigurationError
from actionkit_mcp.gateway import Gateway
from actionkit_mcp.log import configure_logging

logger = logging.getLogger("actionkit-mcp")

# Used when a request carries no MCP session (e.g. outside a request context).
DEFAULT_SESSION_ID = "default"


class GatewayMiddleware(Middleware):
    """
    Serves tools/list and tools/call from the Gateway.

    Neither hook calls `call_next`: the server has no registered tools, the
    gateway is the only source of truth for what a session can see and call.
    """

    def __init__(self, gateway: Gateway):
        self.gateway = gateway

    def _session_id(self, context: MiddlewareContext) -> str:
        """
        Identify the MCP session the request belongs to.

        Over streamable HTTP this is the Mcp-Session-Id header; over stdio
        FastMCP assigns one id per connection.
        """
        fastmcp_context = context.fastmcp_context
        if fastmcp_context is None:
            return DEFAULT_SESSION_ID
        try:
            return fastmcp_context.session_id
        except (RuntimeError, LookupError):
            return DEFAULT_SESSION_ID

    async def on_list_tools(
        self,
        context: MiddlewareContext[ListToolsRequest],
        call_next: CallNext[ListToolsRequest, Sequence[Tool]],
    ) -> Sequence[Tool]:
        descriptors = self.gateway.list_tools(self._session_id(context))
        return [
            Tool(
                name=descriptor.name,
                description=descriptor.description,
                parameters=descriptor.input_schema,
            )
            for descriptor in descriptors
        ]

    async def on_call_tool(
        self,
        context: MiddlewareContext[CallToolRequestParams],
        call_next: CallNext[CallToolRequestParams, ToolResult],
    ) -> ToolResult:
        params = context.message
        result = await self.gateway.call_tool(
            self._session_id(context), params.name, params.arguments
        )

        if result.tools_changed:
            await self._notify_tools_changed(context)

        return ToolResult(content=[TextContent(type="text", text=result.text)])

    async def _notify_tools_changed(self, context: MiddlewareContext) -> None:
        # The client re-lists tools when it gets this; a lost notification only
        # delays that until its next tools/list, so it must not fail the call.
        if context.fastmcp_context is None:
            return
        try:
            await context.fastmcp_context.session.send_tool_list_changed()
        except Exception:
            logger.warning("Could not send tools/list_changed notification", exc_info=True)


def build_server(app_settings: Settings, http: httpx.AsyncClient) -> FastMCP:
    """
    Create the MCP server for `app_settings`, using `http` for ActionKit calls.

    Raises:
        ConfigurationError: If the signing key is missing or unusable
    """
    gateway = Gateway.from_settings(app_settings, http)

    mcp = FastMCP(
        name="mcp-actionkit",
        version=__version__,
        instructions=(
            "Exposes the user's connected SaaS integrations (via Paragon ActionKit) "
            "as tools. Until the user has authenticated, only the PROMPT_FOR_EMAIL, "
            "REDIRECT_TO_AUTHENTICATION_PAGE and RETRIEVE_TOOLS tools are available."
        ),
        middleware=[GatewayMiddleware(gateway)],
    )

    # Plain HTTP probes, only served with the streamable-http transport.

    @mcp.custom_route("/health", methods=["GET"])
    async def health_check(request: Request) -> Response:
        """Liveness probe: is the server process alive and responsive?"""
        return JSONResponse({"status": "healthy"})

    @mcp.custom_route("/ready", methods=["GET"])
    async def readiness_check(request: Request) -> Response:
        """Readiness probe: configuration was accepted at startup, so report sessions."""
        return JSONResponse({"status": "ready", "sessions": len(gateway.sessions)})

    return mcp


async def serve(app_settings: Settings) -> None:
    async with httpx.AsyncClient(
        base_url=app_settings.api_base_url,
        timeout=app_settings.http_timeout,
    ) as http:
        mcp = build_server(app_settings, http)

        if app_settings.transport == "stdio":
            logger.info("Starting MCP server on stdio")
            await mcp.run_async(transport="stdio")
            return

        logger.info(
            "Starting MCP server on %s:%d (transport=streamable-http)",
            app_settings.host,
            app_settings.port,
        )
        await mcp.run_async(
            transport="streamable-http",
            host=app_settings.host,
            port=app_settings.port,
            log_level=app_settings.log_level,
        )


def main() -> None:
    configure_logging()
    try:
        app_settings = load_settings()
        configure_logging(app_settings.log_level)
        app_settings.check_startup()
        asyncio.run(serve(app_settings))
    except ConfigurationError as e:
        logger.critical("Fatal configuration error: %s", e.message)
        sys.exit(1)


if __name__ == "__main__":
    main()
