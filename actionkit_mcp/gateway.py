"""
Gateway: the protocol-facing surface over the per-session gates.

list_tools() and call_tool() are what the MCP server's tools/list and
tools/call handlers delegate to. call_tool() never raises: every failure
below it, typed or not, comes back as the normalized error envelope.
"""

import logging
import uuid
from typing import Any

import httpx

from actionkit_mcp.actionkit import ActionCatalogClient, ActionInvoker
from actionkit_mcp.auth import TokenSigner
from actionkit_mcp.config import Settings
from actionkit_mcp.errors import GatewayError, InvalidRequestError
from actionkit_mcp.results import ActionResult
from actionkit_mcp.session import SessionGate, SessionRegistry
from actionkit_mcp.tools import ToolDescriptor

logger = logging.getLogger("actionkit-mcp.gateway")


class Gateway:
    """Routes tool listing and tool calls to the caller's session gate."""

    def __init__(
        self,
        *,
        settings: Settings,
        signer: TokenSigner,
        catalog_client: ActionCatalogClient,
        invoker: ActionInvoker,
    ):
        self._settings = settings
        self._signer = signer
        self._catalog_client = catalog_client
        self._invoker = invoker
        self.sessions = SessionRegistry(self._new_gate, max_sessions=settings.max_sessions)

    @classmethod
    def from_settings(cls, settings: Settings, http: httpx.AsyncClient) -> "Gateway":
        """
        Build a gateway and its collaborators from configuration.

        Raises:
            ConfigurationError: If the signing key is missing or unusable
        """
        signer = TokenSigner(settings.signing_key)
        client_kwargs = {
            "http": http,
            "project_id": settings.project_id,
            "timeout": settings.http_timeout,
        }
        return cls(
            settings=settings,
            signer=signer,
            catalog_client=ActionCatalogClient(**client_kwargs),
            invoker=ActionInvoker(**client_kwargs),
        )

    def _new_gate(self, session_id: str) -> SessionGate:
        logger.info("Session opened", extra={"event_data": {"session_id": session_id}})
        return SessionGate(
            session_id,
            settings=self._settings,
            signer=self._signer,
            catalog_client=self._catalog_client,
            invoker=self._invoker,
        )

    def list_tools(self, session_id: str) -> list[ToolDescriptor]:
        gate = self.sessions.get(session_id)
        tools = gate.list_tools()
        logger.debug(
            "Tools listed",
            extra={
                "event_data": {
                    "session_id": session_id,
                    "state": gate.state.value,
                    "tools": [tool.name for tool in tools],
                }
            },
        )
        return tools

    async def call_tool(
        self,
        session_id: str,
        name: str | None,
        arguments: dict[str, Any] | None,
    ) -> ActionResult:
        """
        Validate and dispatch one tool call, always returning an envelope.

        Missing name or arguments is an InvalidRequestError; like every
        other failure it is returned as {"error": message}, never raised.
        """
        request_id = str(uuid.uuid4())[:8]
        try:
            if not name:
                raise InvalidRequestError("Tool name is missing")
            if arguments is None:
                raise InvalidRequestError("No arguments provided")
            if not isinstance(arguments, dict):
                raise InvalidRequestError("Tool arguments must be a JSON object")

            result = await self.sessions.get(session_id).call_tool(name, arguments)
        except GatewayError as e:
            logger.warning(
                "Tool call failed",
                extra={
                    "event_data": {
                        "request_id": request_id,
                        "session_id": session_id,
                        "tool": name,
                        "error_type": type(e).__name__,
                        "reason": e.message,
                    }
                },
            )
            return ActionResult.from_error(e.message)
        except Exception as e:
            logger.exception(
                "Unexpected error executing tool",
                extra={
                    "event_data": {
                        "request_id": request_id,
                        "session_id": session_id,
                        "tool": name,
                    }
                },
            )
            return ActionResult.from_error(str(e) or type(e).__name__)

        logger.info(
            "Tool call completed",
            extra={
                "event_data": {
                    "request_id": request_id,
                    "session_id": session_id,
                    "tool": name,
                    "tools_changed": result.tools_changed,
                }
            },
        )
        return result
