"""
Per-session authentication gate.

Each MCP session walks through a small state machine before it gets the
user's real tools:

    UNAUTHENTICATED
        | PROMPT_FOR_EMAIL(email)         -> reply with the portal link
        v
    AWAITING_REDIRECT_CONFIRMATION        (email recorded as pending identity)
        | RETRIEVE_TOOLS(confirmation)    -> sign, fetch catalog, translate
        v
    AUTHENTICATED(identity)               (catalog cached for the session)

- A failed catalog fetch leaves the session in AWAITING_REDIRECT_CONFIRMATION
  and the error is surfaced to the caller.
- A fetch that succeeds but yields no tools also stays in
  AWAITING_REDIRECT_CONFIRMATION: the user has not connected an integration
  yet, and the caller gets a NotAuthenticatedError carrying the portal link.
- PROMPT_FOR_EMAIL while AUTHENTICATED is an explicit re-authentication:
  the cached catalog is dropped and the new email becomes pending.
- Non-bootstrap tools are forwarded to ActionKit only while AUTHENTICATED.

Transitions run under a per-session asyncio.Lock, so two concurrent
confirmations cannot both fetch the catalog. Forwarded action calls do not
take the lock and run concurrently.
"""

import asyncio
import logging
from collections import OrderedDict
from enum import Enum
from typing import Any, Callable

from actionkit_mcp.actionkit import ActionCatalogClient, ActionInvoker
from actionkit_mcp.auth import SignedAssertion, TokenSigner
from actionkit_mcp.config import Settings
from actionkit_mcp.errors import (
    CatalogFetchError,
    InvalidRequestError,
    NotAuthenticatedError,
    TransportError,
)
from actionkit_mcp.results import ActionResult
from actionkit_mcp.tools import (
    BOOTSTRAP_TOOLS,
    PROMPT_FOR_EMAIL,
    REDIRECT_TO_AUTHENTICATION_PAGE,
    RETRIEVE_TOOLS,
    ToolDescriptor,
    to_tool_descriptors,
)

logger = logging.getLogger("actionkit-mcp.session")

# Confirmation values that mean "not yet".
NEGATIVE_CONFIRMATIONS = frozenset({"", "no", "n", "false", "0", "not yet"})


class AuthState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AWAITING_REDIRECT_CONFIRMATION = "awaiting_redirect_confirmation"
    AUTHENTICATED = "authenticated"


def _require_argument(arguments: dict[str, Any], key: str) -> Any:
    value = arguments.get(key)
    if value is None:
        raise InvalidRequestError(f"Missing required argument '{key}'")
    return value


def _is_confirmed(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if not isinstance(value, str):
        raise InvalidRequestError("Argument 'confirmation' must be a string")
    return value.strip().lower() not in NEGATIVE_CONFIRMATIONS


class SessionGate:
    """
    Authentication state and exposed tool set of one MCP session.

    Attributes:
        session_id: MCP session this gate belongs to (for log correlation)
    """

    def __init__(
        self,
        session_id: str,
        *,
        settings: Settings,
        signer: TokenSigner,
        catalog_client: ActionCatalogClient,
        invoker: ActionInvoker,
    ):
        self.session_id = session_id
        self._settings = settings
        self._signer = signer
        self._catalog_client = catalog_client
        self._invoker = invoker

        self._lock = asyncio.Lock()
        self._state = AuthState.UNAUTHENTICATED
        self._pending_identity: str | None = None
        self._identity: str | None = None
        self._assertion: SignedAssertion | None = None
        self._tools: list[ToolDescriptor] = []

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def identity(self) -> str | None:
        """The authenticated identity, or None before authentication."""
        return self._identity

    @property
    def pending_identity(self) -> str | None:
        return self._pending_identity

    def list_tools(self) -> list[ToolDescriptor]:
        """Return the tool set currently exposed to the client."""
        state = self._state
        if state is AuthState.UNAUTHENTICATED or state is AuthState.AWAITING_REDIRECT_CONFIRMATION:
            return list(BOOTSTRAP_TOOLS)
        if state is AuthState.AUTHENTICATED:
            return list(self._tools)
        raise AssertionError(f"Unhandled session state: {state}")

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> ActionResult:
        """
        Handle a bootstrap tool locally or forward an action to ActionKit.

        Raises:
            GatewayError: Any typed failure; the gateway turns it into an envelope
        """
        if name == PROMPT_FOR_EMAIL:
            return await self._prompt_for_email(arguments)
        if name == REDIRECT_TO_AUTHENTICATION_PAGE:
            return self._redirect_to_authentication_page()
        if name == RETRIEVE_TOOLS:
            return await self._retrieve_tools(arguments)
        return await self._forward(name, arguments)

    # ----- Bootstrap flow -----

    async def _prompt_for_email(self, arguments: dict[str, Any]) -> ActionResult:
        email = _require_argument(arguments, "email")
        if not isinstance(email, str) or not email.strip():
            raise InvalidRequestError("Argument 'email' must be a non-empty string")
        email = email.strip()

        async with self._lock:
            previous = self._state
            self._pending_identity = email
            self._identity = None
            self._assertion = None
            self._tools = []
            self._transition(AuthState.AWAITING_REDIRECT_CONFIRMATION, subject=email)

        return ActionResult.from_payload(
            self._redirect_payload(email),
            tools_changed=previous is AuthState.AUTHENTICATED,
        )

    def _redirect_to_authentication_page(self) -> ActionResult:
        user = self._pending_identity or self._identity
        if self._state is AuthState.UNAUTHENTICATED or user is None:
            raise NotAuthenticatedError(
                "No email on record for this session; call PROMPT_FOR_EMAIL first"
            )
        return ActionResult.from_payload(self._redirect_payload(user))

    async def _retrieve_tools(self, arguments: dict[str, Any]) -> ActionResult:
        confirmed = _is_confirmed(_require_argument(arguments, "confirmation"))

        async with self._lock:
            state = self._state

            if state is AuthState.UNAUTHENTICATED:
                raise NotAuthenticatedError(
                    "No email on record for this session; call PROMPT_FOR_EMAIL first"
                )

            if state is AuthState.AUTHENTICATED:
                return ActionResult.from_payload(self._authenticated_payload())

            if state is not AuthState.AWAITING_REDIRECT_CONFIRMATION:
                raise AssertionError(f"Unhandled session state: {state}")

            identity = self._pending_identity
            if identity is None:
                raise AssertionError("Awaiting confirmation without a pending identity")

            if not confirmed:
                return ActionResult.from_payload(
                    {
                        "authenticated": False,
                        "message": (
                            "Authenticate at the link below, then call RETRIEVE_TOOLS "
                            "again with your confirmation."
                        ),
                        "redirect_url": self._settings.portal_link(identity),
                    }
                )

            assertion = self._signer.sign(identity)
            try:
                catalog = await self._catalog_client.fetch_actions(
                    assertion, self._settings.integrations or None
                )
                tools = to_tool_descriptors(catalog, self._settings.duplicate_tool_policy)
            except (CatalogFetchError, TransportError) as e:
                logger.warning(
                    "Tool retrieval failed",
                    extra={
                        "event_data": {
                            "session_id": self.session_id,
                            "subject": identity,
                            "state": self._state.value,
                            "reason": e.message,
                        }
                    },
                )
                raise

            if not tools:
                raise NotAuthenticatedError(
                    f"No integrations are connected for '{identity}' yet; authenticate at "
                    f"{self._settings.portal_link(identity)} and confirm again"
                )

            self._identity = identity
            self._assertion = assertion
            self._tools = tools
            self._pending_identity = None
            self._transition(AuthState.AUTHENTICATED, subject=identity, tool_count=len(tools))

            return ActionResult.from_payload(self._authenticated_payload(), tools_changed=True)

    # ----- Forwarding -----

    async def _forward(self, name: str, arguments: dict[str, Any]) -> ActionResult:
        state = self._state
        if state is AuthState.UNAUTHENTICATED or state is AuthState.AWAITING_REDIRECT_CONFIRMATION:
            raise NotAuthenticatedError(
                f"Tool '{name}' is not available until authentication completes; "
                "call PROMPT_FOR_EMAIL to start"
            )
        if state is not AuthState.AUTHENTICATED:
            raise AssertionError(f"Unhandled session state: {state}")

        assertion = self._assertion
        if assertion is None:
            raise AssertionError("Authenticated session without an assertion")

        response = await self._invoker.invoke(name, arguments, assertion)
        logger.info(
            "Action invoked",
            extra={
                "event_data": {
                    "session_id": self.session_id,
                    "subject": assertion.subject,
                    "tool": name,
                    "decision": "forwarded",
                }
            },
        )
        return ActionResult.from_payload(response)

    # ----- Helpers -----

    def _transition(self, new_state: AuthState, **fields: Any) -> None:
        logger.info(
            "Session state changed",
            extra={
                "event_data": {
                    "session_id": self.session_id,
                    "from_state": self._state.value,
                    "to_state": new_state.value,
                    **fields,
                }
            },
        )
        self._state = new_state

    def _redirect_payload(self, user: str) -> dict[str, Any]:
        return {
            "tool": REDIRECT_TO_AUTHENTICATION_PAGE,
            "redirect_url": self._settings.portal_link(user),
            "message": (
                "Open the link to connect your accounts, then call RETRIEVE_TOOLS "
                "with your confirmation."
            ),
        }

    def _authenticated_payload(self) -> dict[str, Any]:
        return {
            "authenticated": True,
            "user": self._identity,
            "tools": [tool.name for tool in self._tools],
        }


class SessionRegistry:
    """
    Session gates keyed by MCP session id.

    Gates are created on first use and evicted least-recently-used once
    more than `max_sessions` are alive, or explicitly via close().
    """

    def __init__(self, factory: Callable[[str], SessionGate], max_sessions: int = 1024):
        self._factory = factory
        self._max_sessions = max_sessions
        self._gates: OrderedDict[str, SessionGate] = OrderedDict()

    def get(self, session_id: str) -> SessionGate:
        gate = self._gates.get(session_id)
        if gate is not None:
            self._gates.move_to_end(session_id)
            return gate

        gate = self._factory(session_id)
        self._gates[session_id] = gate
        while len(self._gates) > self._max_sessions:
            evicted, _ = self._gates.popitem(last=False)
            logger.info("Session evicted", extra={"event_data": {"session_id": evicted}})
        return gate

    def close(self, session_id: str) -> None:
        self._gates.pop(session_id, None)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._gates

    def __len__(self) -> int:
        return len(self._gates)
