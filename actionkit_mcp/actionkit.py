"""
HTTP boundary to the Paragon ActionKit API.

Two endpoints are used, both scoped to the configured project and
authenticated with a signed user assertion:

    GET  /projects/{project_id}/actions[?integrations=slack,gmail]
         -> {"actions": {"slack": [<action>, ...], ...}}

    POST /projects/{project_id}/actions
         body {"action": "<name>", "parameters": {...}}
         -> arbitrary JSON result

An <action> is an OpenAI-style function descriptor:

    {"type": "function",
     "function": {"name": "SLACK_SEND_MESSAGE",
                  "description": "...",
                  "parameters": {<JSON schema>}}}

Every failure is raised as a typed GatewayError; nothing here returns a
placeholder value on error. Requests are not retried.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from actionkit_mcp.auth import SignedAssertion
from actionkit_mcp.errors import CatalogFetchError, InvocationError, TransportError

logger = logging.getLogger("actionkit-mcp.actionkit")

EMPTY_OBJECT_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}}

# Longest response body kept on an InvocationError.
MAX_ERROR_BODY = 2000


@dataclass(frozen=True)
class ActionDescriptor:
    """
    One remote action as described by the catalog.

    Attributes:
        integration: Integration the action belongs to (e.g. "slack")
        name: Action name, also the tool name (e.g. "SLACK_SEND_MESSAGE")
        description: Human-readable description shown to the model
        parameter_schema: JSON schema of the action's parameters
    """

    integration: str
    name: str
    description: str
    parameter_schema: dict[str, Any] = field(default_factory=lambda: dict(EMPTY_OBJECT_SCHEMA))


# integration name -> actions, in catalog order
ActionCatalog = dict[str, list[ActionDescriptor]]


def parse_catalog(payload: Any) -> ActionCatalog:
    """
    Validate a catalog response body and turn it into ActionDescriptors.

    Raises:
        CatalogFetchError: If the payload does not have the expected shape
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("actions"), dict):
        raise CatalogFetchError("Malformed catalog response: missing 'actions' object")

    catalog: ActionCatalog = {}
    for integration, actions in payload["actions"].items():
        if not isinstance(actions, list):
            raise CatalogFetchError(
                f"Malformed catalog response: actions for '{integration}' must be a list"
            )
        catalog[integration] = [_parse_action(integration, action) for action in actions]
    return catalog


def _parse_action(integration: str, action: Any) -> ActionDescriptor:
    function = action.get("function") if isinstance(action, dict) else None
    if not isinstance(function, dict):
        raise CatalogFetchError(
            f"Malformed catalog response: '{integration}' action without a function descriptor"
        )

    name = function.get("name")
    if not isinstance(name, str) or not name:
        raise CatalogFetchError(
            f"Malformed catalog response: '{integration}' action without a name"
        )

    parameters = function.get("parameters")
    if parameters is None:
        parameters = dict(EMPTY_OBJECT_SCHEMA)
    elif not isinstance(parameters, dict):
        raise CatalogFetchError(
            f"Malformed catalog response: parameters of '{name}' must be a JSON schema object"
        )

    return ActionDescriptor(
        integration=integration,
        name=name,
        description=str(function.get("description") or ""),
        parameter_schema=parameters,
    )


class ActionKitClient:
    """
    Shared plumbing for the ActionKit endpoints.

    The httpx.AsyncClient is injected so that one connection pool serves
    every session, and so tests can plug in an httpx.MockTransport.
    """

    def __init__(self, *, http: httpx.AsyncClient, project_id: str, timeout: float = 30.0):
        self._http = http
        self._project_id = project_id
        self._timeout = timeout

    @property
    def actions_path(self) -> str:
        return f"/projects/{self._project_id}/actions"

    def _headers(self, assertion: SignedAssertion) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": assertion.authorization_header,
        }

    async def _send(self, method: str, assertion: SignedAssertion, **kwargs: Any) -> httpx.Response:
        try:
            return await self._http.request(
                method,
                self.actions_path,
                headers=self._headers(assertion),
                timeout=self._timeout,
                **kwargs,
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"ActionKit {method} request timed out: {e}")
        except httpx.HTTPError as e:
            raise TransportError(f"Could not reach ActionKit: {e}")


class ActionCatalogClient(ActionKitClient):
    """Fetches the actions available to an authenticated user."""

    async def fetch_actions(
        self,
        assertion: SignedAssertion,
        integrations: list[str] | None = None,
    ) -> ActionCatalog:
        """
        Fetch the user's action catalog, optionally filtered by integration.

        Raises:
            CatalogFetchError: On a non-success status or a malformed payload
            TransportError: If ActionKit cannot be reached
        """
        params = {"integrations": ",".join(integrations)} if integrations else None
        response = await self._send("GET", assertion, params=params)

        if not response.is_success:
            logger.warning(
                "Catalog fetch rejected",
                extra={
                    "event_data": {
                        "subject": assertion.subject,
                        "status": response.status_code,
                    }
                },
            )
            raise CatalogFetchError(f"HTTP error; status: {response.status_code}")

        try:
            payload = response.json()
        except ValueError:
            raise CatalogFetchError("Malformed catalog response: body is not JSON")

        catalog = parse_catalog(payload)
        logger.info(
            "Catalog fetched",
            extra={
                "event_data": {
                    "subject": assertion.subject,
                    "integrations": list(catalog),
                    "action_count": sum(len(actions) for actions in catalog.values()),
                }
            },
        )
        return catalog


class ActionInvoker(ActionKitClient):
    """Runs one named action on behalf of an authenticated user."""

    async def invoke(
        self,
        action: str,
        parameters: dict[str, Any],
        assertion: SignedAssertion,
    ) -> Any:
        """
        Execute `action` with `parameters` and return the decoded JSON result.

        Raises:
            InvocationError: On a non-success status or a non-JSON body
            TransportError: If ActionKit cannot be reached
        """
        response = await self._send(
            "POST",
            assertion,
            json={"action": action, "parameters": parameters},
        )

        if not response.is_success:
            raise InvocationError(
                f"HTTP error; status: {response.status_code}",
                status=response.status_code,
                body=response.text[:MAX_ERROR_BODY],
            )

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError:
            raise InvocationError(
                "ActionKit returned a non-JSON response",
                status=response.status_code,
                body=response.text[:MAX_ERROR_BODY],
            )
