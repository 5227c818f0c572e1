"""
Tool definitions: the bootstrap tool set and catalog translation.

Before a session is authenticated, the client sees exactly three bootstrap
tools that walk the user through authentication:

    PROMPT_FOR_EMAIL                 -> record the user's email
    REDIRECT_TO_AUTHENTICATION_PAGE  -> hand out the Paragon portal link
    RETRIEVE_TOOLS                   -> confirm and load the real catalog

The names and schemas are a fixed contract with the model prompting the
user, so they must not change without a version bump.

After authentication the tool list is the user's ActionKit catalog,
translated one action -> one tool by to_tool_descriptors().
"""

import logging
from dataclasses import dataclass
from typing import Any, Literal

from actionkit_mcp.actionkit import ActionCatalog
from actionkit_mcp.errors import DuplicateToolError

logger = logging.getLogger("actionkit-mcp.tools")

PROMPT_FOR_EMAIL = "PROMPT_FOR_EMAIL"
REDIRECT_TO_AUTHENTICATION_PAGE = "REDIRECT_TO_AUTHENTICATION_PAGE"
RETRIEVE_TOOLS = "RETRIEVE_TOOLS"

BOOTSTRAP_TOOL_NAMES = (PROMPT_FOR_EMAIL, REDIRECT_TO_AUTHENTICATION_PAGE, RETRIEVE_TOOLS)

DuplicatePolicy = Literal["skip", "error"]


@dataclass(frozen=True)
class ToolDescriptor:
    """
    Protocol-facing description of one tool.

    Attributes:
        name: Tool name, unique within one exposed tool set
        description: Text the model uses to decide when to call the tool
        input_schema: JSON schema of the tool's arguments
    """

    name: str
    description: str
    input_schema: dict[str, Any]


BOOTSTRAP_TOOLS: tuple[ToolDescriptor, ...] = (
    ToolDescriptor(
        name=PROMPT_FOR_EMAIL,
        description=(
            "Use when a user first interacts with the chat or when a user is unable "
            "to authenticate. Prompt for their email username."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "email": {"type": "string", "description": "email username"},
            },
            "required": ["email"],
        },
    ),
    ToolDescriptor(
        name=REDIRECT_TO_AUTHENTICATION_PAGE,
        description=(
            "Use when a user has provided their email, but no tools have been made "
            "available. Provide the redirect link for user to authenticate and enable tools."
        ),
        input_schema={"type": "object", "properties": {}},
    ),
    ToolDescriptor(
        name=RETRIEVE_TOOLS,
        description=(
            "Use when a user has provided their email or when a user has confirmed that "
            "they have authenticated via the REDIRECT_TO_AUTHENTICATION_PAGE tool. "
            "Attempt to retrieve tools."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "confirmation": {
                    "type": "string",
                    "description": (
                        "whether the user has confirmed they have authenticated via the redirect"
                    ),
                },
            },
            "required": ["confirmation"],
        },
    ),
)


def to_tool_descriptors(
    catalog: ActionCatalog,
    on_duplicate: DuplicatePolicy = "skip",
) -> list[ToolDescriptor]:
    """
    Translate an action catalog into tool descriptors.

    Order is deterministic: integrations in catalog order, actions in
    catalog order within each integration.

    A name that is already taken (by an earlier action or by a bootstrap
    tool) is a duplicate. Under "skip" the first occurrence wins and every
    later one is logged with both integrations; under "error" the whole
    translation fails.

    Raises:
        DuplicateToolError: On a duplicate name when on_duplicate == "error"
    """
    tools: list[ToolDescriptor] = []
    owners: dict[str, str] = {name: "bootstrap" for name in BOOTSTRAP_TOOL_NAMES}

    for integration, actions in catalog.items():
        for action in actions:
            if action.name in owners:
                message = (
                    f"Duplicate tool name '{action.name}' in integration '{integration}' "
                    f"(already provided by '{owners[action.name]}')"
                )
                if on_duplicate == "error":
                    raise DuplicateToolError(message)
                logger.warning(
                    "Duplicate tool skipped",
                    extra={
                        "event_data": {
                            "tool": action.name,
                            "kept_from": owners[action.name],
                            "skipped_from": integration,
                        }
                    },
                )
                continue

            owners[action.name] = integration
            tools.append(
                ToolDescriptor(
                    name=action.name,
                    description=action.description,
                    input_schema=action.parameter_schema,
                )
            )

    return tools
