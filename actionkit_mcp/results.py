"""Normalized tool-call result envelope."""

import json
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ActionResult:
    """
    Result of one tool call, rendered as {"content": [{"type": "text", "text": ...}]}.

    Errors use the same shape with a JSON-encoded {"error": message} text,
    so the client never sees a protocol-level failure for a tool problem.

    Attributes:
        text: The single text content block
        is_error: True when `text` carries an error object
        tools_changed: True when the call changed the session's exposed tool set
    """

    text: str
    is_error: bool = False
    tools_changed: bool = False

    @classmethod
    def from_payload(cls, payload: Any, tools_changed: bool = False) -> "ActionResult":
        return cls(text=json.dumps(payload), tools_changed=tools_changed)

    @classmethod
    def from_error(cls, message: str) -> "ActionResult":
        return cls(text=json.dumps({"error": message}), is_error=True)

    @property
    def content(self) -> list[dict[str, str]]:
        return [{"type": "text", "text": self.text}]

    def to_envelope(self) -> dict[str, Any]:
        return {"content": self.content}
