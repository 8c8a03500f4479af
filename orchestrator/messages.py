"""
Transcript records and their conversion to/from the chat-completion wire format.

The engines work on wire dicts (what the provider sends and accepts).
Message is the caller-facing record: it keeps the speaking agent, the task
a line belongs to and, for assistant turns that used a tool, the tool name
and decoded arguments.
"""
import json
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

from orchestrator.errors import MessageError

ROLES = ("system", "user", "assistant", "function", "tool")


@dataclass
class ToolInvocation:
    name: str
    args: Dict[str, Any]


@dataclass
class Message:
    role: str
    content: str = ""
    sender: Optional[str] = None
    task_id: Optional[str] = None
    tool: Optional[ToolInvocation] = None
    refusal: Optional[str] = None
    tool_call_id: Optional[str] = None

    def __post_init__(self):
        if self.role not in ROLES:
            raise MessageError(f"unknown role '{self.role}'")

    def to_dict(self) -> dict:
        """Plain JSON-friendly form used for transcript files."""
        data: Dict[str, Any] = {"role": self.role, "content": self.content}
        if self.sender:
            data["sender"] = self.sender
        if self.task_id:
            data["task_id"] = self.task_id
        if self.tool:
            data["tool"] = {"name": self.tool.name, "args": self.tool.args}
        if self.refusal is not None:
            data["refusal"] = self.refusal
        return data


def _synthetic_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:24]}"


def to_wire(message: Message) -> dict:
    """Convert a Message into a chat-completion request message."""
    if message.tool:
        return {
            "role": "assistant",
            "content": message.content,
            "tool_calls": [{
                "id": _synthetic_call_id(),
                "type": "function",
                "function": {
                    "name": message.tool.name,
                    "arguments": json.dumps(message.tool.args),
                },
            }],
        }

    if message.role == "function":
        return {"role": "function", "content": message.content, "name": "unknown"}

    if message.role == "tool":
        return {
            "role": "tool",
            "content": message.content,
            "tool_call_id": message.tool_call_id or "unknown",
        }

    wire = {"role": message.role, "content": message.content}
    if message.sender:
        wire["name"] = message.sender
    return wire


def from_wire(wire: dict) -> Message:
    """Convert a wire message (request or response shape) back into a Message.

    Accepts the engine's transcript dicts, where the speaking agent is kept
    under "sender", as well as plain provider dicts using "name".
    """
    role = wire.get("role")
    if role == "function":
        raise MessageError("Function messages not supported")

    content = wire.get("content")
    message = Message(
        role=role,
        content=content if isinstance(content, str) else "",
        sender=wire.get("sender") or wire.get("name"),
        refusal=wire.get("refusal"),
        tool_call_id=wire.get("tool_call_id"),
    )

    tool_calls = wire.get("tool_calls") or []
    if tool_calls:
        function = tool_calls[0]["function"]
        try:
            args = json.loads(function.get("arguments") or "{}")
        except json.JSONDecodeError as exc:
            raise MessageError(f"tool call arguments are not valid JSON: {exc}") from exc
        message.tool = ToolInvocation(name=function["name"], args=args)

    return message
