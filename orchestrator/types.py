from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import config

ContextVariables = Dict[str, str]

Instructions = Union[str, Callable[[ContextVariables], Union[str, Awaitable[str]]]]


@dataclass
class Tool:
    """A callable exposed to the model, with an optional explicit parameter schema.

    When ``parameters`` is None the schema is inferred from the callable's
    signature (see orchestrator.utils.function_to_json).
    """
    name: str
    function: Callable[..., Any]
    description: str = ""
    parameters: Optional[dict] = None

    @classmethod
    def wrap(cls, func: Union["Tool", Callable[..., Any]]) -> "Tool":
        if isinstance(func, Tool):
            return func
        if not callable(func):
            raise TypeError(f"Agent functions must be callables or Tool objects, got {func!r}")
        return cls(name=func.__name__, function=func)

    def add_parameter(
        self,
        name: str,
        json_type: str = "string",
        description: str = "",
        required: bool = True,
        enum: Optional[List[str]] = None,
    ) -> "Tool":
        """Declare one parameter of the explicit schema. Returns self for chaining."""
        if self.parameters is None:
            self.parameters = {"type": "object", "properties": {}, "required": []}
        prop: Dict[str, Any] = {"type": json_type}
        if description:
            prop["description"] = description
        if enum:
            prop["enum"] = list(enum)
        self.parameters["properties"][name] = prop
        if required and name not in self.parameters["required"]:
            self.parameters["required"].append(name)
        return self


@dataclass(eq=False)
class Agent:
    name: str
    instructions: Instructions = "You are a helpful agent."
    functions: List[Union[Tool, Callable[..., Any]]] = field(default_factory=list)
    model: str = field(default_factory=lambda: config.OPENAI_MODEL)
    tool_choice: Optional[Union[str, dict]] = None
    parallel_tool_calls: Optional[bool] = None
    context: Optional[Dict[str, Any]] = None  # seeds the context of a conversation handed to this agent

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name:
            raise ValueError("Agent name must be a non-empty string")
        if not isinstance(self.model, str) or not self.model:
            raise ValueError(f"Agent '{self.name}' needs a model")

    # Agents are identified by name only.
    def __eq__(self, other) -> bool:
        if not isinstance(other, Agent):
            return NotImplemented
        return self.name == other.name

    def __hash__(self) -> int:
        return hash(self.name)

    def tools(self) -> List[Tool]:
        return [Tool.wrap(f) for f in self.functions]

    def get_tool(self, name: str) -> Optional[Tool]:
        return next((t for t in self.tools() if t.name == name), None)


@dataclass
class Result:
    """Return type for agent tool functions."""
    value: str = ""
    agent: Optional[Agent] = None
    context_variables: Dict[str, str] = field(default_factory=dict)


@dataclass
class Handoff:
    """Explicit "transfer control to this agent" return value for tool functions."""
    agent: Agent
    context_variables: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Response:
    messages: List[dict] = field(default_factory=list)
    agent: Optional[Agent] = None
    context_variables: ContextVariables = field(default_factory=dict)


@dataclass(frozen=True)
class StreamEvent:
    """One item produced by Swarm.run_and_stream.

    Attributes:
        event_type: "delta" (partial assistant message), "end" (assistant
            message complete) or "response" (Response snapshot)
        data: the delta dict, {"sender": name}, or a Response
    """

    event_type: str
    data: Any

    @property
    def is_end(self) -> bool:
        return self.event_type == "end"
