import inspect
import logging
from typing import Any, Dict, List, Mapping, Optional

from orchestrator.types import Agent, ContextVariables, Tool

logger = logging.getLogger("orchestrator")

# Parameter injected by the dispatcher, never shown to the model.
CTX_VARS_NAME = "context_variables"

_VARIADIC = (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)


def trace(debug: bool, msg: str, *args) -> None:
    """Engine trace line: INFO when the run was started with debug=True, else DEBUG."""
    logger.log(logging.INFO if debug else logging.DEBUG, msg, *args)


def _describe(tool: Tool) -> str:
    if tool.description:
        return tool.description
    doc = (tool.function.__doc__ or "").strip()
    return doc.split("\n")[0] if doc else f"Call {tool.name}"


def infer_parameters(func) -> Dict[str, Any]:
    """Build a parameter schema from a callable's signature.

    Every parameter is typed as a string and marked required. Functions with
    *args or **kwargs cannot be described this way and need an explicit schema.
    """
    sig = inspect.signature(func)
    names = []
    for name, param in sig.parameters.items():
        if param.kind in _VARIADIC:
            raise ValueError(
                f"Cannot infer a schema for {getattr(func, '__name__', func)!r}: "
                f"variadic parameter '{name}'. Declare the parameters explicitly."
            )
        if name in ("self", "cls"):
            continue
        names.append(name)
    return {
        "type": "object",
        "properties": {name: {"type": "string"} for name in names},
        "required": list(names),
    }


def function_to_json(tool: Tool) -> dict:
    """Return the chat-completion tool spec for a Tool, minus the context parameter."""
    if tool.parameters is not None:
        params = {
            "type": tool.parameters.get("type", "object"),
            "properties": dict(tool.parameters.get("properties", {})),
            "required": list(tool.parameters.get("required", [])),
        }
    else:
        params = infer_parameters(tool.function)

    params["properties"].pop(CTX_VARS_NAME, None)
    params["required"] = [p for p in params["required"] if p != CTX_VARS_NAME]

    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": _describe(tool),
            "parameters": params,
        },
    }


def build_tools(agent: Agent) -> List[dict]:
    return [function_to_json(t) for t in agent.tools()]


def coerce_context(values: Optional[Mapping[str, Any]]) -> ContextVariables:
    """Context variables are string-valued; anything else is str()'d."""
    if not values:
        return {}
    return {str(k): v if isinstance(v, str) else str(v) for k, v in values.items()}


# ── Streaming delta merge ─────────────────────────────────────────────────────

def merge_fields(target: dict, source: Mapping[str, Any]) -> None:
    """Recursively fold source into target.

    Strings concatenate, nested dicts merge field by field, None is skipped,
    everything else overwrites.
    """
    for key, value in source.items():
        if value is None:
            continue
        if isinstance(value, str):
            current = target.get(key)
            target[key] = current + value if isinstance(current, str) else value
        elif isinstance(value, Mapping):
            if not isinstance(target.get(key), dict):
                target[key] = {}
            merge_fields(target[key], value)
        else:
            target[key] = value


def _empty_tool_call() -> dict:
    return {"id": "", "type": "", "function": {"name": "", "arguments": ""}}


def merge_chunk(message: dict, delta: Mapping[str, Any]) -> None:
    """Fold one streamed delta into the assistant message being assembled.

    The role is fixed by the caller and not merged. Tool call fragments are
    merged into the entry with the same ``index``.
    """
    rest = {k: v for k, v in delta.items() if k not in ("role", "tool_calls")}
    merge_fields(message, rest)

    fragments = delta.get("tool_calls") or []
    calls = message.setdefault("tool_calls", [])
    for fragment in fragments:
        index = fragment.get("index")
        if index is None:
            index = len(calls) if fragment.get("id") else max(len(calls) - 1, 0)
        while len(calls) <= index:
            calls.append(_empty_tool_call())
        merge_fields(calls[index], {k: v for k, v in fragment.items() if k != "index"})
