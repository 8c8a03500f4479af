"""
Tool-call dispatcher — executes the functions requested by one assistant
message and classifies what they return.

Shared by both engines: Swarm (chat completions) feeds it the tool_calls of
an assistant message, AssistantsEngine feeds it the calls of a run that
requires action.
"""
import inspect
import json
import logging
from typing import Any, Callable, Iterable, Optional, Tuple

from orchestrator.errors import ToolClassificationError, TransferError
from orchestrator.transfer import TransferResponse
from orchestrator.types import Agent, ContextVariables, Handoff, Response, Result, Tool
from orchestrator.utils import CTX_VARS_NAME, coerce_context, trace

logger = logging.getLogger(__name__)

AgentResolver = Callable[[str], Agent]


def tool_call_parts(tool_call: Any) -> Tuple[str, str, str]:
    """(id, function name, raw JSON arguments) of a wire dict or SDK tool call."""
    if isinstance(tool_call, dict):
        function = tool_call.get("function") or {}
        return tool_call.get("id", ""), function.get("name", ""), function.get("arguments") or ""
    function = tool_call.function
    return tool_call.id, function.name, function.arguments or ""


def handoff_envelope(agent_name: str) -> str:
    return json.dumps({"assistant": agent_name})


def _parameter(func: Callable, name: str) -> Optional[inspect.Parameter]:
    try:
        params = inspect.signature(func).parameters
    except (TypeError, ValueError):
        return None
    if name in params:
        return params[name]
    for param in params.values():
        if param.kind is inspect.Parameter.VAR_KEYWORD:
            return inspect.Parameter(name, inspect.Parameter.KEYWORD_ONLY, default=None)
    return None


def classify_result(raw: Any, resolve_agent: Optional[AgentResolver] = None) -> Result:
    if isinstance(raw, Result):
        return raw

    if isinstance(raw, Handoff):
        return Result(
            value=handoff_envelope(raw.agent.name),
            agent=raw.agent,
            context_variables=coerce_context(raw.context_variables),
        )

    if isinstance(raw, Agent):
        return Result(
            value=handoff_envelope(raw.name),
            agent=raw,
            context_variables=coerce_context(raw.context),
        )

    if isinstance(raw, TransferResponse):
        if resolve_agent is None:
            raise TransferError(f"No agent registry available to resolve '{raw.assistant}'")
        target = resolve_agent(raw.assistant)
        context = {"request": raw.context.request}
        if raw.context.history:
            context["history"] = json.dumps([item.model_dump() for item in raw.context.history])
        return Result(value=handoff_envelope(target.name), agent=target, context_variables=context)

    if isinstance(raw, str):
        return Result(value=raw)

    try:
        return Result(value=json.dumps(raw))
    except (TypeError, ValueError) as exc:
        raise ToolClassificationError(raw, exc) from exc


def prepare_arguments(tool: Tool, arguments: dict, context_variables: ContextVariables) -> dict:
    """Keyword arguments for one tool call, checked against the function's signature.

    ``request`` from the context is passed ahead of the model's arguments when
    the function takes it; ``context_variables`` is passed when the function
    declares it. Raises TypeError when the result does not bind.
    """
    kwargs = dict(arguments)

    request_param = _parameter(tool.function, "request")
    if request_param is not None and (
        "request" in context_variables or request_param.default is inspect.Parameter.empty
    ):
        kwargs = {"request": context_variables.get("request", ""), **kwargs}

    try:
        signature = inspect.signature(tool.function)
    except (TypeError, ValueError):
        return kwargs
    if CTX_VARS_NAME in signature.parameters:
        kwargs[CTX_VARS_NAME] = dict(context_variables)

    signature.bind(**kwargs)
    return kwargs


async def execute_tool(
    tool: Tool,
    arguments: dict,
    context_variables: ContextVariables,
    resolve_agent: Optional[AgentResolver] = None,
) -> Result:
    """Invoke one tool with the model's arguments and classify the return value.

    Arguments that do not fit the signature raise TypeError before the call
    (see prepare_arguments). Exceptions raised by the function propagate.
    """
    kwargs = prepare_arguments(tool, arguments, context_variables)
    return await _invoke(tool, kwargs, resolve_agent)


async def _invoke(tool: Tool, kwargs: dict, resolve_agent: Optional[AgentResolver]) -> Result:
    try:
        raw = tool.function(**kwargs)
        if inspect.isawaitable(raw):
            raw = await raw
    except Exception as e:
        logger.error("Tool '%s' raised: %s", tool.name, e)
        raise

    return classify_result(raw, resolve_agent)


def _tool_message(call_id: str, name: str, content: str) -> dict:
    return {"role": "tool", "tool_call_id": call_id, "tool_name": name, "content": content}


async def handle_tool_calls(
    tool_calls: Iterable[Any],
    agent: Agent,
    context_variables: ContextVariables,
    resolve_agent: Optional[AgentResolver] = None,
    debug: bool = False,
) -> Response:
    """Run the tool calls of one assistant turn, in order.

    Returns the tool messages produced, the merged context variables and the
    active agent. A handoff ends the batch: remaining calls are not executed
    and get a "Skipped" tool message so every call id still has a reply.
    """
    calls = list(tool_calls)
    messages: list = []
    context = dict(context_variables)
    active = agent

    for position, tool_call in enumerate(calls):
        call_id, name, raw_args = tool_call_parts(tool_call)

        tool = agent.get_tool(name)
        if tool is None:
            logger.warning("Tool '%s' not found on agent '%s'.", name, agent.name)
            messages.append(_tool_message(call_id, name, f"Error: Function {name} not found"))
            continue

        try:
            arguments = json.loads(raw_args) if raw_args.strip() else {}
        except json.JSONDecodeError as e:
            logger.warning("Tool '%s' called with malformed arguments: %s", name, e)
            messages.append(_tool_message(call_id, name, f"Error: Invalid arguments for {name}: {e}"))
            continue
        if not isinstance(arguments, dict):
            messages.append(_tool_message(
                call_id, name, f"Error: Invalid arguments for {name}: expected a JSON object"
            ))
            continue

        try:
            kwargs = prepare_arguments(tool, arguments, context)
        except TypeError as e:
            logger.warning("Tool '%s' called with arguments that do not fit its signature: %s", name, e)
            messages.append(_tool_message(call_id, name, f"Error: Invalid arguments for {name}: {e}"))
            continue

        trace(debug, "Processing tool call: %s with arguments %s", name, arguments)
        result = await _invoke(tool, kwargs, resolve_agent)

        context.update(coerce_context(result.context_variables))
        messages.append(_tool_message(call_id, name, str(result.value)))

        if result.agent is not None:
            logger.info("Handoff: %s -> %s", agent.name, result.agent.name)
            active = result.agent
            for skipped in calls[position + 1:]:
                skipped_id, skipped_name, _ = tool_call_parts(skipped)
                messages.append(_tool_message(
                    skipped_id,
                    skipped_name,
                    f"Skipped: {skipped_name} was not executed after handoff to {active.name}",
                ))
            break

    return Response(messages=messages, agent=active, context_variables=context)
