import inspect
import logging
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Union

from orchestrator.dispatcher import handle_tool_calls
from orchestrator.errors import AssistantNotFoundError, MalformedResponseError
from orchestrator.messages import Message, to_wire
from orchestrator.types import Agent, ContextVariables, Response, StreamEvent
from orchestrator.utils import build_tools, coerce_context, merge_chunk, trace

logger = logging.getLogger(__name__)

# Transcript annotations that are not part of the provider's message schema.
_TRANSCRIPT_ONLY_KEYS = ("sender", "tool_name")

UNBOUNDED = float("inf")


async def resolve_instructions(agent: Agent, context: ContextVariables) -> str:
    if callable(agent.instructions):
        instructions = agent.instructions(dict(context))
        if inspect.isawaitable(instructions):
            instructions = await instructions
        return instructions
    return agent.instructions


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _as_dict(obj: Any) -> dict:
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return dict(obj)
    return obj.model_dump(exclude_none=True)


def _history_entry(message: Union[dict, Message]) -> dict:
    return to_wire(message) if isinstance(message, Message) else dict(message)


def _request_message(message: dict) -> dict:
    return {k: v for k, v in message.items() if k not in _TRANSCRIPT_ONLY_KEYS}


def extract_message(completion: Any) -> dict:
    """Pull the assistant message out of a chat completion as a wire dict."""
    choices = _field(completion, "choices")
    if not choices:
        raise MalformedResponseError("Unexpected completion format: no choices")
    message = _field(choices[0], "message")
    if message is None:
        raise MalformedResponseError("Unexpected completion format: choice has no message")

    data = _as_dict(message)
    data.setdefault("role", "assistant")
    data.setdefault("content", None)
    if not data.get("tool_calls"):
        data.pop("tool_calls", None)
    return data


class Swarm:
    """Drives agents through chat-completion turns, tool calls and handoffs.

    The provider client is injected (see orchestrator.client.create_client).
    Agents registered here can be targeted by name from transfer tools.
    """

    def __init__(self, client, agents: Optional[Iterable[Agent]] = None):
        self.client = client
        self._agents: Dict[str, Agent] = {}
        for agent in agents or []:
            self.register_agent(agent)

    # ── Agent registry ─────────────────────────────────────────────────────────

    def register_agent(self, agent: Agent) -> None:
        self._agents[agent.name] = agent

    def get_agent(self, name: str) -> Agent:
        try:
            return self._agents[name]
        except KeyError:
            raise AssistantNotFoundError(name) from None

    @property
    def agents(self) -> List[Agent]:
        return list(self._agents.values())

    # ── Provider call ──────────────────────────────────────────────────────────

    async def get_chat_completion(
        self,
        agent: Agent,
        history: List[dict],
        context_variables: ContextVariables,
        model_override: Optional[str],
        stream: bool,
        debug: bool,
    ):
        instructions = await resolve_instructions(agent, context_variables)
        messages = [{"role": "system", "content": instructions}]
        messages.extend(_request_message(m) for m in history)
        trace(debug, "Getting chat completion for: %s", messages)

        tools = build_tools(agent)
        params: Dict[str, Any] = {
            "model": model_override or agent.model,
            "messages": messages,
        }
        if stream:
            params["stream"] = True
        if tools:
            params["tools"] = tools
            if agent.tool_choice is not None:
                params["tool_choice"] = agent.tool_choice
            if agent.parallel_tool_calls is not None:
                params["parallel_tool_calls"] = agent.parallel_tool_calls

        return await self.client.chat.completions.create(**params)

    # ── Turn loop ──────────────────────────────────────────────────────────────

    async def run(
        self,
        agent: Agent,
        messages: List[Union[dict, Message]],
        context_variables: Optional[Dict[str, Any]] = None,
        model_override: Optional[str] = None,
        stream: bool = False,
        debug: bool = False,
        max_turns: float = UNBOUNDED,
        execute_tools: bool = True,
    ) -> Union[Response, AsyncIterator[StreamEvent]]:
        """Run the conversation until the model stops calling tools or hands off.

        ``max_turns`` caps the number of completions (at least one is always
        made); 0 means a single completion with no tool execution. Returns a
        Response holding only the messages produced by this call. With
        ``stream=True`` the run_and_stream iterator is returned instead.
        """
        if stream:
            return self.run_and_stream(
                agent,
                messages,
                context_variables=context_variables,
                model_override=model_override,
                debug=debug,
                max_turns=max_turns,
                execute_tools=execute_tools,
            )

        active_agent = agent
        context = coerce_context(context_variables)
        history = [_history_entry(m) for m in messages]
        init_len = len(history)

        turn = 0
        while turn < max(max_turns, 1):
            turn += 1
            trace(debug, "Turn %s, current agent: %s", turn, active_agent.name)

            completion = await self.get_chat_completion(
                active_agent, history, context, model_override, False, debug
            )
            message = extract_message(completion)
            message["sender"] = active_agent.name
            trace(debug, "Received completion: %s", message)
            history.append(message)

            tool_calls = message.get("tool_calls")
            if not tool_calls or not execute_tools or max_turns <= 0:
                trace(debug, "Ending turn.")
                break

            partial = await handle_tool_calls(
                tool_calls, active_agent, context, self.get_agent, debug
            )
            history.extend(partial.messages)
            context.update(partial.context_variables)

            if partial.agent != active_agent:
                active_agent = partial.agent
                logger.info("Agent changed to: %s", active_agent.name)
                history.append({"role": "system", "content": f"Switching to {active_agent.name}"})
                break

        return Response(
            messages=history[init_len:],
            agent=active_agent,
            context_variables=context,
        )

    async def run_and_stream(
        self,
        agent: Agent,
        messages: List[Union[dict, Message]],
        context_variables: Optional[Dict[str, Any]] = None,
        model_override: Optional[str] = None,
        debug: bool = False,
        max_turns: float = UNBOUNDED,
        execute_tools: bool = True,
    ) -> AsyncIterator[StreamEvent]:
        """Streaming form of run().

        Yields a "delta" event per chunk (before it is merged), an "end" event
        after each assistant message, a "response" snapshot after each tool
        dispatch that keeps the same agent, and a final "response" snapshot.
        Stop iterating to cancel.
        """
        active_agent = agent
        context = coerce_context(context_variables)
        history = [_history_entry(m) for m in messages]
        init_len = len(history)

        turn = 0
        while turn < max(max_turns, 1):
            turn += 1
            message: Dict[str, Any] = {
                "content": "",
                "sender": active_agent.name,
                "role": "assistant",
                "tool_calls": [],
            }

            completion = await self.get_chat_completion(
                active_agent, history, context, model_override, True, debug
            )

            if hasattr(completion, "__aiter__"):
                async for chunk in completion:
                    choices = _field(chunk, "choices")
                    if not choices:
                        continue
                    delta = _as_dict(_field(choices[0], "delta"))
                    event = dict(delta)
                    if delta.get("role") == "assistant":
                        event["sender"] = active_agent.name
                    yield StreamEvent("delta", event)
                    merge_chunk(message, delta)
            else:
                full = extract_message(completion)
                yield StreamEvent("delta", {**full, "sender": active_agent.name})
                merge_chunk(message, full)

            yield StreamEvent("end", {"sender": active_agent.name})

            if not message["tool_calls"]:
                del message["tool_calls"]
            trace(debug, "Received completion: %s", message)
            history.append(message)

            if "tool_calls" not in message or not execute_tools or max_turns <= 0:
                trace(debug, "Ending turn.")
                break

            partial = await handle_tool_calls(
                message["tool_calls"], active_agent, context, self.get_agent, debug
            )
            history.extend(partial.messages)
            context.update(partial.context_variables)

            if partial.agent != active_agent:
                active_agent = partial.agent
                logger.info("Agent changed to: %s", active_agent.name)
                history.append({"role": "system", "content": f"Switching to {active_agent.name}"})
                break

            yield StreamEvent("response", Response(
                messages=list(history[init_len:]),
                agent=active_agent,
                context_variables=dict(context),
            ))

        yield StreamEvent("response", Response(
            messages=list(history[init_len:]),
            agent=active_agent,
            context_variables=dict(context),
        ))
