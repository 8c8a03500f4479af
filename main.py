"""
Demo loop.

    python main.py                      # chat with the Triage Agent (Swarm engine)
    python main.py --stream --debug     # stream tokens, log engine traces
    python main.py --engine assistants  # run tasks on provider assistants
    python main.py --engine assistants --test-file tests/test_tasks.jsonl
"""
import argparse
import asyncio
import json
import logging
from typing import List, Optional

import config  # Must be imported first: loads .env
from agent import all_agents, root_agent
from orchestrator.assistants_engine import AssistantsEngine
from orchestrator.client import create_client
from orchestrator.engine import Swarm
from orchestrator.tasks import Task

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
# Silence verbose INFO from the SDK's HTTP layer, keep WARNING+ only
logging.getLogger("openai").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def pretty_print_messages(messages) -> None:
    for message in messages:
        if message["role"] != "assistant":
            continue
        print(f"\033[94m{message.get('sender', 'assistant')}\033[0m:", end=" ")
        if message.get("content"):
            print(message["content"])
        for tool_call in message.get("tool_calls") or []:
            function = tool_call["function"]
            args = json.loads(function["arguments"] or "{}")
            arg_str = ", ".join(f"{k}={v!r}" for k, v in args.items())
            print(f"\033[95m{function['name']}\033[0m({arg_str})")


async def print_streaming_response(events):
    content_started = False
    response = None
    async for event in events:
        if event.event_type == "delta":
            delta = event.data
            if "sender" in delta:
                print(f"\033[94m{delta['sender']}\033[0m:", end=" ", flush=True)
            if delta.get("content"):
                content_started = True
                print(delta["content"], end="", flush=True)
            for fragment in delta.get("tool_calls") or []:
                name = (fragment.get("function") or {}).get("name")
                if name:
                    print(f"\033[95m{name}\033[0m()", flush=True)
        elif event.event_type == "end":
            if content_started:
                print()
            content_started = False
        elif event.event_type == "response":
            response = event.data
    return response


async def run_demo_loop(stream: bool = False, debug: bool = False) -> None:
    swarm = Swarm(create_client(), agents=all_agents)
    print("Starting Swarm CLI 🐝 (Ctrl-D to quit)")

    messages = []
    agent = root_agent
    context_variables = {}
    while True:
        try:
            user_input = await asyncio.to_thread(input, "\033[90mUser\033[0m: ")
        except EOFError:
            break
        messages.append({"role": "user", "content": user_input})

        if stream:
            response = await print_streaming_response(
                swarm.run_and_stream(agent, messages, context_variables=context_variables, debug=debug)
            )
        else:
            response = await swarm.run(agent, messages, context_variables=context_variables, debug=debug)
            pretty_print_messages(response.messages)

        messages.extend(response.messages)
        agent = response.agent
        context_variables = response.context_variables


async def run_assistants(test_file: Optional[str] = None, tasks: Optional[List[str]] = None) -> None:
    engine = AssistantsEngine(create_client(), tasks=[Task(t) for t in tasks or []])
    summary = await engine.deploy(test_mode=bool(test_file), test_file_path=test_file)
    for outcome in summary.outcomes:
        print(f"\033[94m{outcome.assistant or '-'}\033[0m: {outcome.output or outcome.error}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Multi-agent handoff demo")
    parser.add_argument("--engine", choices=("swarm", "assistants"), default="swarm")
    parser.add_argument("--stream", action="store_true", help="stream tokens (swarm engine)")
    parser.add_argument("--debug", action="store_true", help="log engine traces at INFO")
    parser.add_argument("--test-file", help="JSONL evaluation tasks (assistants engine)")
    parser.add_argument("tasks", nargs="*", help="task descriptions (assistants engine)")
    args = parser.parse_args()

    if args.engine == "assistants":
        asyncio.run(run_assistants(args.test_file, args.tasks))
    else:
        asyncio.run(run_demo_loop(stream=args.stream, debug=args.debug))


if __name__ == "__main__":
    main()
