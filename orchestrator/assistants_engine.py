"""
AssistantsEngine — runs tasks on provider-side assistants over threads and runs.

One engine owns one active thread and one in-flight run at a time. Tool
calls requested by a run are executed locally through the same dispatcher
the Swarm engine uses; a tool that hands off cancels the run and restarts
the request on the target assistant, on the same thread.

Usage:
    engine = AssistantsEngine(create_client(), tasks=[Task("Refund order 42")])
    summary = await engine.deploy()
"""
import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Union

import config
from orchestrator.agent_loader import AgentLoader
from orchestrator.assistant import Assistant
from orchestrator.dispatcher import handle_tool_calls
from orchestrator.engine import extract_message
from orchestrator.errors import AssistantNotFoundError, ContextTransferError, MessageError, ThreadError
from orchestrator.prompts import EVALUATE_TASK_PROMPT, TRIAGE_MESSAGE_PROMPT, TRIAGE_SYSTEM_PROMPT
from orchestrator.tasks import EvaluationTask, Task, load_test_tasks
from orchestrator.threads import ACTIVE_RUN_STATUSES, ThreadsClient, latest_text, required_tool_calls
from orchestrator.types import Agent
from services.conversation_logger import ConversationLogger, conversation_logger

logger = logging.getLogger(__name__)


@dataclass
class TaskOutcome:
    task_id: str
    description: str
    assistant: Optional[str] = None
    output: Optional[str] = None
    error: Optional[str] = None
    groundtruth_passed: Optional[bool] = None  # None when the task was not scored
    assistant_passed: Optional[bool] = None


@dataclass
class DeploySummary:
    outcomes: List[TaskOutcome] = field(default_factory=list)

    @property
    def scored(self) -> List[TaskOutcome]:
        return [o for o in self.outcomes if o.groundtruth_passed is not None]

    @property
    def total_tests(self) -> int:
        return len(self.scored)

    @property
    def groundtruth_passed(self) -> int:
        return sum(1 for o in self.scored if o.groundtruth_passed)

    @property
    def assistant_passed(self) -> int:
        return sum(1 for o in self.scored if o.assistant_passed)

    @property
    def failed(self) -> List[TaskOutcome]:
        return [o for o in self.outcomes if o.error is not None]

    def success_rate(self, passed: int) -> float:
        return passed / self.total_tests * 100 if self.total_tests else 0.0


def _decoded_args(raw: Optional[str]) -> dict:
    try:
        args = json.loads(raw or "{}")
    except json.JSONDecodeError:
        return {"arguments": raw}
    return args if isinstance(args, dict) else {"arguments": args}


def _serializable(message: Any) -> Any:
    if hasattr(message, "model_dump"):
        return message.model_dump(mode="json")
    return message


class AssistantsEngine:
    def __init__(
        self,
        client,
        tasks: Optional[List[Task]] = None,
        loader: Optional[AgentLoader] = None,
        transcript_logger: Optional[ConversationLogger] = None,
        poll_interval: Optional[float] = None,
        max_handoffs: Optional[int] = None,
    ):
        self.client = client
        self.threads = ThreadsClient(client)
        self.tasks: List[Task] = list(tasks or [])
        self.assistants: List[Assistant] = []
        self.loader = loader or AgentLoader()
        self.transcripts = transcript_logger or conversation_logger
        self.poll_interval = config.RUN_POLL_INTERVAL if poll_interval is None else poll_interval
        self.max_handoffs = config.MAX_HANDOFFS if max_handoffs is None else max_handoffs
        self.thread = None
        self.run = None
        self.active_assistant: Optional[Assistant] = None

    # ── Threads ────────────────────────────────────────────────────────────────

    async def initialize_thread(self):
        self.thread = await self.threads.create_thread()
        self.run = None
        return self.thread

    async def reset_thread(self):
        return await self.initialize_thread()

    # ── Assistants ─────────────────────────────────────────────────────────────

    def add_assistant(self, assistant: Assistant) -> None:
        self.assistants.append(assistant)

    async def load_assistants(self) -> List[Assistant]:
        assistants = self.loader.build_assistants()
        await self.loader.register(self.threads, assistants)
        self.assistants = assistants
        for assistant in assistants:
            logger.info(
                "Initialized assistant %s (tools=%s)",
                assistant.name,
                [t.name for t in assistant.tools()] or "none",
            )
        return assistants

    def get_assistant(self, name: str) -> Optional[Assistant]:
        assistant = next((a for a in self.assistants if a.name == name), None)
        if assistant is None:
            logger.info("No assistant found with name '%s'", name)
        return assistant

    def _resolve(self, name: str) -> Assistant:
        assistant = self.get_assistant(name)
        if assistant is None:
            raise AssistantNotFoundError(name)
        return assistant

    async def triage_request(self, message: str) -> Optional[Assistant]:
        """Ask the model which loaded assistant should handle ``message``."""
        names = ", ".join(a.name for a in self.assistants)
        completion = await self.client.chat.completions.create(
            model=config.TRIAGE_MODEL,
            messages=[
                {"role": "system", "content": TRIAGE_SYSTEM_PROMPT},
                {"role": "user", "content": TRIAGE_MESSAGE_PROMPT.format(request=message, assistants=names)},
            ],
        )
        selected = (extract_message(completion).get("content") or "").strip()
        if not selected:
            return None
        assistant = self.get_assistant(selected)
        if assistant is not None:
            logger.info("Selected assistant: %s", assistant.name)
        return assistant

    # ── Runs ───────────────────────────────────────────────────────────────────

    async def _wait_for_run(self, run):
        while run.status in ACTIVE_RUN_STATUSES:
            await asyncio.sleep(self.poll_interval)
            run = await self.threads.retrieve_run(self.thread.id, run.id)
        self.run = run
        return run

    async def cancel_run(self):
        """Cancel the in-flight run and wait until the provider settles it."""
        if self.thread is None or self.run is None:
            raise ThreadError("No active thread or run to cancel")
        run = await self.threads.cancel_run(self.thread.id, self.run.id)
        run = await self._wait_for_run(run)
        logger.info("Run %s cancelled (status=%s)", run.id, run.status)
        return run

    def _handoff_target(self, agent: Agent) -> Assistant:
        if isinstance(agent, Assistant) and agent.instance_id:
            return agent
        return self._resolve(agent.name)

    async def run_request(self, request: str, assistant: Assistant, test_mode: bool = False) -> str:
        """Post ``request`` on the current thread and drive runs until one completes.

        Returns the text of the final thread message. Raises ThreadError when
        a run ends in any status other than completed, and MessageError when
        the final message has no text.
        """
        if not assistant.instance_id:
            raise ThreadError(f"Assistant '{assistant.name}' has no provider instance")
        if self.thread is None:
            await self.initialize_thread()

        await self.threads.create_message(self.thread.id, request)
        assistant.add_user_message(request)

        active = assistant
        context = {"request": request}
        handoffs = 0
        self.run = await self.threads.create_run(self.thread.id, active.instance_id)

        while True:
            run = await self._wait_for_run(self.run)

            if run.status == "requires_action":
                tool_calls = required_tool_calls(run)
                for call in tool_calls:
                    active.add_tool_message(call.function.name, _decoded_args(call.function.arguments))
                partial = await handle_tool_calls(tool_calls, active, context, self._resolve)
                context.update(partial.context_variables)

                if partial.agent != active:
                    await self.cancel_run()
                    if handoffs >= self.max_handoffs:
                        raise ThreadError(f"Exceeded {self.max_handoffs} handoffs for one request")
                    target = self._handoff_target(partial.agent)
                    if not target.instance_id:
                        raise ContextTransferError(f"Assistant '{target.name}' has no provider instance")
                    handoffs += 1
                    logger.info("Handoff: %s -> %s", active.name, target.name)
                    active.pass_context(target)
                    active = target
                    self.run = await self.threads.create_run(self.thread.id, active.instance_id)
                    continue

                outputs = [
                    {"tool_call_id": m["tool_call_id"], "output": m["content"]}
                    for m in partial.messages
                ]
                self.run = await self.threads.submit_tool_outputs(self.thread.id, run.id, outputs)
                continue

            if run.status != "completed":
                raise ThreadError(f"Run {run.id} ended with status '{run.status}'")
            break

        messages = await self.threads.list_messages(self.thread.id)
        text = latest_text(messages)
        if text is None:
            raise MessageError("No text content in the final thread message")

        active.add_assistant_message(text)
        self.active_assistant = active
        if not test_mode:
            await self.transcripts.save([_serializable(m) for m in messages])
        return text

    # ── Tasks ──────────────────────────────────────────────────────────────────

    async def run_task(self, task: Task, test_mode: bool = False) -> Optional[str]:
        logger.info("%s %s", "Test:" if test_mode else "User query:", task.description)
        self.active_assistant = None

        if task.assistant == "auto":
            assistant = await self.triage_request(task.description)
        else:
            assistant = self.get_assistant(task.assistant)
            if assistant is not None:
                logger.info("Selected assistant: %s", assistant.name)

        if test_mode and assistant is not None:
            task.assistant = assistant.name

        if assistant is None:
            logger.warning("No suitable assistant found for the task: %s", task.description)
            return None

        assistant.set_current_task_id(task.id)
        await self.reset_thread()
        return await self.run_request(task.description, assistant, test_mode)

    def load_test_tasks(self, path: Union[str, Path]) -> List[EvaluationTask]:
        self.tasks = list(load_test_tasks(path))
        return self.tasks

    async def evaluate_output(self, output: Optional[str], groundtruth: str) -> bool:
        completion = await self.client.chat.completions.create(
            model=config.TRIAGE_MODEL,
            messages=[{
                "role": "user",
                "content": EVALUATE_TASK_PROMPT.format(output=output, groundtruth=groundtruth),
            }],
        )
        return (extract_message(completion).get("content") or "").strip() == "True"

    async def deploy(self, test_mode: bool = False, test_file_path: Union[str, Path, None] = None) -> DeploySummary:
        """Run every task in order and return a summary.

        In test mode each EvaluationTask with a ground truth is scored on its
        answer and on the assistant that handled it. A task that raises is
        logged and recorded; the remaining tasks still run.
        """
        if test_mode and test_file_path:
            logger.info("Testing the swarm with %s", test_file_path)
            self.load_test_tasks(test_file_path)
        else:
            logger.info("Deploying the swarm")

        if not self.assistants:
            await self.load_assistants()

        summary = DeploySummary()
        for task in self.tasks:
            outcome = TaskOutcome(task_id=task.id, description=task.description)
            summary.outcomes.append(outcome)
            scored = test_mode and isinstance(task, EvaluationTask) and bool(task.groundtruth)

            try:
                outcome.output = await self.run_task(task, test_mode)
            except Exception as exc:
                logger.exception("Task %s failed", task.id)
                outcome.error = str(exc)
                if scored:
                    outcome.groundtruth_passed = False
                    outcome.assistant_passed = False
                continue

            if self.active_assistant is not None:
                outcome.assistant = self.active_assistant.name
            if not scored:
                continue

            outcome.groundtruth_passed = await self.evaluate_output(outcome.output, task.groundtruth)
            outcome.assistant_passed = task.assistant == task.expected_assistant
            logger.info(
                "%s groundtruth for: %s | expected: %s | got: %s",
                "PASS" if outcome.groundtruth_passed else "FAIL",
                task.description, task.groundtruth, outcome.output,
            )
            logger.info(
                "%s assistant for: %s | expected: %s | got: %s",
                "PASS" if outcome.assistant_passed else "FAIL",
                task.description, task.expected_assistant, task.assistant,
            )

        if test_mode:
            logger.info(
                "Passed %d groundtruth tests out of %d tests. Success rate: %.2f%%",
                summary.groundtruth_passed, summary.total_tests,
                summary.success_rate(summary.groundtruth_passed),
            )
            logger.info(
                "Passed %d assistant tests out of %d tests. Success rate: %.2f%%",
                summary.assistant_passed, summary.total_tests,
                summary.success_rate(summary.assistant_passed),
            )
        else:
            logger.info("Swarm operations complete (%d tasks, %d failed)", len(summary.outcomes), len(summary.failed))
        return summary
