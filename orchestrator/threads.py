"""
Thread/run protocol adapter over the provider's assistants API.

AssistantsEngine talks to this adapter only, so the engine never depends on
where the SDK keeps the beta endpoints or on positional-argument order.
"""
import logging
from typing import Any, Iterable, List, Optional

logger = logging.getLogger(__name__)

# Statuses in which a run is still moving on its own.
ACTIVE_RUN_STATUSES = frozenset({"queued", "in_progress", "cancelling"})


class ThreadsClient:
    def __init__(self, client):
        self._client = client

    @property
    def _threads(self):
        return self._client.beta.threads

    # ── Threads & messages ─────────────────────────────────────────────────────

    async def create_thread(self):
        thread = await self._threads.create()
        logger.debug("Thread created: %s", thread.id)
        return thread

    async def create_message(self, thread_id: str, content: str, role: str = "user"):
        return await self._threads.messages.create(thread_id=thread_id, role=role, content=content)

    async def list_messages(self, thread_id: str) -> List[Any]:
        """Messages of the thread, newest first."""
        page = await self._threads.messages.list(thread_id=thread_id)
        return list(page.data)

    # ── Runs ───────────────────────────────────────────────────────────────────

    async def create_run(self, thread_id: str, assistant_id: str):
        run = await self._threads.runs.create(thread_id=thread_id, assistant_id=assistant_id)
        logger.debug("Run %s started on thread %s (assistant=%s)", run.id, thread_id, assistant_id)
        return run

    async def retrieve_run(self, thread_id: str, run_id: str):
        return await self._threads.runs.retrieve(run_id=run_id, thread_id=thread_id)

    async def submit_tool_outputs(self, thread_id: str, run_id: str, tool_outputs: Iterable[dict]):
        return await self._threads.runs.submit_tool_outputs(
            run_id=run_id, thread_id=thread_id, tool_outputs=list(tool_outputs)
        )

    async def cancel_run(self, thread_id: str, run_id: str):
        return await self._threads.runs.cancel(run_id=run_id, thread_id=thread_id)

    # ── Assistants ─────────────────────────────────────────────────────────────

    async def list_assistants(self) -> List[Any]:
        page = await self._client.beta.assistants.list()
        return list(page.data)

    async def create_assistant(self, **params):
        return await self._client.beta.assistants.create(**params)


def required_tool_calls(run) -> List[Any]:
    action = getattr(run, "required_action", None)
    if action is None or action.submit_tool_outputs is None:
        return []
    return list(action.submit_tool_outputs.tool_calls)


def latest_text(messages: List[Any]) -> Optional[str]:
    """Text of the newest thread message, or None when it carries no text block."""
    if not messages:
        return None
    for block in messages[0].content or []:
        if getattr(block, "type", None) == "text":
            return block.text.value
    return None
