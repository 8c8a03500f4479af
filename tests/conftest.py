"""
Pytest configuration and fixtures.

Provider responses are built as real openai SDK types (ChatCompletion,
ChatCompletionChunk) so the engines see the same objects they get in
production. Thread/run objects are SimpleNamespaces with the attributes the
engine reads.
"""
import json
from types import SimpleNamespace
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock

import pytest
from openai.types.chat import ChatCompletion, ChatCompletionChunk


# ── Chat completions ──────────────────────────────────────────────────────────

def tool_call(name: str, args: Optional[Dict[str, Any]] = None, call_id: str = "call_1") -> dict:
    return {
        "id": call_id,
        "type": "function",
        "function": {"name": name, "arguments": json.dumps(args or {})},
    }


def make_completion(content: Optional[str] = None, tool_calls: Optional[List[dict]] = None) -> ChatCompletion:
    message: Dict[str, Any] = {"role": "assistant", "content": content}
    if tool_calls:
        message["tool_calls"] = tool_calls
    return ChatCompletion.model_validate({
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "created": 0,
        "model": "gpt-4o",
        "choices": [{
            "index": 0,
            "finish_reason": "tool_calls" if tool_calls else "stop",
            "message": message,
        }],
    })


def make_chunk(
    content: Optional[str] = None,
    role: Optional[str] = None,
    tool_calls: Optional[List[dict]] = None,
) -> ChatCompletionChunk:
    delta: Dict[str, Any] = {}
    if role:
        delta["role"] = role
    if content is not None:
        delta["content"] = content
    if tool_calls:
        delta["tool_calls"] = tool_calls
    return ChatCompletionChunk.model_validate({
        "id": "chatcmpl-chunk",
        "object": "chat.completion.chunk",
        "created": 0,
        "model": "gpt-4o",
        "choices": [{"index": 0, "delta": delta, "finish_reason": None}],
    })


def text_stream(*parts: str) -> List[ChatCompletionChunk]:
    chunks = [make_chunk(content=parts[0], role="assistant")]
    chunks.extend(make_chunk(content=p) for p in parts[1:])
    return chunks


async def as_stream(chunks):
    for chunk in chunks:
        yield chunk


# ── Threads & runs ────────────────────────────────────────────────────────────

def make_run(run_id: str, status: str, tool_calls: Optional[List[tuple]] = None):
    """tool_calls: (call_id, name, args) triples for a requires_action run."""
    required_action = None
    if tool_calls:
        required_action = SimpleNamespace(submit_tool_outputs=SimpleNamespace(tool_calls=[
            SimpleNamespace(
                id=call_id,
                type="function",
                function=SimpleNamespace(name=name, arguments=json.dumps(args)),
            )
            for call_id, name, args in tool_calls
        ]))
    return SimpleNamespace(id=run_id, status=status, required_action=required_action)


def text_message(text: str):
    return SimpleNamespace(
        role="assistant",
        content=[SimpleNamespace(type="text", text=SimpleNamespace(value=text))],
    )


class FakeClient:
    """Stand-in for AsyncOpenAI exposing only the endpoints the engines call."""

    def __init__(self, completions: Optional[list] = None):
        self.chat = SimpleNamespace(completions=SimpleNamespace(
            create=AsyncMock(side_effect=list(completions or []))
        ))
        self.beta = SimpleNamespace(
            threads=SimpleNamespace(
                create=AsyncMock(side_effect=self._new_thread),
                messages=SimpleNamespace(
                    create=AsyncMock(),
                    list=AsyncMock(return_value=SimpleNamespace(data=[text_message("Hello!")])),
                ),
                runs=SimpleNamespace(
                    create=AsyncMock(),
                    retrieve=AsyncMock(),
                    submit_tool_outputs=AsyncMock(),
                    cancel=AsyncMock(),
                ),
            ),
            assistants=SimpleNamespace(
                list=AsyncMock(return_value=SimpleNamespace(data=[])),
                create=AsyncMock(side_effect=lambda **kw: SimpleNamespace(id=f"asst_{kw['name']}", name=kw["name"])),
            ),
        )
        self._threads_created = 0

    async def _new_thread(self):
        self._threads_created += 1
        return SimpleNamespace(id=f"thread_{self._threads_created}")

    @property
    def create(self) -> AsyncMock:
        return self.chat.completions.create

    def request(self, index: int = -1) -> dict:
        """Keyword arguments of one chat.completions.create call."""
        return self.create.call_args_list[index].kwargs


@pytest.fixture
def transcripts():
    """A transcript logger that records instead of writing files."""
    return SimpleNamespace(save=AsyncMock(return_value=None))
