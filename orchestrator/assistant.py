from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from orchestrator.messages import Message, ToolInvocation, to_wire
from orchestrator.types import Agent, Instructions
from services.conversation_logger import ConversationLogger, conversation_logger


@dataclass(eq=False)
class Assistant(Agent):
    """An agent with its own conversation history and a provider-side instance.

    ``instance_id`` is the id of the assistant object on the provider, set
    by AgentLoader.register(). History entries are tagged with the task that
    was current when they were added.
    """
    instructions: Instructions = "You are a helpful assistant."
    history: List[Message] = field(default_factory=list)
    log_flag: bool = False
    instance_id: Optional[str] = None
    current_task_id: Optional[str] = None

    def initialize_history(self) -> None:
        self.history = []

    def set_current_task_id(self, task_id: Optional[str]) -> None:
        self.current_task_id = task_id

    def add_user_message(self, content: str) -> Message:
        return self._append(Message(role="user", content=content))

    def add_assistant_message(self, content: str) -> Message:
        return self._append(Message(role="assistant", content=content, sender=self.name))

    def add_tool_message(self, name: str, args: Dict[str, Any]) -> Message:
        return self._append(Message(
            role="user",
            content=f"Tool used: {name}",
            tool=ToolInvocation(name=name, args=dict(args)),
        ))

    def _append(self, message: Message) -> Message:
        message.task_id = self.current_task_id
        self.history.append(message)
        return message

    def pass_context(self, other: "Assistant") -> None:
        other.history = list(self.history)

    def wire_history(self) -> List[dict]:
        return [to_wire(m) for m in self.history]

    def format_conversation(self) -> str:
        by_task: "OrderedDict[str, List[Message]]" = OrderedDict()
        for message in self.history:
            by_task.setdefault(message.task_id or "default", []).append(message)

        lines = [f"Conversation with Assistant: {self.name}", ""]
        for task_id, messages in by_task.items():
            lines.append(f"Task ID: {task_id}")
            for message in messages:
                if message.tool:
                    args = ", ".join(f"{k}: {v}" for k, v in message.tool.args.items())
                    lines.append(f"Tool: {message.tool.name}({args})")
                elif message.role == "user":
                    lines.append(f"User: {message.content}")
                elif message.role == "assistant":
                    lines.append(f"Assistant: {message.content}")
            lines.append("")
        return "\n".join(lines)

    async def save_conversation(
        self, transcript_logger: Optional[ConversationLogger] = None, filename: Optional[str] = None
    ):
        """Persist the history through the transcript logger. Returns the file path or None."""
        transcript_logger = transcript_logger or conversation_logger
        return await transcript_logger.save([m.to_dict() for m in self.history], filename)
