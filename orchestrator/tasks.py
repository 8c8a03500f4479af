"""Tasks run by AssistantsEngine.deploy(), and the JSONL loader for test tasks."""
import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, ValidationError

import config

logger = logging.getLogger(__name__)


@dataclass
class Task:
    description: str
    assistant: str = field(default_factory=lambda: config.DEFAULT_TASK_ASSISTANT)  # "auto" = triage
    iterate: bool = False
    evaluate: bool = False
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass
class EvaluationTask(Task):
    groundtruth: str = ""
    expected_assistant: str = ""
    expected_plan: Optional[str] = None
    eval_function: Optional[str] = None


class EvaluationCase(BaseModel):
    """One line of a test-task JSONL file."""
    text: str
    assistant: Optional[str] = None
    groundtruth: str = ""
    expected_assistant: str = ""


def load_test_tasks(path: Union[str, Path]) -> List[EvaluationTask]:
    """Read a JSONL file of evaluation cases. Blank lines are ignored."""
    tasks: List[EvaluationTask] = []
    with open(path, encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                case = EvaluationCase.model_validate_json(line)
            except ValidationError as exc:
                raise ValueError(f"{path}:{lineno}: invalid test case: {exc}") from exc
            tasks.append(EvaluationTask(
                description=case.text,
                assistant=case.assistant or config.DEFAULT_TASK_ASSISTANT,
                groundtruth=case.groundtruth,
                expected_assistant=case.expected_assistant,
                iterate=False,
                evaluate=True,
            ))
    logger.info("Loaded %d test tasks from %s", len(tasks), path)
    return tasks
