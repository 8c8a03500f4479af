"""Prompts for the one-shot helper completions of the thread engine."""

TRIAGE_SYSTEM_PROMPT = (
    "You route user requests to the assistant best suited to handle them. "
    "Reply with the assistant name only, exactly as listed, and nothing else."
)

TRIAGE_MESSAGE_PROMPT = (
    "Request: {request}\n"
    "Available assistants: {assistants}\n"
    "Which assistant should handle this request?"
)

EVALUATE_TASK_PROMPT = (
    "Compare the answer below with the expected answer.\n"
    "Answer: {output}\n"
    "Expected answer: {groundtruth}\n"
    "Reply True if the answer is consistent with the expected answer, otherwise False. "
    "Reply with True or False only."
)
