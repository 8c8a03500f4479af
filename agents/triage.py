"""
Triage agent — entry point of the demo conversation.

build_triage_agent() receives the specialists from agents.registry and
builds the Triage Agent with one transfer function per specialist and a
routing instruction generated from their hints.
"""
from typing import List

from agents.registry import AgentEntry
from agents.utils import TRIAGE_AGENT_NAME, tool_slug, transfer_to
from orchestrator.types import Agent


def build_triage_agent(specialists: List[AgentEntry]) -> Agent:
    routing_bullets = "\n".join(
        f"• {entry.routing_hint} → call transfer_to_{tool_slug(entry.agent)}"
        for entry in specialists
    )
    return Agent(
        name=TRIAGE_AGENT_NAME,
        instructions=_build_instruction(routing_bullets),
        functions=[transfer_to(entry.agent, entry.routing_hint) for entry in specialists],
    )


def _build_instruction(routing_bullets: str) -> str:
    return (
        "Determine which agent is best suited to handle the user's request. "
        "Do NOT answer domain questions yourself. Always transfer:\n\n"
        f"{routing_bullets}\n\n"
        "Only transfer to one agent, not both. When transferring, pass the user's full request "
        "as the request argument. If you truly cannot determine the topic, ask for clarification."
    )
