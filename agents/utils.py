"""Shared utilities for the demo agents."""
import logging
from typing import Callable

from orchestrator.transfer import TransferPayload, TransferResponse, create_transfer_tool
from orchestrator.types import Agent

logger = logging.getLogger(__name__)

TRIAGE_AGENT_NAME = "Triage Agent"

# Resolved by name through the engine's agent registry, so specialists never
# import the triage agent.
transfer_back_to_triage = create_transfer_tool(
    "transfer_back_to_triage",
    "Transfer the conversation back to the triage agent when the user asks about a different topic.",
    TRIAGE_AGENT_NAME,
)


def back_to_triage(summary: str) -> TransferResponse:
    return TransferResponse(assistant=TRIAGE_AGENT_NAME, context=TransferPayload(request=summary))


def tool_slug(agent: Agent) -> str:
    """Tool-name fragment for an agent: Sales Agent -> sales."""
    name = agent.name.lower()
    if name.endswith(" agent"):
        name = name[: -len(" agent")]
    return "_".join(name.split())


def transfer_to(agent: Agent, routing_hint: str = "") -> Callable[[str], Agent]:
    """Build a transfer_to_<agent> function that seeds the target with the request."""

    def transfer(request: str) -> Agent:
        logger.info("Transferring to %s with request: %s", agent.name, request)
        agent.context = {"request": request}
        return agent

    transfer.__name__ = f"transfer_to_{tool_slug(agent)}"
    transfer.__doc__ = f"Transfer the conversation to the {agent.name}. {routing_hint}".strip()
    return transfer
