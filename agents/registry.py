"""
Agent Registry — single source of truth for specialist routing.

To add a new specialist agent:
  1. Create agents/your_agent.py with your_agent = Agent(...)
  2. Import it below and add AgentEntry(your_agent, "What topics it covers")
  3. Done: Triage builds its transfer functions and routing from this list.
"""
from dataclasses import dataclass
from typing import List

from orchestrator.types import Agent

# ── Specialist agents (order matters: more specific first) ────────────────
from agents.refunds import refunds_agent
from agents.sales import sales_agent


@dataclass
class AgentEntry:
    agent: Agent
    routing_hint: str  # One-line description used in Triage's routing instruction


SPECIALISTS: List[AgentEntry] = [
    AgentEntry(refunds_agent, "Refunds, returns, or complaints about price"),
    AgentEntry(sales_agent, "Buying bees, product questions, stock and orders"),
]
