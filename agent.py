"""
Demo entrypoint — exports root_agent and all_agents.

    from agent import root_agent, all_agents
    swarm = Swarm(create_client(), agents=all_agents)
    response = await swarm.run(root_agent, [{"role": "user", "content": "I want a refund"}])
"""
import config  # noqa: F401  # Must be first: loads .env before agents read defaults
from agents.registry import SPECIALISTS
from agents.triage import build_triage_agent

# root_agent: Triage → [Refunds, Sales]
root_agent = build_triage_agent(SPECIALISTS)

# Registered on the Swarm so transfer tools can hand off by name
all_agents = [root_agent] + [entry.agent for entry in SPECIALISTS]
