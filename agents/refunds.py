import logging

from agents.sales import sales_agent
from agents.utils import back_to_triage, transfer_back_to_triage, transfer_to
from orchestrator.types import Agent

logger = logging.getLogger(__name__)


def process_refund(item_id: str, reason: str = "NOT SPECIFIED") -> str:
    """Refund an item. Ask for the item id first."""
    logger.info("[mock] Refunding item %s because %s...", item_id, reason)
    return "Success!"


def apply_discount() -> str:
    """Apply a discount to the user's cart."""
    logger.info("[mock] Applying discount...")
    return "Applied discount of 11%"


def complete_refund_and_transfer_back():
    """Complete the refund and hand the conversation back to triage."""
    logger.info("[mock] Completing refund and transferring back to Triage Agent")
    return back_to_triage("Refund completed")


def refunds_instructions(context: dict) -> str:
    return (
        "Assist customers with refund and return requests based on their original request.\n\n"
        f"Customer's original request: \"{context.get('request', '')}\"\n\n"
        "Acknowledge the request and do not ask for information already provided.\n"
        "• If the product was too expensive, offer a discount with apply_discount.\n"
        "• If the customer insists on a refund, use process_refund.\n"
        "• If they want to buy something else instead, call transfer_to_sales.\n"
        "• For anything else, call transfer_back_to_triage."
    )


refunds_agent = Agent(
    name="Refunds Agent",
    instructions=refunds_instructions,
    functions=[
        process_refund,
        apply_discount,
        complete_refund_and_transfer_back,
        transfer_to(sales_agent, "Use when the customer wants to buy instead of return."),
        transfer_back_to_triage,
    ],
)
