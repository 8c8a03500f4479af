import logging

from agents.utils import back_to_triage, transfer_back_to_triage
from orchestrator.types import Agent

logger = logging.getLogger(__name__)


def check_inventory() -> str:
    """Check how many bees are in stock."""
    logger.info("[mock] Checking inventory...")
    return "Inventory checked"


def process_sale(item_id: str, quantity: str) -> str:
    """Process the sale of a quantity of one item."""
    logger.info("[mock] Processing sale for %s of item %s...", quantity, item_id)
    return f"Sale processed for {quantity} of item {item_id}"


def complete_sale_and_transfer_back():
    """Complete the sale and hand the conversation back to triage."""
    logger.info("[mock] Completing sale and transferring back to Triage Agent")
    return back_to_triage("Sale completed")


def sales_instructions(context: dict) -> str:
    return (
        "Assist customers with sales and purchase requests based on their original request.\n\n"
        f"Customer's original request: \"{context.get('request', '')}\"\n\n"
        "Be an enthusiastic sales agent excited about selling bees. Engage the user with upbeat, positive energy.\n"
        "• Greet the user warmly and introduce the bees.\n"
        "• Use check_inventory before promising stock and process_sale to place an order.\n"
        "• Refunds or returns: say you will transfer them, then call transfer_back_to_triage.\n"
        "• When the sale is done, call complete_sale_and_transfer_back."
    )


sales_agent = Agent(
    name="Sales Agent",
    instructions=sales_instructions,
    functions=[
        check_inventory,
        process_sale,
        complete_sale_and_transfer_back,
        transfer_back_to_triage,
    ],
)
