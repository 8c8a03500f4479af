"""
Transfer tools — hand a conversation to another assistant by name.

A transfer tool validates the model-supplied arguments and returns a
TransferResponse. The dispatcher resolves the named assistant through the
engine that is running the conversation, so the tool itself never needs a
reference to the target object.
"""
import logging
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, StrictStr, ValidationError

from orchestrator.errors import InvalidArgumentsError, TransferError
from orchestrator.types import Tool

logger = logging.getLogger(__name__)


class HistoryItem(BaseModel):
    role: StrictStr
    content: StrictStr


class TransferContext(BaseModel):
    history: List[HistoryItem]


class TransferArgs(BaseModel):
    request: StrictStr
    context: Optional[TransferContext] = None


class TransferPayload(BaseModel):
    request: str
    history: List[HistoryItem] = []


class TransferResponse(BaseModel):
    action: Literal["transfer"] = "transfer"
    assistant: str
    context: TransferPayload


TRANSFER_PARAMETERS = {
    "type": "object",
    "properties": {
        "request": {
            "type": "string",
            "description": "The user request to be transferred",
        },
        "context": {
            "type": "object",
            "description": "Additional context for the transfer",
        },
    },
    "required": ["request"],
}


def _format_errors(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
        for err in exc.errors()
    )


def validate_transfer_args(value: Any) -> TransferArgs:
    if not isinstance(value, dict):
        raise InvalidArgumentsError("Arguments must be an object")
    try:
        return TransferArgs.model_validate(value)
    except ValidationError as exc:
        raise InvalidArgumentsError(_format_errors(exc)) from exc


def create_transfer_tool(name: str, description: str, target_assistant: str) -> Tool:
    """Build a tool that transfers the conversation to ``target_assistant``."""

    def transfer(request: Any = None, context: Any = None) -> TransferResponse:
        raw = {"request": request}
        if context is not None:
            raw["context"] = context
        try:
            args = validate_transfer_args(raw)
            logger.info("Transfer requested via %s -> %s", name, target_assistant)
            return TransferResponse(
                assistant=target_assistant,
                context=TransferPayload(
                    request=args.request,
                    history=args.context.history if args.context else [],
                ),
            )
        except TransferError:
            raise
        except Exception as exc:
            raise TransferError(f"Unexpected error during transfer: {exc}") from exc

    transfer.__name__ = name
    return Tool(
        name=name,
        function=transfer,
        description=description,
        parameters={
            "type": TRANSFER_PARAMETERS["type"],
            "properties": dict(TRANSFER_PARAMETERS["properties"]),
            "required": list(TRANSFER_PARAMETERS["required"]),
        },
    )
