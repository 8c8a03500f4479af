"""Error types raised by the turn engines and the tool-call dispatcher."""


class SwarmError(Exception):
    """Base class for every error raised by the orchestrator."""


class ConfigurationError(SwarmError):
    """Required configuration (e.g. OPENAI_API_KEY) is missing."""


class MalformedResponseError(SwarmError):
    """The provider returned a completion without choices or message."""


class ToolClassificationError(SwarmError):
    """A tool's return value could not be turned into tool-message content."""

    def __init__(self, value, cause: Exception):
        self.value = value
        super().__init__(
            f"Failed to cast response to string: {value!r}. "
            f"Make sure agent functions return a string or Result object. Error: {cause}"
        )


# ── Transfer errors ───────────────────────────────────────────────────────────

class TransferError(SwarmError):
    """Handing a conversation over to another agent failed."""


class InvalidArgumentsError(TransferError):
    def __init__(self, details: str):
        super().__init__(f"Invalid transfer arguments: {details}")


class AssistantNotFoundError(TransferError):
    def __init__(self, assistant_name: str):
        self.assistant_name = assistant_name
        super().__init__(f"Target assistant not found: {assistant_name}")


class ContextTransferError(TransferError):
    def __init__(self, details: str):
        super().__init__(f"Failed to transfer context: {details}")


class ThreadError(TransferError):
    def __init__(self, message: str):
        super().__init__(f"Thread error: {message}")


class MessageError(TransferError):
    def __init__(self, message: str):
        super().__init__(f"Message error: {message}")
