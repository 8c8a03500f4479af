"""Provider client factory — engines receive the client, they never build it."""
import logging
from typing import Optional

from openai import AsyncOpenAI

import config
from orchestrator.errors import ConfigurationError

logger = logging.getLogger(__name__)


def create_client(api_key: Optional[str] = None, base_url: Optional[str] = None) -> AsyncOpenAI:
    api_key = api_key or config.OPENAI_API_KEY
    if not api_key:
        raise ConfigurationError("OPENAI_API_KEY is not set. Add it to your environment or .env file.")
    base_url = base_url or config.OPENAI_BASE_URL
    logger.info("OpenAI client ready (base_url=%s).", base_url or "default")
    return AsyncOpenAI(api_key=api_key, base_url=base_url)
