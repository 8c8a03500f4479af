import os

from dotenv import load_dotenv

load_dotenv()

# ── OpenAI ────────────────────────────────────────────────────────────────────
# OPENAI_API_KEY is required by orchestrator.client.create_client().
# OPENAI_BASE_URL is optional; set it to target an OpenAI-compatible gateway.
OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY", "")
OPENAI_BASE_URL = os.environ.get("OPENAI_BASE_URL", "") or None

# Default model for agents that don't set one explicitly
OPENAI_MODEL = os.environ.get("OPENAI_MODEL", "gpt-4o")

# Model used for one-shot helper completions (task triage, ground-truth scoring)
TRIAGE_MODEL = os.environ.get("TRIAGE_MODEL", OPENAI_MODEL)

# ── Thread / run engine ───────────────────────────────────────────────────────
# Fixed delay between run status checks. No backoff.
RUN_POLL_INTERVAL = float(os.environ.get("RUN_POLL_INTERVAL", "1.0"))

# How many times a single request may be handed between assistants before
# the run is abandoned.
MAX_HANDOFFS = int(os.environ.get("MAX_HANDOFFS", "6"))

# Filesystem layout for assistant and tool definitions:
#   assistants/<name>/assistant.json
#   tools/<name>/tool.json  (+ optional handler.py)
ASSISTANTS_DIR = os.environ.get("ASSISTANTS_DIR", "assistants")
TOOLS_DIR = os.environ.get("TOOLS_DIR", "tools")

# Task routed through triage when no assistant is named
DEFAULT_TASK_ASSISTANT = os.environ.get("DEFAULT_TASK_ASSISTANT", "auto")

# ── Transcript persistence ────────────────────────────────────────────────────
# Set TRANSCRIPT_LOGGING_ENABLED=false to skip writing session files.
TRANSCRIPT_LOGGING_ENABLED = os.environ.get("TRANSCRIPT_LOGGING_ENABLED", "true").lower() == "true"
TRANSCRIPT_LOG_DIR = os.environ.get("TRANSCRIPT_LOG_DIR", "logs")

# ── Logging ───────────────────────────────────────────────────────────────────
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
