"""
File-based conversation logger.

Persists completed runs as JSON so conversations can be audited after the
fact. Each call to save() appends one batch (a list of messages) to a JSON
array stored in TRANSCRIPT_LOG_DIR/session_<timestamp>.json.

Append is read-modify-write of the whole file: not atomic, last writer
wins. Gracefully no-ops when TRANSCRIPT_LOGGING_ENABLED=false.

File layout
-----------
[
    [ {message}, {message}, ... ],   # batch 1
    [ {message}, ... ]               # batch 2
]
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, List, Optional, Union

import config

logger = logging.getLogger(__name__)


def session_filename(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"session_{now.strftime('%Y-%m-%dT%H-%M-%S-%f')}.json"


def _read_batches(path: Path) -> List[Any]:
    if not path.exists():
        return []
    try:
        existing = json.loads(path.read_text(encoding="utf-8") or "[]")
    except json.JSONDecodeError:
        logger.warning("Transcript %s is not valid JSON; starting a new array.", path)
        return []
    return existing if isinstance(existing, list) else []


def _append_batch(path: Path, batch: List[Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    batches = _read_batches(path)
    batches.append(batch)
    path.write_text(json.dumps(batches, indent=4, default=str), encoding="utf-8")


class ConversationLogger:
    """save() is fire-and-forget safe: it never raises."""

    def __init__(self, log_dir: Union[str, Path, None] = None, enabled: Optional[bool] = None):
        self.log_dir = Path(log_dir or config.TRANSCRIPT_LOG_DIR)
        self.enabled = config.TRANSCRIPT_LOGGING_ENABLED if enabled is None else enabled

    async def save(
        self,
        messages: Iterable[Any],
        filename: Union[str, Path, None] = None,
    ) -> Optional[Path]:
        """Append one batch of messages. Returns the file written, or None."""
        if not self.enabled:
            return None
        path = Path(filename) if filename else self.log_dir / session_filename()
        try:
            await asyncio.to_thread(_append_batch, path, list(messages))
        except Exception as exc:
            logger.error("save(%s): %s", path, exc)
            return None
        logger.debug("Transcript saved to %s", path)
        return path

    def load(self, filename: Union[str, Path]) -> List[Any]:
        """Return the batches stored in a transcript file ([] when missing)."""
        path = Path(filename)
        if not path.is_absolute() and not path.exists():
            path = self.log_dir / path
        return _read_batches(path)


# Singleton instance used across the application
conversation_logger = ConversationLogger()
