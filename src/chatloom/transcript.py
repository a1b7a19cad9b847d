"""Append-only JSONL log of conversation turns, one file per thread."""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from pathlib import Path

from .logging import get_logger
from .model import ThreadId, Turn

logger = get_logger(__name__)


class TranscriptLog:
    def __init__(
        self,
        directory: Path,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.directory = directory
        self._clock = clock

    def path_for(self, thread_id: ThreadId) -> Path:
        return self.directory / f"{thread_id}.jsonl"

    def record(self, thread_id: ThreadId, turn: Turn) -> None:
        entry = {
            "ts": self._clock(),
            "thread_id": thread_id,
            "role": turn.role,
            "content": turn.content,
        }
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with self.path_for(thread_id).open("a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False) + "\n")
        except OSError as exc:
            logger.error(
                "transcript.write_failed",
                thread_id=thread_id,
                error=str(exc),
            )
