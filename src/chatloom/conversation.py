"""Per-thread rolling conversation history.

Each thread's conversation starts with a single system turn followed by at
most ``max_turns`` user/assistant turns. Older exchange turns fall off the
front as new ones arrive; the system turn is never evicted.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Protocol

from .formatting import label_speaker
from .logging import get_logger
from .model import Role, ThreadId, Turn

logger = get_logger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."
DEFAULT_MAX_TURNS = 20


class TurnObserver(Protocol):
    def record(self, thread_id: ThreadId, turn: Turn) -> None: ...


class ConversationStore:
    """In-memory map of thread id -> ordered turns."""

    def __init__(
        self,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        *,
        max_turns: int = DEFAULT_MAX_TURNS,
        observer: TurnObserver | None = None,
    ) -> None:
        if max_turns < 1:
            raise ValueError("max_turns must be at least 1")
        self.system_prompt = system_prompt
        self.max_turns = max_turns
        self._observer = observer
        self._conversations: dict[ThreadId, list[Turn]] = {}

    @property
    def max_length(self) -> int:
        return self.max_turns + 1

    def get_or_create(self, thread_id: ThreadId) -> list[Turn]:
        """Return a copy of the thread's turns, seeding it on first use."""
        return list(self._ensure(thread_id))

    def get(self, thread_id: ThreadId) -> list[Turn] | None:
        turns = self._conversations.get(thread_id)
        return list(turns) if turns is not None else None

    def append(
        self,
        thread_id: ThreadId,
        role: Role,
        content: str,
        speaker: str | None = None,
    ) -> Turn:
        """Append a turn and apply the sliding window.

        User turns are stored with the speaker's label in front, since the
        model sees a single undifferentiated user role for every human in
        the thread.
        """
        if role == "system":
            raise ValueError("system turns cannot be appended")
        if role == "user":
            content = label_speaker(speaker, content)
        turn = Turn(role=role, content=content)

        turns = self._ensure(thread_id)
        turns.append(turn)
        if len(turns) > self.max_length:
            dropped = len(turns) - self.max_length
            del turns[1 : 1 + dropped]
            logger.debug("conversation.evicted", thread_id=thread_id, dropped=dropped)

        if self._observer is not None:
            self._observer.record(thread_id, turn)
        return turn

    def clear(self, thread_id: ThreadId) -> bool:
        """Remove a thread's conversation. Returns True if one existed."""
        return self._conversations.pop(thread_id, None) is not None

    def clear_all(self) -> int:
        count = len(self._conversations)
        self._conversations.clear()
        return count

    def threads(self) -> Iterator[tuple[ThreadId, int]]:
        """Yield (thread id, turn count) for every stored conversation."""
        for thread_id, turns in self._conversations.items():
            yield thread_id, len(turns)

    def __contains__(self, thread_id: object) -> bool:
        return thread_id in self._conversations

    def __len__(self) -> int:
        return len(self._conversations)

    def _ensure(self, thread_id: ThreadId) -> list[Turn]:
        turns = self._conversations.get(thread_id)
        if turns is None:
            turns = [Turn(role="system", content=self.system_prompt)]
            self._conversations[thread_id] = turns
            logger.debug("conversation.created", thread_id=thread_id)
        return turns
