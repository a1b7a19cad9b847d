"""Core data types shared by the conversation pipeline and the generation queue."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal, TypeAlias

if TYPE_CHECKING:
    from .chat import DeferredReply

Role = Literal["system", "user", "assistant"]

# Channel id for top-level messages, root message id for reply chains.
ThreadId: TypeAlias = int


@dataclass(frozen=True, slots=True)
class Turn:
    """One role-tagged message in a thread's conversation."""

    role: Role
    content: str

    def as_message(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True, slots=True)
class Artifact:
    """A rendered file ready for delivery."""

    path: Path

    @property
    def name(self) -> str:
        return self.path.name


@dataclass(frozen=True, slots=True)
class Job:
    """A queued image generation request.

    The sink is the caller's deferred reply: the queue reports the final
    outcome there, exactly once per job.
    """

    prompt: str
    requester: Any
    sink: DeferredReply
    timeout_s: float = 4 * 60.0

    @property
    def requester_name(self) -> str:
        name = getattr(self.requester, "display_name", None) or getattr(
            self.requester, "name", None
        )
        return str(name) if name else "unknown user"
