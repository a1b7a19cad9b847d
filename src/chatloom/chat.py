"""Platform-agnostic chat abstraction layer.

The core only needs a handful of operations from the messaging platform:
fetching a message by id, replying to a message, and editing or reading a
deferred command reply. Discord implements these in ``chatloom.discord``;
tests use in-memory fakes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol


@dataclass(frozen=True, slots=True)
class InboundMessage:
    """Normalized inbound message event."""

    id: int
    channel_id: int
    author_id: int
    content: str
    author_name: str = ""
    is_bot: bool = False
    reference_id: int | None = None  # Message this one replies to
    mentions_bot: bool = False
    replies_to_bot: bool = False
    attachment_urls: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_reply(self) -> bool:
        return self.reference_id is not None

    @property
    def addressed(self) -> bool:
        """True if the bot was mentioned or replied to."""
        return self.mentions_bot or self.replies_to_bot


@dataclass(frozen=True, slots=True)
class FetchedMessage:
    """A message looked up by id while walking a reply chain."""

    id: int
    author_id: int
    reference_id: int | None = None


@dataclass(frozen=True, slots=True)
class SentMessage:
    """Reference to a message the bot sent."""

    id: int


class MessageFetcher(Protocol):
    async def fetch_message(self, message_id: int) -> FetchedMessage:
        """Fetch a message by id.

        Raises:
            ResolutionFailure: If the message is missing or the request fails.
        """
        ...


class MessageReplier(Protocol):
    async def reply(self, content: str) -> SentMessage:
        """Reply to the inbound message."""
        ...


class MessageChannel(MessageFetcher, MessageReplier, Protocol):
    """Everything the pipeline needs to answer one inbound message."""

    async def typing(self) -> None:
        """Signal that a reply is being prepared (best effort)."""
        ...


class DeferredReply(Protocol):
    """A slash command response that was deferred and is filled in later."""

    async def edit(self, content: str, *, files: list[Path] | None = None) -> None:
        """Replace the deferred reply's content, optionally attaching files."""
        ...

    async def fetch(self) -> SentMessage:
        """Return the message backing the deferred reply."""
        ...
