"""Reply-chain thread resolution.

A thread is the lineage of messages a conversation grows along. Top-level
messages belong to their channel's thread. Replies inherit the thread of
the message they answer: every message the bot has handled or sent is
recorded in a message -> thread map, so most lookups are a single dict
hit. When the referenced message is unknown, the chain is walked backwards
through the platform until a known message or the chain's root is reached.
"""

from __future__ import annotations

from .chat import InboundMessage, MessageFetcher
from .errors import ResolutionFailure
from .logging import get_logger
from .model import ThreadId

logger = get_logger(__name__)

DEFAULT_MAX_DEPTH = 20


class ThreadResolver:
    """Map inbound messages to stable thread ids."""

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        self.max_depth = max_depth
        self._message_threads: dict[int, ThreadId] = {}

    def register(self, message_id: int, thread_id: ThreadId) -> ThreadId:
        """Record which thread a message belongs to.

        The first registration for a message id wins; the stored thread is
        returned.
        """
        return self._message_threads.setdefault(message_id, thread_id)

    def lookup(self, message_id: int) -> ThreadId | None:
        return self._message_threads.get(message_id)

    def __len__(self) -> int:
        return len(self._message_threads)

    async def resolve(
        self, message: InboundMessage, fetcher: MessageFetcher
    ) -> ThreadId:
        """Return the thread id for an inbound message.

        Never raises for fetch failures (missing messages, HTTP errors,
        dropped connections): an unreachable chain degrades to the directly
        referenced message id.
        """
        if message.reference_id is None:
            return message.channel_id

        reference_id = message.reference_id
        try:
            return await self._walk(reference_id, fetcher)
        except ResolutionFailure as exc:
            logger.warning(
                "resolver.fetch_failed",
                message_id=message.id,
                reference_id=reference_id,
                failed_id=exc.message_id,
                reason=exc.reason,
            )
        except Exception as exc:
            logger.warning(
                "resolver.fetch_failed",
                message_id=message.id,
                reference_id=reference_id,
                reason=f"{type(exc).__name__}: {exc}",
            )
        return reference_id

    async def _walk(self, start_id: int, fetcher: MessageFetcher) -> ThreadId:
        current_id = start_id
        for depth in range(self.max_depth):
            cached = self._message_threads.get(current_id)
            if cached is not None:
                logger.debug("resolver.chain_hit", depth=depth, thread_id=cached)
                return cached
            fetched = await fetcher.fetch_message(current_id)
            if fetched.reference_id is None:
                logger.debug("resolver.chain_root", depth=depth, root_id=fetched.id)
                return fetched.id
            current_id = fetched.reference_id

        cached = self._message_threads.get(current_id)
        if cached is not None:
            return cached
        logger.warning(
            "resolver.depth_exhausted",
            start_id=start_id,
            last_id=current_id,
            max_depth=self.max_depth,
        )
        return current_id
