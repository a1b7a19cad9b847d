"""Conversation pipeline.

inbound message -> dedup -> thread resolution -> history + new turn ->
completion -> history update -> reply -> message/thread registration.

The user's turn is only written to history once the completion succeeds,
together with the assistant's answer, so a failed call leaves no
unanswered question behind in the thread.
"""

from __future__ import annotations

from collections.abc import Sequence

from .chat import DeferredReply, InboundMessage, MessageChannel, SentMessage
from .completion import CompletionBackend
from .conversation import ConversationStore
from .dedup import DedupFilter
from .errors import CompletionBackendFailure
from .formatting import label_speaker, truncate_message, with_attachments
from .logging import bind_run_context, clear_context, get_logger
from .model import ThreadId, Turn
from .resolver import ThreadResolver

logger = get_logger(__name__)

APOLOGY_MESSAGE = "Sorry, I couldn't reach the language model right now."


class ChatEngine:
    """Owns all per-process conversation state.

    Nothing here is global: two engines in one process share nothing.
    """

    def __init__(
        self,
        *,
        completion: CompletionBackend,
        store: ConversationStore | None = None,
        resolver: ThreadResolver | None = None,
        dedup: DedupFilter | None = None,
        model: str | None = None,
    ) -> None:
        self.completion = completion
        self.store = store if store is not None else ConversationStore()
        self.resolver = resolver if resolver is not None else ThreadResolver()
        self.dedup = dedup if dedup is not None else DedupFilter()
        self.model = model

    async def handle_message(
        self, message: InboundMessage, channel: MessageChannel
    ) -> SentMessage | None:
        """Answer an inbound message if it is new and addressed to the bot.

        Returns the sent reply, or None when the message was skipped or no
        answer could be delivered.
        """
        if self.dedup.check_and_mark(message.id):
            logger.debug("engine.duplicate", message_id=message.id)
            return None
        if message.is_bot or not message.addressed:
            return None

        thread_id = await self.resolver.resolve(message, channel)
        bind_run_context(thread_id=thread_id, message_id=message.id)
        try:
            logger.info(
                "engine.incoming",
                author=message.author_name,
                reply=message.is_reply,
                text=message.content[:100],
            )
            try:
                await channel.typing()
            except Exception as exc:
                logger.debug("engine.typing_failed", error=str(exc))

            text = with_attachments(message.content, message.attachment_urls)
            answer = await self.exchange(thread_id, text, speaker=message.author_name)
            if answer is None:
                await self._reply_quietly(channel, APOLOGY_MESSAGE)
                return None

            try:
                sent = await channel.reply(truncate_message(answer))
            except Exception as exc:
                logger.error("engine.reply_failed", error=str(exc))
                return None

            self.resolver.register(message.id, thread_id)
            self.resolver.register(sent.id, thread_id)
            logger.info("engine.replied", reply_id=sent.id)
            return sent
        finally:
            clear_context()

    async def handle_command(
        self,
        *,
        channel_id: int,
        text: str,
        reply: DeferredReply,
        speaker: str | None = None,
        attachment_urls: Sequence[str] = (),
    ) -> SentMessage | None:
        """Answer a ``/talk`` command through its deferred reply.

        Commands are never replies, so the thread is the channel's.
        """
        thread_id: ThreadId = channel_id
        bind_run_context(thread_id=thread_id)
        try:
            answer = await self.exchange(
                thread_id, with_attachments(text, attachment_urls), speaker=speaker
            )
            if answer is None:
                try:
                    await reply.edit(APOLOGY_MESSAGE)
                except Exception as exc:
                    logger.error("engine.reply_failed", error=str(exc))
                return None

            try:
                await reply.edit(truncate_message(answer))
                sent = await reply.fetch()
            except Exception as exc:
                logger.error("engine.reply_failed", error=str(exc))
                return None

            self.resolver.register(sent.id, thread_id)
            return sent
        finally:
            clear_context()

    async def exchange(
        self, thread_id: ThreadId, text: str, *, speaker: str | None = None
    ) -> str | None:
        """Run one user turn through the model and record the exchange.

        Returns the assistant's answer, or None if the completion failed,
        in which case the conversation is left untouched.
        """
        history = self.store.get_or_create(thread_id)
        request: list[Turn] = [
            *history,
            Turn(role="user", content=label_speaker(speaker, text)),
        ]
        try:
            answer = await self.completion.complete(request, model=self.model)
        except CompletionBackendFailure as exc:
            logger.error("engine.completion_failed", error=str(exc))
            return None
        except Exception as exc:
            logger.exception("engine.completion_crashed", error=str(exc))
            return None

        self.store.append(thread_id, "user", text, speaker=speaker)
        self.store.append(thread_id, "assistant", answer)
        return answer

    async def _reply_quietly(self, channel: MessageChannel, content: str) -> None:
        try:
            await channel.reply(content)
        except Exception as exc:
            logger.error("engine.reply_failed", error=str(exc))
