"""Process wiring: build the backends, the engine and the Discord provider, then run."""

from __future__ import annotations

import anyio

from .commands import register_commands
from .completion import ChatCompletionClient
from .console import OperatorConsole
from .conversation import ConversationStore
from .dedup import DedupFilter
from .discord import DiscordProvider
from .engine import ChatEngine
from .jobs import GenerationQueue
from .logging import get_logger
from .render import HttpRenderBackend
from .resolver import ThreadResolver
from .settings import ChatloomSettings
from .transcript import TranscriptLog

logger = get_logger(__name__)


def build_engine(
    settings: ChatloomSettings, completion: ChatCompletionClient
) -> ChatEngine:
    conv = settings.conversation
    transcript = (
        TranscriptLog(settings.transcript_dir)
        if settings.transcript_dir is not None
        else None
    )
    return ChatEngine(
        completion=completion,
        store=ConversationStore(
            conv.system_prompt,
            max_turns=conv.max_turns,
            observer=transcript,
        ),
        resolver=ThreadResolver(max_depth=conv.max_reply_depth),
        dedup=DedupFilter(ttl_s=conv.dedup_ttl_s),
        model=settings.completion.model,
    )


async def _run_console(
    operator: OperatorConsole,
    provider: DiscordProvider,
) -> None:
    await provider.wait_ready()
    if await operator.run():
        await provider.close()


async def run_bot(settings: ChatloomSettings, *, console: bool = True) -> None:
    """Run the bot until the Discord connection closes."""
    api_key = settings.completion.api_key
    completion = ChatCompletionClient(
        settings.completion.base_url,
        model=settings.completion.model,
        api_key=api_key.get_secret_value() if api_key else None,
        timeout_s=settings.completion.timeout_s,
    )
    render = HttpRenderBackend(
        settings.render.base_url,
        settings.render.output_dir,
    )
    engine = build_engine(settings, completion)
    provider = DiscordProvider(
        settings.discord.token.get_secret_value(),
        guild_id=settings.discord.guild_id,
    )
    provider.set_message_handler(engine.handle_message)

    try:
        async with anyio.create_task_group() as tg:
            queue = GenerationQueue(
                task_group=tg,
                backend=render,
                settle_delay_s=settings.render.settle_delay_s,
            )
            register_commands(
                provider,
                engine=engine,
                queue=queue,
                image_timeout_s=settings.render.timeout_s,
            )
            if console:
                operator = OperatorConsole(engine=engine, queue=queue, platform=provider)
                tg.start_soon(_run_console, operator, provider)

            logger.info("bot.starting", console=console)
            await provider.run()
            tg.cancel_scope.cancel()
    finally:
        with anyio.CancelScope(shield=True):
            await completion.close()
            await render.close()
        logger.info("bot.stopped")
