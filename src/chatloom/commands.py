"""Discord slash commands: ``/talk`` and ``/imagine``."""

from __future__ import annotations

from typing import TYPE_CHECKING

import discord
from discord import app_commands

from .discord import InteractionReply
from .engine import ChatEngine
from .errors import ChatloomError
from .jobs import GenerationQueue
from .logging import get_logger
from .model import Job

if TYPE_CHECKING:
    from .discord import DiscordProvider

logger = get_logger(__name__)

DEFAULT_IMAGE_TIMEOUT_S = 4 * 60.0


async def run_talk(
    interaction: discord.Interaction,
    engine: ChatEngine,
    message: str,
    image: discord.Attachment | None = None,
) -> None:
    # Defer immediately; the completion can take longer than Discord's 3s window
    await interaction.response.defer()
    attachments = [image.url] if image is not None else []
    channel_id = interaction.channel_id or interaction.user.id
    await engine.handle_command(
        channel_id=channel_id,
        text=message,
        reply=InteractionReply(interaction),
        speaker=interaction.user.display_name,
        attachment_urls=attachments,
    )


async def run_imagine(
    interaction: discord.Interaction,
    queue: GenerationQueue,
    prompt: str,
    timeout_s: float = DEFAULT_IMAGE_TIMEOUT_S,
) -> None:
    # Defer immediately to keep the interaction open while queued
    await interaction.response.defer()
    job = Job(
        prompt=prompt,
        requester=interaction.user,
        sink=InteractionReply(interaction),
        timeout_s=timeout_s,
    )
    future = queue.enqueue(job)
    try:
        await future.wait()
    except ChatloomError as exc:
        # The queue has already told the user what went wrong.
        logger.warning(
            "imagine.failed",
            error=str(exc),
            kind=type(exc).__name__,
        )


def register_commands(
    provider: DiscordProvider,
    *,
    engine: ChatEngine,
    queue: GenerationQueue,
    image_timeout_s: float = DEFAULT_IMAGE_TIMEOUT_S,
) -> None:
    """Register the slash commands on the provider's command tree.

    Args:
        provider: The Discord provider to register commands with
        engine: Conversation engine answering ``/talk``
        queue: Generation queue serving ``/imagine``
        image_timeout_s: Render timeout passed to each image job
    """
    tree = provider.command_tree
    guild = discord.Object(id=provider.guild_id) if provider.guild_id else None

    @tree.command(name="talk", description="Talk to the AI bot", guild=guild)
    @app_commands.describe(
        message="Your message to the AI",
        image="Optional image or file to include",
    )
    async def talk(
        interaction: discord.Interaction,
        message: app_commands.Range[str, 1, 2000],
        image: discord.Attachment | None = None,
    ) -> None:
        await run_talk(interaction, engine, message, image)

    @tree.command(name="imagine", description="Generate an image", guild=guild)
    @app_commands.describe(prompt="Prompt to generate")
    async def imagine(interaction: discord.Interaction, prompt: str) -> None:
        await run_imagine(interaction, queue, prompt, image_timeout_s)
