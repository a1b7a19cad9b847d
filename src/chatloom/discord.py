"""Discord client implementation for Chatloom.

This module wraps discord.py: the gateway connection, inbound message
parsing, and adapters that expose a Discord message or interaction
through the small protocols the core depends on.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

import aiohttp
import anyio
import discord
from discord import app_commands

from .chat import FetchedMessage, InboundMessage, MessageChannel, SentMessage
from .errors import DeliveryFailure, ResolutionFailure
from .formatting import strip_mention, truncate_message
from .logging import get_logger

logger = get_logger(__name__)

MessageHandler = Callable[[InboundMessage, MessageChannel], Awaitable[object]]


@dataclass(frozen=True, slots=True)
class ChannelInfo:
    """A text channel the bot can see."""

    guild: str
    id: int
    name: str


class DiscordMessageChannel:
    """MessageChannel bound to one inbound Discord message."""

    def __init__(self, message: discord.Message) -> None:
        self._message = message

    async def fetch_message(self, message_id: int) -> FetchedMessage:
        try:
            msg = await self._message.channel.fetch_message(message_id)
        except discord.NotFound as e:
            raise ResolutionFailure(message_id, "not found") from e
        except discord.HTTPException as e:
            raise ResolutionFailure(message_id, str(e)) from e
        except (aiohttp.ClientError, TimeoutError, OSError) as e:
            raise ResolutionFailure(message_id, f"{type(e).__name__}: {e}") from e

        reference_id: int | None = None
        if msg.reference is not None:
            reference_id = msg.reference.message_id
        return FetchedMessage(
            id=msg.id,
            author_id=msg.author.id,
            reference_id=reference_id,
        )

    async def reply(self, content: str) -> SentMessage:
        sent = await self._message.reply(content, mention_author=False)
        return SentMessage(id=sent.id)

    async def typing(self) -> None:
        await self._message.channel.typing()


class InteractionReply:
    """DeferredReply backed by a deferred slash command interaction."""

    def __init__(self, interaction: discord.Interaction) -> None:
        self._interaction = interaction

    async def edit(self, content: str, *, files: list[Path] | None = None) -> None:
        content = truncate_message(content)
        if files:
            attachments = [discord.File(path, filename=path.name) for path in files]
            await self._interaction.edit_original_response(
                content=content, attachments=attachments
            )
        else:
            await self._interaction.edit_original_response(content=content)

    async def fetch(self) -> SentMessage:
        msg = await self._interaction.original_response()
        return SentMessage(id=msg.id)


class DiscordProvider:
    """Owns the discord.py client.

    Handles:
    - WebSocket gateway connection
    - Filtering and parsing inbound guild messages
    - Slash command sync on ready
    - Channel listing and sending for the operator console
    """

    def __init__(
        self,
        token: str,
        *,
        guild_id: int | None = None,
        intents: discord.Intents | None = None,
    ) -> None:
        """Initialize the Discord provider.

        Args:
            token: Discord bot token
            guild_id: Guild to sync slash commands to (global sync if None)
            intents: Discord intents (defaults to guilds + messages + message_content)
        """
        self._token = token
        self._guild_id = guild_id

        if intents is None:
            intents = discord.Intents.default()
            intents.guilds = True
            intents.guild_messages = True
            intents.message_content = True

        self._client = discord.Client(intents=intents)
        self._tree = app_commands.CommandTree(self._client)
        self._handler: MessageHandler | None = None
        self._ready = anyio.Event()

        self._setup_handlers()

    def _setup_handlers(self) -> None:
        @self._client.event
        async def on_ready() -> None:
            logger.info("discord.ready", user=str(self._client.user))
            await self.sync_commands()
            self._ready.set()

        @self._client.event
        async def on_message(message: discord.Message) -> None:
            if self._handler is None:
                return
            if message.author == self._client.user:
                return
            # System messages (joins, pins) and DMs are not conversations
            if message.type not in (discord.MessageType.default, discord.MessageType.reply):
                return
            if message.guild is None:
                return

            inbound = self.parse_message(message)
            try:
                await self._handler(inbound, DiscordMessageChannel(message))
            except Exception as exc:
                logger.exception(
                    "discord.handler_failed",
                    message_id=message.id,
                    error=str(exc),
                )

    @property
    def client(self) -> discord.Client:
        return self._client

    @property
    def command_tree(self) -> app_commands.CommandTree:
        """Access the command tree for registering slash commands."""
        return self._tree

    @property
    def guild_id(self) -> int | None:
        return self._guild_id

    def set_message_handler(self, handler: MessageHandler) -> None:
        self._handler = handler

    async def run(self) -> None:
        """Connect and block until the client is closed."""
        await self._client.start(self._token)

    async def wait_ready(self) -> None:
        await self._ready.wait()

    def parse_message(self, message: discord.Message) -> InboundMessage:
        """Parse a Discord message into an InboundMessage."""
        bot_user = self._client.user

        reference_id: int | None = None
        replies_to_bot = False
        if message.reference is not None and message.reference.message_id is not None:
            reference_id = message.reference.message_id
            resolved = message.reference.resolved
            if isinstance(resolved, discord.Message) and bot_user is not None:
                replies_to_bot = resolved.author.id == bot_user.id

        content = message.content
        mentions_bot = False
        if bot_user is not None:
            mentions_bot = any(user.id == bot_user.id for user in message.mentions)
            if mentions_bot:
                content = strip_mention(content, bot_user.id)

        return InboundMessage(
            id=message.id,
            channel_id=message.channel.id,
            author_id=message.author.id,
            author_name=message.author.display_name,
            content=content,
            is_bot=message.author.bot,
            reference_id=reference_id,
            mentions_bot=mentions_bot,
            replies_to_bot=replies_to_bot,
            attachment_urls=tuple(a.url for a in message.attachments),
        )

    def list_text_channels(self) -> list[ChannelInfo]:
        channels: list[ChannelInfo] = []
        for guild in self._client.guilds:
            for channel in guild.text_channels:
                channels.append(ChannelInfo(guild=guild.name, id=channel.id, name=channel.name))
        return channels

    async def send_to_channel(self, channel_id: int, text: str) -> bool:
        """Send text to a channel. Returns False if the channel is unknown.

        Raises:
            DeliveryFailure: If Discord rejects the send.
        """
        channel = self._client.get_channel(channel_id)
        if not isinstance(channel, (discord.TextChannel, discord.Thread)):
            return False
        try:
            await channel.send(truncate_message(text))
        except discord.HTTPException as e:
            logger.error("discord.send_failed", channel_id=channel_id, error=str(e))
            raise DeliveryFailure(f"could not send to {channel_id}: {e}") from e
        return True

    async def sync_commands(self) -> None:
        """Sync slash commands to the configured guild, or globally."""
        try:
            if self._guild_id is not None:
                guild = discord.Object(id=self._guild_id)
                await self._tree.sync(guild=guild)
                logger.info("discord.commands_synced", guild_id=self._guild_id)
            else:
                await self._tree.sync()
                logger.info("discord.commands_synced_globally")
        except discord.HTTPException as e:
            logger.error("discord.commands_sync_failed", error=str(e))

    async def close(self) -> None:
        await self._client.close()
        logger.info("discord.closed")
