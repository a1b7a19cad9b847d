"""Operator console.

A line-oriented prompt on the bot's stdin for poking at a running
process: sending messages by hand, listing channels, inspecting and
clearing conversation threads, and checking the generation queue.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Protocol

import anyio
from rich.console import Console
from rich.table import Table

from .discord import ChannelInfo
from .engine import ChatEngine
from .jobs import GenerationQueue
from .logging import get_logger

logger = get_logger(__name__)

PROMPT = "bot> "

HELP_TEXT = """\
Operator commands:
  send <channel_id> <message>  Send a message to a channel
  list                         Show text channels and their ids
  threads                      Show conversation threads and turn counts
  show <thread_id>             Print a thread's conversation
  clear <thread_id>            Forget a thread's conversation
  clearall                     Forget every conversation
  queue                        Show image generation queue state
  help                         Show this help message
  exit                         Shut the bot down"""


class ConsolePlatform(Protocol):
    def list_text_channels(self) -> list[ChannelInfo]: ...

    async def send_to_channel(self, channel_id: int, text: str) -> bool:
        """Return False for an unknown channel; raise if the send itself fails."""
        ...


class OperatorConsole:
    def __init__(
        self,
        *,
        engine: ChatEngine,
        queue: GenerationQueue,
        platform: ConsolePlatform,
        console: Console | None = None,
        read_line: Callable[[], str] | None = None,
    ) -> None:
        self._engine = engine
        self._queue = queue
        self._platform = platform
        self.console = console or Console()
        self._read_line = read_line or (lambda: input(PROMPT))

    async def run(self) -> bool:
        """Read and execute commands until ``exit`` or end of input.

        Returns True if the operator asked to shut down.
        """
        self.console.print(HELP_TEXT)
        while True:
            try:
                line = await anyio.to_thread.run_sync(
                    self._read_line, abandon_on_cancel=True
                )
            except EOFError:
                logger.info("console.eof")
                return False
            if not await self.handle_line(line):
                return True

    async def handle_line(self, line: str) -> bool:
        """Execute one command line. Returns False when the console should stop."""
        args = line.strip().split()
        if not args:
            return True
        command, rest = args[0].lower(), args[1:]

        try:
            if command == "exit":
                self.console.print("Shutting down bot...")
                return False
            handler = self._commands().get(command)
            if handler is None:
                self.console.print('Unknown command. Type "help" for available commands.')
                return True
            await handler(rest)
        except Exception as exc:
            logger.error("console.command_failed", command=command, error=str(exc))
            self.console.print(f"Error: {exc}", markup=False)
        return True

    def _commands(self) -> dict[str, Callable[[list[str]], Awaitable[None]]]:
        return {
            "help": self._help,
            "send": self._send,
            "list": self._list,
            "threads": self._threads,
            "show": self._show,
            "clear": self._clear,
            "clearall": self._clear_all,
            "queue": self._queue_status,
        }

    async def _help(self, args: list[str]) -> None:
        self.console.print(HELP_TEXT)

    async def _send(self, args: list[str]) -> None:
        if len(args) < 2:
            self.console.print("Usage: send <channel_id> <message>")
            return
        channel_id = _parse_id(args[0])
        message = " ".join(args[1:])
        if await self._platform.send_to_channel(channel_id, message):
            self.console.print(f"Message sent to {channel_id}", markup=False)
        else:
            self.console.print('Channel not found! Use "list" to see available channels.')

    async def _list(self, args: list[str]) -> None:
        channels = self._platform.list_text_channels()
        if not channels:
            self.console.print("No text channels visible.")
            return
        table = Table(title="Text channels")
        table.add_column("Guild")
        table.add_column("Channel")
        table.add_column("ID", justify="right")
        for channel in channels:
            table.add_row(channel.guild, f"#{channel.name}", str(channel.id))
        self.console.print(table)

    async def _threads(self, args: list[str]) -> None:
        threads = list(self._engine.store.threads())
        if not threads:
            self.console.print("No conversations.")
            return
        table = Table(title="Conversations")
        table.add_column("Thread", justify="right")
        table.add_column("Turns", justify="right")
        for thread_id, count in threads:
            table.add_row(str(thread_id), str(count))
        self.console.print(table)

    async def _show(self, args: list[str]) -> None:
        if len(args) != 1:
            self.console.print("Usage: show <thread_id>")
            return
        thread_id = _parse_id(args[0])
        turns = self._engine.store.get(thread_id)
        if turns is None:
            self.console.print(f"No conversation for {thread_id}")
            return
        for turn in turns:
            self.console.print(f"[{turn.role}] {turn.content}", markup=False)

    async def _clear(self, args: list[str]) -> None:
        if len(args) != 1:
            self.console.print("Usage: clear <thread_id>")
            return
        thread_id = _parse_id(args[0])
        if self._engine.store.clear(thread_id):
            logger.info("console.thread_cleared", thread_id=thread_id)
            self.console.print(f"Cleared thread {thread_id}")
        else:
            self.console.print(f"No conversation for {thread_id}")

    async def _clear_all(self, args: list[str]) -> None:
        count = self._engine.store.clear_all()
        logger.info("console.threads_cleared", count=count)
        self.console.print(f"Cleared {count} conversation(s)")

    async def _queue_status(self, args: list[str]) -> None:
        state = "busy" if self._queue.active else "idle"
        self.console.print(f"Worker: {state}")
        self.console.print(f"Pending jobs: {self._queue.pending}")
        current = self._queue.current
        if current is not None:
            self.console.print(
                f'Current: "{current.prompt}" for {current.requester_name}',
                markup=False,
            )


def _parse_id(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"not a valid id: {value!r}") from None
