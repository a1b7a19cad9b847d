"""In-memory stand-ins for the platform and backends."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import anyio

from chatloom.chat import FetchedMessage, SentMessage
from chatloom.errors import CompletionBackendFailure, ResolutionFailure
from chatloom.model import Turn


class FakeChannel:
    """MessageChannel over a dict of known messages."""

    def __init__(
        self,
        messages: dict[int, FetchedMessage] | None = None,
        *,
        first_reply_id: int = 9000,
        fail_reply: bool = False,
    ) -> None:
        self.messages = messages or {}
        self.fetches: list[int] = []
        self.replies: list[str] = []
        self._next_id = first_reply_id
        self._fail_reply = fail_reply

    async def fetch_message(self, message_id: int) -> FetchedMessage:
        self.fetches.append(message_id)
        await anyio.sleep(0)
        try:
            return self.messages[message_id]
        except KeyError:
            raise ResolutionFailure(message_id, "not found") from None

    async def reply(self, content: str) -> SentMessage:
        if self._fail_reply:
            raise RuntimeError("missing permissions")
        self.replies.append(content)
        self._next_id += 1
        return SentMessage(id=self._next_id)

    async def typing(self) -> None:
        return None


class FakeCompletion:
    """CompletionBackend that answers from a script and records requests."""

    def __init__(self, answers: Sequence[str | Exception] | None = None) -> None:
        self._answers = list(answers or [])
        self.requests: list[list[Turn]] = []

    async def complete(self, turns: Sequence[Turn], *, model: str | None = None) -> str:
        self.requests.append(list(turns))
        await anyio.sleep(0)
        if self._answers:
            answer = self._answers.pop(0)
        else:
            answer = f"answer {len(self.requests)}"
        if isinstance(answer, Exception):
            raise answer
        return answer


class FakeDeferredReply:
    """DeferredReply that records edits; optionally fails file uploads."""

    def __init__(
        self,
        *,
        message_id: int = 7000,
        fail_files: bool = False,
        fail_all: bool = False,
        log: list[tuple[str, str]] | None = None,
        tag: str = "",
    ) -> None:
        self.edits: list[tuple[str, list[Path] | None]] = []
        self._message_id = message_id
        self._fail_files = fail_files
        self._fail_all = fail_all
        self._log = log
        self._tag = tag

    async def edit(self, content: str, *, files: list[Path] | None = None) -> None:
        self.edits.append((content, files))
        if self._log is not None:
            self._log.append((self._tag, content))
        if self._fail_all or (self._fail_files and files):
            raise RuntimeError("upload rejected")

    async def fetch(self) -> SentMessage:
        return SentMessage(id=self._message_id)


def completion_failure(message: str = "connection refused") -> CompletionBackendFailure:
    return CompletionBackendFailure(message)


class FakeBackend:
    """RenderBackend returning scripted results per prompt."""

    def __init__(self, results: dict[str, Path | None | Exception]) -> None:
        self.results = results
        self.calls: list[tuple[str, float]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def render(self, prompt: str, timeout_s: float) -> Path | None:
        self.calls.append((prompt, timeout_s))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await anyio.sleep(0.01)
            result = self.results[prompt]
            if isinstance(result, Exception):
                raise result
            return result
        finally:
            self.in_flight -= 1
