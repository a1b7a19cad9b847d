"""Tests for chatloom.conversation module."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from chatloom.conversation import ConversationStore
from chatloom.model import Turn
from chatloom.transcript import TranscriptLog

SYSTEM = "You are a helpful assistant."


class TestGetOrCreate:
    """Tests for lazy creation."""

    def test_seeds_system_turn(self) -> None:
        store = ConversationStore(SYSTEM)
        turns = store.get_or_create(1)
        assert turns == [Turn(role="system", content=SYSTEM)]
        assert 1 in store

    def test_returns_copy(self) -> None:
        """Mutating the returned list does not touch the stored history."""
        store = ConversationStore(SYSTEM)
        turns = store.get_or_create(1)
        turns.append(Turn(role="user", content="sneaky"))
        assert len(store.get_or_create(1)) == 1

    def test_get_missing_returns_none(self) -> None:
        store = ConversationStore(SYSTEM)
        assert store.get(1) is None
        assert 1 not in store


class TestAppend:
    """Tests for append and the sliding window."""

    def test_user_turn_gets_speaker_label(self) -> None:
        store = ConversationStore(SYSTEM)
        turn = store.append(1, "user", "hello", speaker="alice")
        assert turn.content == "alice: hello"

    def test_user_turn_without_speaker(self) -> None:
        store = ConversationStore(SYSTEM)
        assert store.append(1, "user", "hello").content == "hello"

    def test_assistant_turn_unmodified(self) -> None:
        store = ConversationStore(SYSTEM)
        turn = store.append(1, "assistant", "hi there", speaker="ignored")
        assert turn.content == "hi there"

    def test_system_append_rejected(self) -> None:
        store = ConversationStore(SYSTEM)
        with pytest.raises(ValueError):
            store.append(1, "system", "new rules")

    def test_twenty_five_exchanges_keep_last_twenty(self) -> None:
        """25 user/assistant pairs leave the system turn plus the last 20 turns."""
        store = ConversationStore(SYSTEM)
        for i in range(25):
            store.append(7, "user", f"question {i}", speaker="bob")
            store.append(7, "assistant", f"answer {i}")

        turns = store.get_or_create(7)
        assert len(turns) == 21
        assert turns[0] == Turn(role="system", content=SYSTEM)

        expected: list[Turn] = []
        for i in range(15, 25):
            expected.append(Turn(role="user", content=f"bob: question {i}"))
            expected.append(Turn(role="assistant", content=f"answer {i}"))
        assert turns[1:] == expected

    def test_bounds_hold_after_every_append(self) -> None:
        store = ConversationStore(SYSTEM, max_turns=4)
        for i in range(30):
            role = "user" if i % 3 else "assistant"
            store.append(1, role, str(i))
            turns = store.get_or_create(1)
            assert len(turns) <= 5
            assert turns[0].role == "system"
        assert [t.content for t in store.get_or_create(1)[1:]] == ["26", "27", "28", "29"]

    def test_threads_are_independent(self) -> None:
        store = ConversationStore(SYSTEM)
        store.append(1, "user", "one")
        store.append(2, "user", "two")
        assert [t.content for t in store.get_or_create(1)] == [SYSTEM, "one"]
        assert [t.content for t in store.get_or_create(2)] == [SYSTEM, "two"]

    def test_invalid_max_turns(self) -> None:
        with pytest.raises(ValueError):
            ConversationStore(SYSTEM, max_turns=0)


class TestClear:
    """Tests for clear and clear_all."""

    def test_clear_removes_thread(self) -> None:
        store = ConversationStore(SYSTEM)
        store.append(1, "user", "hi")
        assert store.clear(1) is True
        assert store.get(1) is None
        # Recreated fresh on next use
        assert len(store.get_or_create(1)) == 1

    def test_clear_missing_is_noop(self) -> None:
        store = ConversationStore(SYSTEM)
        assert store.clear(1) is False
        assert store.clear(1) is False

    def test_clear_all(self) -> None:
        store = ConversationStore(SYSTEM)
        store.append(1, "user", "a")
        store.append(2, "user", "b")
        assert store.clear_all() == 2
        assert len(store) == 0
        assert store.clear_all() == 0

    def test_threads_listing(self) -> None:
        store = ConversationStore(SYSTEM)
        store.append(1, "user", "a")
        store.append(1, "assistant", "b")
        store.get_or_create(2)
        assert dict(store.threads()) == {1: 3, 2: 1}


class TestTranscript:
    """Tests for the JSONL transcript observer."""

    def test_appends_are_recorded(self, tmp_path: Path) -> None:
        log = TranscriptLog(tmp_path / "logs", clock=lambda: 123.0)
        store = ConversationStore(SYSTEM, observer=log)
        store.append(5, "user", "hello", speaker="carol")
        store.append(5, "assistant", "hey carol")

        lines = log.path_for(5).read_text(encoding="utf-8").splitlines()
        assert [json.loads(line) for line in lines] == [
            {"ts": 123.0, "thread_id": 5, "role": "user", "content": "carol: hello"},
            {"ts": 123.0, "thread_id": 5, "role": "assistant", "content": "hey carol"},
        ]

    def test_write_failure_is_ignored(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        log = TranscriptLog(blocker / "logs")
        store = ConversationStore(SYSTEM, observer=log)
        # Should not raise
        store.append(1, "user", "hi")
        assert len(store.get_or_create(1)) == 2
