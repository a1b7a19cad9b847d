"""Tests for chatloom.formatting module."""

from __future__ import annotations

from chatloom.formatting import (
    MAX_MESSAGE_LENGTH,
    TRUNCATION_MARKER,
    label_speaker,
    strip_mention,
    truncate_message,
    with_attachments,
)


class TestTruncateMessage:
    def test_short_text_unchanged(self) -> None:
        assert truncate_message("hello") == "hello"

    def test_exact_limit_unchanged(self) -> None:
        text = "a" * MAX_MESSAGE_LENGTH
        assert truncate_message(text) == text

    def test_long_text_fits_limit_with_marker(self) -> None:
        result = truncate_message("a" * 3000)
        assert len(result) == MAX_MESSAGE_LENGTH
        assert result.endswith(TRUNCATION_MARKER)

    def test_custom_limit(self) -> None:
        assert truncate_message("abcdefghij", limit=5, marker="~") == "abcd~"


class TestLabelSpeaker:
    def test_prefixes_name(self) -> None:
        assert label_speaker("alice", "hi") == "alice: hi"

    def test_no_speaker(self) -> None:
        assert label_speaker(None, "hi") == "hi"
        assert label_speaker("", "hi") == "hi"


class TestWithAttachments:
    def test_appends_urls(self) -> None:
        result = with_attachments("look", ["https://a/1.png", "https://a/2.png"])
        assert result == "look\n[attachment] https://a/1.png\n[attachment] https://a/2.png"

    def test_attachment_only(self) -> None:
        assert with_attachments("", ["https://a/1.png"]) == "[attachment] https://a/1.png"

    def test_no_attachments(self) -> None:
        assert with_attachments("text", []) == "text"


class TestStripMention:
    def test_removes_plain_and_nick_mentions(self) -> None:
        assert strip_mention("<@42> hello <@!42> there", 42) == "hello there"

    def test_keeps_other_mentions(self) -> None:
        assert strip_mention("<@42> ping <@7>", 42) == "ping <@7>"

    def test_keeps_newlines(self) -> None:
        assert strip_mention("<@42> line one\nline two", 42) == "line one\nline two"
