"""Outbound text formatting helpers."""

from __future__ import annotations

import re
from collections.abc import Iterable

# Discord has a 2000 character limit for messages
MAX_MESSAGE_LENGTH = 2000
TRUNCATION_MARKER = "…(truncated)"


def truncate_message(
    text: str,
    limit: int = MAX_MESSAGE_LENGTH,
    marker: str = TRUNCATION_MARKER,
) -> str:
    """Trim text to the platform limit, marker included."""
    if len(text) <= limit:
        return text
    return text[: limit - len(marker)] + marker


def label_speaker(speaker: str | None, text: str) -> str:
    """Prefix a user turn with the speaker's display name."""
    if not speaker:
        return text
    return f"{speaker}: {text}"


def with_attachments(text: str, urls: Iterable[str]) -> str:
    lines = [text] if text else []
    lines.extend(f"[attachment] {url}" for url in urls)
    return "\n".join(lines)


def strip_mention(text: str, user_id: int) -> str:
    """Remove ``<@id>`` / ``<@!id>`` mentions of the bot from message text."""
    cleaned = re.sub(rf"<@!?{user_id}>", "", text)
    return re.sub(r"[ \t]{2,}", " ", cleaned).strip()
