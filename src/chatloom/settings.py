"""Pydantic settings for Chatloom.

This module provides:
- Environment variable support (CHATLOOM__DISCORD__TOKEN, etc.)
- Validation with clear error messages
- SecretStr for tokens and API keys to prevent accidental logging
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .config_store import read_raw_toml
from .conversation import DEFAULT_MAX_TURNS, DEFAULT_SYSTEM_PROMPT
from .dedup import DEFAULT_TTL_S
from .errors import ConfigError
from .jobs import DEFAULT_SETTLE_DELAY_S
from .logging import get_logger
from .resolver import DEFAULT_MAX_DEPTH

logger = get_logger(__name__)


class DiscordSettings(BaseModel):
    """Discord transport configuration."""

    token: SecretStr
    guild_id: int | None = None


class CompletionSettings(BaseModel):
    """Text-completion backend configuration."""

    base_url: str = "http://localhost:11434/v1"
    model: str = "llama3.1"
    api_key: SecretStr | None = None
    timeout_s: float = Field(default=120.0, gt=0)


class RenderSettings(BaseModel):
    """Image generation backend configuration."""

    base_url: str = "http://127.0.0.1:8888"
    output_dir: Path = Path("outputs")
    timeout_s: float = Field(default=4 * 60.0, gt=0)
    settle_delay_s: float = Field(default=DEFAULT_SETTLE_DELAY_S, ge=0)


class ConversationSettings(BaseModel):
    """Conversation memory configuration."""

    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    max_turns: int = Field(default=DEFAULT_MAX_TURNS, ge=1)
    max_reply_depth: int = Field(default=DEFAULT_MAX_DEPTH, ge=1)
    dedup_ttl_s: float = Field(default=DEFAULT_TTL_S, gt=0)


class ChatloomSettings(BaseSettings):
    """Settings loaded from TOML and environment variables.

    Environment variables use CHATLOOM__ prefix with __ as nested delimiter:
    - CHATLOOM__DISCORD__TOKEN -> discord.token
    - CHATLOOM__COMPLETION__MODEL -> completion.model
    """

    model_config = SettingsConfigDict(
        env_prefix="CHATLOOM__",
        env_nested_delimiter="__",
        extra="ignore",
    )

    discord: DiscordSettings
    completion: CompletionSettings = CompletionSettings()
    render: RenderSettings = RenderSettings()
    conversation: ConversationSettings = ConversationSettings()
    transcript_dir: Path | None = None
    console: bool = True


def _format_validation_error(exc: ValidationError) -> str:
    lines = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err["loc"])
        lines.append(f"  - {loc}: {err['msg']}")
    return "invalid configuration:\n" + "\n".join(lines)


def load_settings(config_path: Path | None = None) -> ChatloomSettings:
    """Load settings from a TOML file (if present) and the environment.

    Environment variables fill in anything the file leaves out.

    Raises:
        ConfigError: If the file is unreadable or validation fails.
    """
    data: dict[str, Any] = {}
    if config_path is not None and config_path.exists():
        try:
            data = read_raw_toml(config_path)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.error("settings.load_failed", path=str(config_path), error=str(e))
            raise ConfigError(f"failed to read {config_path}: {e}") from e

    try:
        return ChatloomSettings(**data)
    except ValidationError as e:
        logger.error(
            "settings.validation_failed",
            path=str(config_path) if config_path else None,
            error=str(e),
        )
        raise ConfigError(_format_validation_error(e)) from e
