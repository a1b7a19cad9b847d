"""Raw TOML configuration I/O utilities.

Separates file I/O from validation so the CLI can write a starter file
without going through pydantic.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

import tomlkit

CONFIG_DIR = ".chatloom"
CONFIG_FILE = "config.toml"


def default_config_path(root: Path | None = None) -> Path:
    """Get the path to the config file under ``root`` (default: cwd)."""
    if root is None:
        root = Path.cwd()
    return root / CONFIG_DIR / CONFIG_FILE


def read_raw_toml(path: Path) -> dict[str, Any]:
    """Read raw TOML data from a file.

    Raises:
        FileNotFoundError: If the file does not exist
        tomllib.TOMLDecodeError: If the file is not valid TOML
    """
    with open(path, "rb") as f:
        return tomllib.load(f)


def write_raw_toml(data: dict[str, Any], path: Path) -> None:
    """Write raw TOML data to a file, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(tomlkit.dumps(data))


def starter_config(token: str = "", *, guild_id: int | None = None) -> dict[str, Any]:
    """Build the document written by ``chatloom init``."""
    doc = tomlkit.document()
    doc.add(tomlkit.comment("Chatloom configuration"))
    doc.add(tomlkit.comment("Any value can be overridden with CHATLOOM__SECTION__KEY"))

    discord = tomlkit.table()
    if token:
        discord["token"] = token
    if guild_id is not None:
        discord["guild_id"] = guild_id
    doc["discord"] = discord

    completion = tomlkit.table()
    completion["base_url"] = "http://localhost:11434/v1"
    completion["model"] = "llama3.1"
    doc["completion"] = completion

    render = tomlkit.table()
    render["base_url"] = "http://127.0.0.1:8888"
    render["output_dir"] = "outputs"
    doc["render"] = render

    conversation = tomlkit.table()
    conversation["system_prompt"] = "You are a helpful assistant."
    doc["conversation"] = conversation
    return doc
