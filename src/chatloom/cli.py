from __future__ import annotations

from pathlib import Path

import anyio
import typer

from . import __version__
from .config_store import default_config_path, starter_config, write_raw_toml
from .errors import ConfigError
from .logging import get_logger, setup_logging
from .settings import ChatloomSettings, load_settings

logger = get_logger(__name__)


def _print_version_and_exit() -> None:
    typer.echo(__version__)
    raise typer.Exit()


def _version_callback(value: bool) -> None:
    if value:
        _print_version_and_exit()


def _load_or_exit(config: Path | None) -> ChatloomSettings:
    config_path = config or default_config_path()
    try:
        settings = load_settings(config_path)
    except ConfigError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=1)
    if not settings.discord.token.get_secret_value():
        typer.echo("error: discord.token is empty", err=True)
        raise typer.Exit(code=1)
    return settings


app = typer.Typer(
    add_completion=False,
    invoke_without_command=True,
    help="Discord chat bot with reply-thread memory and queued image generation.",
)


@app.callback()
def app_main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        help="Show the version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    config: Path = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config.toml (defaults to .chatloom/config.toml).",
    ),
    console: bool = typer.Option(
        True,
        "--console/--no-console",
        help="Run the operator console on stdin.",
    ),
    debug: bool = typer.Option(
        False,
        "--debug/--no-debug",
        help="Log debug events (resolver walks, backend requests).",
    ),
) -> None:
    """Chatloom CLI."""
    if ctx.invoked_subcommand is None:
        _run(config=config, console=console, debug=debug)
        raise typer.Exit()


def _run(*, config: Path | None, console: bool, debug: bool) -> None:
    from .bot import run_bot

    setup_logging(debug=debug)
    settings = _load_or_exit(config)

    try:
        anyio.run(lambda: run_bot(settings, console=console and settings.console))
    except KeyboardInterrupt:
        logger.info("shutdown.interrupted")
        raise typer.Exit(code=130)
    except Exception as e:
        logger.exception("bot.failed", error=str(e))
        typer.echo(f"error: bot failed: {e}", err=True)
        raise typer.Exit(code=1)


@app.command("init", help="Write a starter config file.")
def init_command(
    path: Path = typer.Option(
        None,
        "--path",
        "-p",
        help="Where to write the config (defaults to .chatloom/config.toml).",
    ),
    token: str = typer.Option(
        None,
        "--token",
        "-t",
        help="Discord bot token (will prompt if not provided)",
    ),
    guild_id: int = typer.Option(
        None,
        "--guild-id",
        "-g",
        help="Guild to sync slash commands to (optional)",
    ),
) -> None:
    config_path = path or default_config_path()
    if config_path.exists():
        typer.echo(f"error: config already exists at {config_path}", err=True)
        raise typer.Exit(code=1)

    if token is None:
        token = typer.prompt("Discord bot token", hide_input=True, default="")

    write_raw_toml(starter_config(token, guild_id=guild_id), config_path)
    typer.echo(f"✓ Config saved to {config_path}")
    if not token:
        typer.echo("Set CHATLOOM__DISCORD__TOKEN or edit the file before running.")


@app.command("check", help="Validate the config and print a summary.")
def check_command(
    config: Path = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config.toml (defaults to .chatloom/config.toml).",
    ),
) -> None:
    settings = _load_or_exit(config)

    typer.echo("Discord token: set")
    guild = settings.discord.guild_id
    typer.echo(f"Command sync: {f'guild {guild}' if guild else 'global'}")
    typer.echo(f"Model: {settings.completion.model} @ {settings.completion.base_url}")
    typer.echo(f"Render API: {settings.render.base_url} -> {settings.render.output_dir}")
    typer.echo(f"History: {settings.conversation.max_turns} turns per thread")
    if settings.transcript_dir is not None:
        typer.echo(f"Transcripts: {settings.transcript_dir}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
