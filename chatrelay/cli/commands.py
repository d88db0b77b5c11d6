"""CLI commands for chatrelay."""

import asyncio
import sys
from pathlib import Path

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from chatrelay import __logo__, __version__

app = typer.Typer(
    name="chatrelay",
    help=f"{__logo__} chatrelay - Telegram relay for streaming LLM conversations",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} chatrelay v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", callback=version_callback, is_eager=True
    ),
):
    """chatrelay - Telegram relay for streaming LLM conversations."""
    pass


def _configure_logging(level: str) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def _mask(secret: str) -> str:
    if not secret:
        return "[red]not set[/red]"
    return f"{secret[:4]}…{secret[-2:]}" if len(secret) > 8 else "****"


def _make_backend(config):
    """Create the conversation backend from config."""
    from chatrelay.providers.conversation import ConversationBackend
    from chatrelay.providers.litellm_provider import LiteLLMProvider

    provider = LiteLLMProvider(
        api_key=config.backend.api_key or None,
        api_base=config.backend.api_base,
        default_model=config.backend.model,
        extra_headers=config.backend.extra_headers,
    )
    return ConversationBackend(
        provider,
        model=config.backend.model,
        system_prompt=config.backend.system_prompt,
        max_tokens=config.backend.max_tokens,
        temperature=config.backend.temperature,
        max_history_turns=config.backend.max_history_turns,
        max_stored_turns=config.backend.max_stored_turns,
    )


@app.command()
def run(
    config_path: Path | None = typer.Option(None, "--config", "-c", help="Path to config.json"),
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="Verbosity (-v debug, -vv trace)"),
):
    """Start the Telegram relay."""
    from chatrelay.agent.access import AccessPolicy
    from chatrelay.agent.loop import RelayLoop
    from chatrelay.bus.queue import MessageBus
    from chatrelay.channels.telegram import TelegramChannel
    from chatrelay.config.loader import load_config

    config = load_config(config_path)
    if verbose:
        config.debug = min(2, max(config.debug, verbose))
    _configure_logging(config.log_level)

    if not config.telegram.token:
        console.print("[red]Error: Telegram bot token is not configured.[/red]")
        console.print("Set [cyan]telegram.token[/cyan] in the config file or [cyan]CHATRELAY_TELEGRAM__TOKEN[/cyan].")
        raise typer.Exit(1)

    console.print(f"{__logo__} Starting chatrelay with model [cyan]{config.backend.model}[/cyan]...")

    bus = MessageBus()
    channel = TelegramChannel(config.telegram, bus)
    backend = _make_backend(config)
    logger.info("🔮 Conversation backend has started...")
    loop = RelayLoop(
        bus,
        channel,
        backend,
        policy=AccessPolicy.from_lists(config.telegram.owner_ids, config.telegram.group_ids),
        chat_command=config.telegram.chat_command,
        group_reply_only=config.telegram.group_reply_only,
        timeout_s=config.backend.timeout_seconds,
        edit_interval_s=config.streaming.edit_interval_s,
        placeholder=config.streaming.placeholder,
    )

    async def _serve() -> None:
        try:
            await asyncio.gather(channel.start(), loop.run())
        finally:
            await loop.stop()
            await channel.stop()

    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        console.print("\nShutting down...")
    except Exception as e:
        logger.error(f"chatrelay stopped: {e}")
        raise typer.Exit(1)


@app.command()
def init(
    config_path: Path | None = typer.Option(None, "--config", "-c", help="Path to config.json"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing config"),
):
    """Write a default configuration file."""
    from chatrelay.config.loader import get_config_path, save_config
    from chatrelay.config.schema import Config

    path = config_path or get_config_path()
    if path.exists() and not force:
        console.print(f"[yellow]Config already exists at {path}[/yellow] (use --force to overwrite)")
        raise typer.Exit(1)
    save_config(Config(), path)
    console.print(f"[green]✓[/green] Created config at {path}")


@app.command()
def status(
    config_path: Path | None = typer.Option(None, "--config", "-c", help="Path to config.json"),
):
    """Show the effective configuration."""
    from chatrelay.config.loader import get_config_path, load_config

    path = config_path or get_config_path()
    config = load_config(path)

    table = Table(title=f"chatrelay ({path})")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Telegram token", _mask(config.telegram.token))
    table.add_row("Owner ids", ", ".join(map(str, config.telegram.owner_ids)) or "any")
    table.add_row("Group ids", ", ".join(map(str, config.telegram.group_ids)) or "any")
    table.add_row("Chat command", config.telegram.chat_command)
    table.add_row("Model", config.backend.model)
    table.add_row("API key", _mask(config.backend.api_key))
    table.add_row("Timeout", f"{config.backend.timeout_seconds}s")
    table.add_row("Edit interval", f"{config.streaming.edit_interval_s:g}s")
    table.add_row("Verbosity", str(config.debug))
    console.print(table)
