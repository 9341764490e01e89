"""CLI main entry point"""

import asyncio
from pathlib import Path
from typing import Optional

import click
from rich.console import Console

from accessgate import __version__
from accessgate.client import RemoteDirectiveClient
from accessgate.config import GateConfig, load_gate_config
from accessgate.engine import AccessDecisionEngine
from accessgate.errors import AccessGateError, ConfigurationError, NotFound, StoreError
from accessgate.logging_utils import configure_logging
from accessgate.secrets import EncryptedFileBackend, SecureValueStore
from accessgate.state import DecisionKind, DecisionState
from accessgate.trust_cache import TrustCache

console = Console()


def _load_config(config_path: Optional[str]) -> GateConfig:
    try:
        return load_gate_config(Path(config_path) if config_path else None)
    except ConfigurationError as e:
        console.print(f"❌ [red]{e}[/red]")
        raise click.Abort()


@click.group()
@click.version_option(version=__version__, prog_name="accessgate")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None,
              help="Path to accessgate.yaml")
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to the console")
@click.pass_context
def cli(ctx, config_path, verbose):
    """AccessGate - decide between delegated and local mode at startup"""
    config = _load_config(config_path)
    configure_logging(config.data_dir, verbose=verbose)
    ctx.obj = config


@cli.command("run")
@click.pass_obj
def run_cmd(config: GateConfig):
    """Run the startup decision and print the resulting mode"""

    def _on_state(state: DecisionState) -> None:
        if state.kind == DecisionKind.CHECKING:
            console.print("⏳ Checking access...")

    engine = AccessDecisionEngine.from_config(config)
    engine.publisher.subscribe(_on_state)

    try:
        state = asyncio.run(engine.start())
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted while checking access[/yellow]")
        raise click.Abort()

    if state.kind == DecisionKind.ALLOWED:
        console.print(f"✅ [green]delegated:[/green] [cyan]{state.url}[/cyan]")
    else:
        console.print("ℹ️  [blue]local mode[/blue]")


@cli.command("status")
@click.pass_obj
def status_cmd(config: GateConfig):
    """Show the cached grant without contacting the control endpoint"""
    url = TrustCache(config.settings_path, url_key=config.cache_url_key).read_cached_url()
    console.print(f"Cached URL:   {url or '[dim]none[/dim]'}")

    try:
        store = SecureValueStore(EncryptedFileBackend(config.secrets_path, config.secrets_key_path))
        token_matches = store.read(config.cache_token_key) == config.expected_token
        token_line = "[green]matches this build[/green]" if token_matches else "[red]does not match[/red]"
    except NotFound:
        token_line = "[dim]none[/dim]"
    except StoreError as e:
        token_line = f"[yellow]unavailable ({e.hint})[/yellow]"

    console.print(f"Stored token: {token_line}")


@cli.command("request-url")
@click.pass_obj
def request_url_cmd(config: GateConfig):
    """Print the control request URL that would be sent"""
    try:
        click.echo(RemoteDirectiveClient(config).build_request_url())
    except AccessGateError as e:
        console.print(f"❌ [red]{e}[/red]")
        raise click.Abort()


def main():
    cli()


if __name__ == "__main__":
    main()
